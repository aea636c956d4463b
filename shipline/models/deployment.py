"""
Deployment Models

Image references, credential handles, and deployment targets.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from shipline.constants import DEFAULT_IMAGE_TAG, DEFAULT_RESTART_POLICY


@dataclass(frozen=True)
class ImageRef:
    """Container image reference (repository + tag)."""

    repository: str
    tag: str = DEFAULT_IMAGE_TAG

    def __post_init__(self):
        if not self.repository:
            raise ValueError("Image repository must not be empty")
        if not self.tag or ":" in self.tag or "/" in self.tag:
            raise ValueError(f"Invalid image tag: '{self.tag}'")

    @property
    def reference(self) -> str:
        """Get full reference (repository:tag)."""
        return f"{self.repository}:{self.tag}"

    def with_tag(self, tag: str) -> "ImageRef":
        """Get the same repository with another tag."""
        return ImageRef(self.repository, tag)

    @classmethod
    def parse(cls, reference: str) -> "ImageRef":
        """
        Parse 'repository[:tag]'.

        A colon inside the registry host (registry:5000/app) is a port,
        not a tag separator.
        """
        name, sep, tag = reference.rpartition(":")
        if not sep or "/" in tag:
            return cls(reference)
        return cls(name, tag)

    def __str__(self) -> str:
        return self.reference


@dataclass(frozen=True)
class BuiltImage:
    """Tags produced by one image build."""

    versioned: ImageRef
    latest: ImageRef

    @property
    def refs(self) -> Tuple[ImageRef, ImageRef]:
        """Get both tags, versioned first."""
        return (self.versioned, self.latest)


@dataclass(frozen=True)
class CredentialRef:
    """
    Opaque handle naming a secret.

    Holds only the secret's name. The value is looked up by the
    SecretStore at the point of use.
    """

    name: str

    def __post_init__(self):
        if not self.name:
            raise ValueError("Credential name must not be empty")

    def __repr__(self) -> str:
        return f"CredentialRef({self.name})"

    def __str__(self) -> str:
        return f"<secret:{self.name}>"


@dataclass(frozen=True)
class RegistryCredentials:
    """Handles for registry login."""

    username: CredentialRef
    password: CredentialRef
    registry: Optional[str] = None


@dataclass(frozen=True)
class SSHCredentials:
    """Handles for the remote session."""

    user: CredentialRef
    key: CredentialRef


@dataclass(frozen=True)
class DeploymentTarget:
    """Remote host and container identity a deploy updates."""

    host: CredentialRef
    credentials: SSHCredentials
    container_name: str
    ports: Tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    env_file: Optional[str] = None
    restart_policy: str = DEFAULT_RESTART_POLICY

    def __post_init__(self):
        if not self.container_name:
            raise ValueError("Container name must not be empty")
        object.__setattr__(self, "ports", tuple(str(p) for p in self.ports))
        env = {str(k): str(v) for k, v in dict(self.env).items()}
        object.__setattr__(self, "env", MappingProxyType(env))

    def __repr__(self) -> str:
        return f"DeploymentTarget(host={self.host!r}, container={self.container_name})"
