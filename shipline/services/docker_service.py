"""Docker image build and registry push."""

import hashlib
import subprocess
from pathlib import Path
from typing import Optional

from shipline.constants import (
    DEFAULT_DOCKER_REGISTRY,
    DEFAULT_IMAGE_TAG,
    STAGE_BUILD,
    STAGE_PUSH,
)
from shipline.exceptions import ExecutionError, TransportError
from shipline.models.deployment import BuiltImage, ImageRef, RegistryCredentials
from shipline.models.pipeline import Step, WorkingContext
from shipline.models.results import PushAck


class ImageBuilder:
    """Builds an image tagged with the commit SHA and 'latest'."""

    def __init__(
        self,
        runner,
        repository: str,
        dockerfile: Optional[str] = None,
        build_args: Optional[dict] = None,
    ):
        """
        Initialize image builder.

        Args:
            runner: StepRunner executing docker
            repository: Image repository (e.g. myuser/webapp)
            dockerfile: Dockerfile path relative to the context
            build_args: --build-arg values
        """
        self.runner = runner
        self.repository = repository
        self.dockerfile = dockerfile
        self.build_args = build_args or {}

    def resolve_tag(self, context: Path) -> str:
        """
        Get the version tag for a build context.

        Short git commit when the context is a checkout, otherwise a
        digest of the Dockerfile.
        """
        try:
            sha = subprocess.run(
                ["git", "rev-parse", "--short=7", "HEAD"],
                cwd=context,
                capture_output=True,
                text=True,
                timeout=30,
            )
            if sha.returncode == 0 and sha.stdout.strip():
                return sha.stdout.strip()
        except (OSError, subprocess.TimeoutExpired):
            pass

        dockerfile = context / (self.dockerfile or "Dockerfile")
        if not dockerfile.exists():
            raise ExecutionError(
                f"No Dockerfile found at {dockerfile}",
                context="Build context is neither a git checkout nor has a Dockerfile",
                step_name="docker-build",
            )
        return hashlib.sha256(dockerfile.read_bytes()).hexdigest()[:12]

    def build(self, context: Path) -> BuiltImage:
        """
        Build the image.

        Raises:
            ExecutionError: If docker cannot be started
            NonZeroExit: If the build fails
        """
        context = Path(context)
        base = ImageRef(self.repository)
        image = BuiltImage(
            versioned=base.with_tag(self.resolve_tag(context)),
            latest=base.with_tag(DEFAULT_IMAGE_TAG),
        )

        command = [
            "docker",
            "build",
            "-t",
            image.versioned.reference,
            "-t",
            image.latest.reference,
        ]
        if self.dockerfile:
            command.extend(["-f", self.dockerfile])
        for key in sorted(self.build_args):
            command.extend(["--build-arg", f"{key}={self.build_args[key]}"])
        command.append(".")

        self.runner.run_checked(
            Step(name="docker-build", command=command),
            WorkingContext(stage=STAGE_BUILD, cwd=context),
        )
        return image


class RegistryClient:
    """Pushes built images to a registry."""

    def __init__(self, runner, secrets):
        """
        Initialize registry client.

        Args:
            runner: StepRunner executing docker
            secrets: SecretStore resolving registry credentials
        """
        self.runner = runner
        self.secrets = secrets

    def login(self, credentials: RegistryCredentials) -> None:
        """
        Log in to the registry.

        The password reaches docker on stdin through the step environment,
        never on the command line.

        Raises:
            TransportError: If the registry rejects the credentials
        """
        username = self.secrets.resolve(credentials.username)
        password = self.secrets.resolve(credentials.password)
        registry = credentials.registry or ""

        step = Step(
            name="docker-login",
            command=(
                'printf "%s" "$SHIPLINE_REGISTRY_PASSWORD" | docker login '
                '--username "$SHIPLINE_REGISTRY_USERNAME" --password-stdin '
                f"{registry}"
            ).strip(),
            env={
                "SHIPLINE_REGISTRY_USERNAME": username,
                "SHIPLINE_REGISTRY_PASSWORD": password,
            },
        )
        result = self.runner.run(step, WorkingContext(stage=STAGE_PUSH))
        if not result.succeeded:
            raise TransportError(
                "Registry login rejected",
                context=f"Registry: {registry or DEFAULT_DOCKER_REGISTRY}",
                result=result,
            )

    def push(self, image: BuiltImage, credentials: RegistryCredentials) -> PushAck:
        """
        Log in and push every tag of the image.

        Raises:
            TransportError: If login or any push fails
        """
        self.login(credentials)

        pushed = []
        for ref in image.refs:
            result = self.runner.run(
                Step(name=f"docker-push:{ref.tag}", command=["docker", "push", ref.reference]),
                WorkingContext(stage=STAGE_PUSH),
            )
            if not result.succeeded:
                raise TransportError(
                    f"Push failed for {ref.reference}",
                    context=result.stderr.strip()[-500:] or None,
                    result=result,
                )
            pushed.append(ref.reference)

        return PushAck(
            references=tuple(pushed),
            registry=credentials.registry or DEFAULT_DOCKER_REGISTRY,
        )
