"""Secret resolution for credential handles."""

import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values

from shipline.exceptions import SecretError
from shipline.models.deployment import CredentialRef


class SecretStore:
    """
    Resolves CredentialRef handles to values at the point of use.

    Lookup order: explicit overrides, process environment, then the
    .env file (if any). Values are never cached to disk. Every resolved
    value is registered with the logger so it is redacted from output.
    """

    def __init__(
        self,
        env_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        logger=None,
    ):
        """
        Initialize secret store.

        Args:
            env_file: Optional .env file with fallback values
            environ: Environment mapping (default: os.environ)
            logger: PipelineLogger to register resolved values with
        """
        self.env_file = Path(env_file) if env_file else None
        self.environ = environ if environ is not None else os.environ
        self.logger = logger
        self._file_values: Optional[Dict[str, Optional[str]]] = None

    def _load_file(self) -> Dict[str, Optional[str]]:
        if self._file_values is None:
            if self.env_file and self.env_file.exists():
                self._file_values = dotenv_values(self.env_file)
            else:
                self._file_values = {}
        return self._file_values

    def has(self, ref: CredentialRef) -> bool:
        """Check if a secret can be resolved."""
        return bool(self.environ.get(ref.name) or self._load_file().get(ref.name))

    def resolve(self, ref: CredentialRef) -> str:
        """
        Resolve a handle to its value.

        Raises:
            SecretError: If the secret is not set anywhere
        """
        value = self.environ.get(ref.name) or self._load_file().get(ref.name)
        if not value:
            searched = "environment"
            if self.env_file:
                searched += f", {self.env_file}"
            raise SecretError(f"Secret '{ref.name}' is not set", context=f"Searched: {searched}")

        if self.logger is not None:
            self.logger.add_secret(value)
        return value

    def missing(self, refs: List[CredentialRef]) -> List[str]:
        """Names of handles that cannot be resolved."""
        return [ref.name for ref in refs if not self.has(ref)]

    def __repr__(self) -> str:
        return f"SecretStore(env_file={self.env_file})"
