"""SSH service for executing scripts on remote hosts."""

import os
import subprocess
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Tuple

from shipline.constants import (
    DEFAULT_SSH_TIMEOUT,
    SSH_CONNECTION_TIMEOUT,
    SSH_TRANSPORT_EXIT_CODE,
)
from shipline.exceptions import TransportError
from shipline.models.deployment import CredentialRef, SSHCredentials


class RemoteExecutor:
    """
    Runs scripts on a remote host through the ssh client.

    Credentials are handles; they are resolved through the SecretStore
    only for the duration of one call.
    """

    def __init__(
        self,
        secrets,
        logger=None,
        timeout: Optional[float] = DEFAULT_SSH_TIMEOUT,
        ssh_binary: str = "ssh",
    ):
        """
        Initialize remote executor.

        Args:
            secrets: SecretStore resolving host, user and key handles
            logger: PipelineLogger for command and output logging
            timeout: Bound for one remote script in seconds
            ssh_binary: ssh client executable
        """
        self.secrets = secrets
        self.logger = logger
        self.timeout = timeout
        self.ssh_binary = ssh_binary

    @contextmanager
    def _key_file(self, key_value: str) -> Iterator[Path]:
        """
        Yield a path to the private key.

        DEPLOY_KEY may hold the key itself (as CI secret stores do) or a
        path to a key file. Key material is written to a 0600 temp file
        that is removed after the call.
        """
        if "PRIVATE KEY" not in key_value:
            yield Path(key_value).expanduser()
            return

        fd, path = tempfile.mkstemp(prefix="shipline-key-")
        try:
            os.chmod(path, 0o600)
            with os.fdopen(fd, "w") as handle:
                handle.write(key_value.strip() + "\n")
            yield Path(path)
        finally:
            os.unlink(path)

    def build_command(self, user: str, host: str, key_path: Path, script: str) -> list:
        """Build the ssh argv."""
        return [
            self.ssh_binary,
            "-i",
            str(key_path),
            "-o",
            "StrictHostKeyChecking=no",
            "-o",
            "BatchMode=yes",
            "-o",
            f"ConnectTimeout={SSH_CONNECTION_TIMEOUT}",
            "-o",
            "LogLevel=QUIET",
            f"{user}@{host}",
            script,
        ]

    def execute(
        self, host: CredentialRef, credentials: SSHCredentials, script: str
    ) -> Tuple[int, str]:
        """
        Execute script on the remote host.

        Args:
            host: Handle naming the host secret
            credentials: Handles for user and private key
            script: Shell script run by the remote login shell

        Returns:
            Tuple of (exit_code, combined output)

        ssh reports its own failures with exit code 255. A remote script
        that itself exits 255 cannot be told apart from that and is also
        raised as TransportError.

        Raises:
            TransportError: If the host is unreachable, rejects the key,
                the ssh client is missing, or the call times out
        """
        host_value = self.secrets.resolve(host)
        user = self.secrets.resolve(credentials.user)
        key_value = self.secrets.resolve(credentials.key)

        if self.logger:
            self.logger.log_command(f"ssh {user}@{host_value} '{script}'")

        start_time = time.time()
        with self._key_file(key_value) as key_path:
            try:
                result = subprocess.run(
                    self.build_command(user, host_value, key_path, script),
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                )
            except subprocess.TimeoutExpired as e:
                raise TransportError(
                    f"SSH command timed out after {self.timeout}s",
                    context=f"Host: {host}, Command: {script}",
                ) from e
            except OSError as e:
                raise TransportError(
                    f"Cannot start ssh client: {e.strerror or e}",
                    context=f"Host: {host}",
                ) from e

        output = f"{result.stdout}\n{result.stderr}".strip()
        if self.logger:
            self.logger.log_output(output, "remote")
            self.logger.log(
                f"Remote script exited with {result.returncode} "
                f"in {time.time() - start_time:.2f}s",
                "DEBUG",
            )

        if result.returncode == SSH_TRANSPORT_EXIT_CODE:
            raise TransportError(
                "SSH connection failed (unreachable host or rejected key)",
                context=f"Host: {host}, Output: {output[-500:]}",
            )

        return result.returncode, output
