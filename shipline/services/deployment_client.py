"""Deployment client - replaces the running container on the remote host."""

import shlex
import threading
import time
from dataclasses import replace
from typing import Dict, Tuple

from shipline.constants import DOCKER_NOT_FOUND_MARKERS, STAGE_DEPLOY
from shipline.exceptions import DeployAborted, TransportError
from shipline.models.deployment import DeploymentTarget, ImageRef
from shipline.models.results import DeployResult, ExecutionResult

SUBSTEP_PULL = "pull"
SUBSTEP_STOP = "stop"
SUBSTEP_REMOVE = "remove"
SUBSTEP_RUN = "run"

# Sub-steps whose "no such container" failure means there is nothing to do
IGNORE_NOT_FOUND = (SUBSTEP_STOP, SUBSTEP_REMOVE)


def _is_not_found(output: str) -> bool:
    lowered = output.lower()
    return any(marker in lowered for marker in DOCKER_NOT_FOUND_MARKERS)


class DeploymentClient:
    """
    Issues pull / stop / remove / run for one container on the target host.

    Stop and remove tolerate a missing container and nothing else. Pull
    and run failures abort the deploy; the previous instance may then be
    stopped or gone, so a failed DeployResult requires manual checking.

    Deploys are serialized per (host, container) inside this process. With
    a SecretStore the host part is the resolved host value, so differently
    named secrets pointing at one host share a lock; without one it is the
    secret name. One lock is kept per pair ever deployed to.
    """

    _locks: Dict[Tuple[str, str], threading.Lock] = {}
    _locks_guard = threading.Lock()

    def __init__(self, executor, logger=None, secrets=None):
        """
        Initialize deployment client.

        Args:
            executor: RemoteExecutor (execute(host, credentials, script))
            logger: PipelineLogger
            secrets: SecretStore used to key the deploy lock on the real host
        """
        self.executor = executor
        self.logger = logger
        self.secrets = secrets

    def _lock_for(self, target: DeploymentTarget) -> threading.Lock:
        host = self.secrets.resolve(target.host) if self.secrets else target.host.name
        key = (host, target.container_name)
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())

    def build_scripts(self, target: DeploymentTarget, image: ImageRef) -> list:
        """Build the ordered (sub-step, script) pairs."""
        name = shlex.quote(target.container_name)
        run_parts = [
            "docker",
            "run",
            "-d",
            "--name",
            name,
            "--restart",
            shlex.quote(target.restart_policy),
        ]
        for mapping in target.ports:
            run_parts.extend(["-p", shlex.quote(mapping)])
        for key in sorted(target.env):
            run_parts.extend(["-e", shlex.quote(f"{key}={target.env[key]}")])
        if target.env_file:
            run_parts.extend(["--env-file", shlex.quote(target.env_file)])
        run_parts.append(shlex.quote(image.reference))

        return [
            (SUBSTEP_PULL, f"docker pull {shlex.quote(image.reference)}"),
            (SUBSTEP_STOP, f"docker stop {name}"),
            (SUBSTEP_REMOVE, f"docker rm {name}"),
            (SUBSTEP_RUN, " ".join(run_parts)),
        ]

    def deploy(self, target: DeploymentTarget, image: ImageRef) -> DeployResult:
        """
        Deploy image to target.

        Returns:
            DeployResult; check .succeeded

        Raises:
            DeployAborted: If another deploy to the same container is running
        """
        lock = self._lock_for(target)
        if not lock.acquire(blocking=False):
            raise DeployAborted(
                f"Deploy to '{target.container_name}' already in progress",
                context="Concurrent deploys to one container must be serialized",
            )
        try:
            return self._deploy(target, image)
        finally:
            lock.release()

    def _deploy(self, target: DeploymentTarget, image: ImageRef) -> DeployResult:
        result = DeployResult(container_name=target.container_name, image=image)

        for substep, script in self.build_scripts(target, image):
            start_time = time.monotonic()
            try:
                exit_code, output = self.executor.execute(
                    target.host, target.credentials, script
                )
            except TransportError as e:
                result.substeps.append(
                    ExecutionResult(
                        stage=STAGE_DEPLOY,
                        step=substep,
                        exit_code=-1,
                        stderr=e.format_message(),
                        duration_seconds=time.monotonic() - start_time,
                        command=script,
                    )
                )
                result.failed_step = substep
                result.error = e.message
                break

            record = ExecutionResult(
                stage=STAGE_DEPLOY,
                step=substep,
                exit_code=exit_code,
                stdout=output,
                duration_seconds=time.monotonic() - start_time,
                command=script,
            )
            if substep in IGNORE_NOT_FOUND and not record.succeeded and _is_not_found(output):
                # Nothing to stop or remove counts as completed
                record = replace(record, expected_exit_code=exit_code)
                result.substeps.append(record)
                result.ignored.append(substep)
                if self.logger:
                    self.logger.log(
                        f"No container '{target.container_name}' to {substep}, skipping",
                        "DEBUG",
                    )
                continue

            result.substeps.append(record)
            if record.succeeded:
                continue

            result.failed_step = substep
            result.error = f"'{substep}' exited with {exit_code}"
            break

        if self.logger:
            if result.succeeded:
                self.logger.success(f"{target.container_name} running {image}")
            else:
                self.logger.log(
                    f"Deploy failed at '{result.failed_step}': {result.error}", "ERROR"
                )
        return result
