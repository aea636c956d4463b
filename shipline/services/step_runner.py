"""Step runner - executes a single step and captures its result."""

import os
import subprocess
import time
from contextlib import contextmanager
from typing import Iterator, Callable, List, Mapping, Optional

from shipline.constants import DEFAULT_STEP_TIMEOUT
from shipline.exceptions import ExecutionError, NonZeroExit, StepTimeout
from shipline.models.pipeline import Step, WorkingContext
from shipline.models.results import ExecutionResult


def _as_text(output) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode(errors="replace")
    return output


class StepRunner:
    """
    Runs steps as local processes.

    A non-zero exit is returned, not raised: the caller decides whether it
    is fatal (see check()). Failing to start the process raises
    ExecutionError, exceeding the time bound raises StepTimeout.
    """

    def __init__(
        self,
        logger=None,
        default_timeout: float = DEFAULT_STEP_TIMEOUT,
        base_env: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize step runner.

        Args:
            logger: PipelineLogger used as the output sink
            default_timeout: Bound for steps that do not set their own
            base_env: Process defaults merged under each step (default: os.environ)
        """
        if default_timeout <= 0:
            raise ValueError("default_timeout must be positive")
        self.logger = logger
        self.default_timeout = default_timeout
        self.base_env = base_env
        self.history: List[ExecutionResult] = []

    def _redact(self, text: str) -> str:
        return self.logger.redact(text) if self.logger else text

    @contextmanager
    def _progress(self, description: str) -> Iterator[Callable[[bool], None]]:
        if self.logger is None:
            yield lambda ok: None
            return
        with self.logger.progress(description) as finish:
            yield finish

    def _aborted(
        self,
        step: Step,
        context: WorkingContext,
        display: str,
        start_time: float,
        stdout: str,
        stderr: str,
    ) -> ExecutionResult:
        """Record a step that never produced an exit code (exit_code -1)."""
        result = ExecutionResult(
            stage=context.stage,
            step=step.name,
            exit_code=-1,
            stdout=stdout,
            stderr=stderr,
            duration_seconds=time.monotonic() - start_time,
            command=display,
            expected_exit_code=step.expected_exit_code,
        )
        if self.logger:
            self.logger.log_output(stdout, "stdout")
            self.logger.log_output(stderr, "stderr")
        self.history.append(result)
        return result

    def run(self, step: Step, context: WorkingContext) -> ExecutionResult:
        """
        Execute a step.

        Args:
            step: Step to run
            context: Stage id, environment overlay and working directory

        Returns:
            ExecutionResult (also appended to history)

        Raises:
            ExecutionError: If the process cannot be started
            StepTimeout: If the step runs longer than its bound
        """
        base_env = self.base_env if self.base_env is not None else os.environ
        env = context.merged_env(base_env, step)
        cwd = context.resolve_cwd(step)
        timeout = step.timeout or self.default_timeout
        display = self._redact(step.display_command)
        command = step.command if step.uses_shell else list(step.command)

        if self.logger:
            self.logger.log_command(display)

        start_time = time.monotonic()
        with self._progress(step.name) as finish:
            try:
                completed = subprocess.run(
                    command,
                    shell=step.uses_shell,
                    cwd=str(cwd) if cwd is not None else None,
                    env=env,
                    capture_output=True,
                    text=True,
                    timeout=timeout,
                )
            except subprocess.TimeoutExpired as e:
                finish(False)
                result = self._aborted(
                    step, context, display, start_time, _as_text(e.stdout), _as_text(e.stderr)
                )
                raise StepTimeout(step.name, timeout, context.stage, result=result) from e
            except OSError as e:
                finish(False)
                reason = e.strerror or str(e)
                result = self._aborted(step, context, display, start_time, "", reason)
                raise ExecutionError(
                    f"Cannot start step '{step.name}': {reason}",
                    context=f"Stage: {context.stage}, Command: {display}",
                    result=result,
                ) from e

            result = ExecutionResult(
                stage=context.stage,
                step=step.name,
                exit_code=completed.returncode,
                stdout=completed.stdout or "",
                stderr=completed.stderr or "",
                duration_seconds=time.monotonic() - start_time,
                command=display,
                expected_exit_code=step.expected_exit_code,
            )
            finish(result.succeeded)

        if self.logger:
            self.logger.log_output(result.stdout, "stdout")
            self.logger.log_output(result.stderr, "stderr")
            self.logger.log(
                f"{step.name} exited with {result.exit_code} "
                f"in {result.duration_seconds:.2f}s",
                "INFO" if result.succeeded else "ERROR",
            )

        self.history.append(result)
        return result

    @staticmethod
    def check(result: ExecutionResult) -> ExecutionResult:
        """
        Raise for an unexpected exit code.

        Raises:
            NonZeroExit: If the result did not succeed
        """
        if not result.succeeded:
            raise NonZeroExit(result)
        return result

    def run_checked(self, step: Step, context: WorkingContext) -> ExecutionResult:
        """Run a step and raise NonZeroExit if it fails."""
        return self.check(self.run(step, context))
