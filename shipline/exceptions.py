"""
Shipline Exception Hierarchy

Every failure that can stop a pipeline run derives from ShiplineError.
Errors raised because of a specific step carry that step's ExecutionResult.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from shipline.models.results import ExecutionResult, DeployResult


class ShiplineError(Exception):
    """Base exception for all Shipline errors."""

    def __init__(
        self,
        message: str,
        context: Optional[str] = None,
        result: Optional["ExecutionResult"] = None,
    ):
        self.message = message
        self.context = context
        self.result = result
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with optional context."""
        if self.context:
            return f"{self.message}\nContext: {self.context}"
        return self.message


class ConfigurationError(ShiplineError):
    """Raised when pipeline configuration is invalid or missing."""

    pass


class SecretError(ShiplineError):
    """Raised when a named secret cannot be resolved."""

    pass


class ExecutionError(ShiplineError):
    """Raised when a step's process cannot be started."""

    def __init__(
        self,
        message: str,
        context: Optional[str] = None,
        result: Optional["ExecutionResult"] = None,
        step_name: Optional[str] = None,
    ):
        if step_name is None and result is not None:
            step_name = result.step
        self.step_name = step_name
        super().__init__(message, context, result=result)


class StepTimeout(ExecutionError):
    """Raised when a step exceeds its time bound."""

    def __init__(
        self,
        step_name: str,
        timeout: float,
        stage: str = "",
        result: Optional["ExecutionResult"] = None,
    ):
        self.timeout = timeout
        message = f"Step '{step_name}' timed out after {timeout:g}s"
        context = f"Stage: {stage}" if stage else None
        super().__init__(message, context, result=result, step_name=step_name)


class NonZeroExit(ShiplineError):
    """Raised by callers that treat an unexpected exit code as fatal."""

    def __init__(self, result: "ExecutionResult"):
        message = (
            f"Step '{result.step}' exited with {result.exit_code} "
            f"(expected {result.expected_exit_code})"
        )
        super().__init__(message, context=f"Stage: {result.stage}", result=result)


class HealthTimeout(ShiplineError):
    """Raised when a dependency never became ready."""

    def __init__(self, probe_name: str, attempts: int, elapsed: float):
        self.probe_name = probe_name
        self.attempts = attempts
        self.elapsed = elapsed
        message = f"'{probe_name}' not ready after {attempts} attempts"
        context = f"Waited {elapsed:.1f}s"
        super().__init__(message, context)


class TransportError(ShiplineError):
    """Raised when a registry or remote host is unreachable or rejects auth."""

    pass


class DeployAborted(ShiplineError):
    """Raised when a deploy failed; the remote state must be checked by hand."""

    def __init__(
        self,
        message: str,
        context: Optional[str] = None,
        deploy_result: Optional["DeployResult"] = None,
    ):
        self.deploy_result = deploy_result
        result = None
        if deploy_result is not None and deploy_result.substeps:
            result = deploy_result.substeps[-1]
        super().__init__(message, context, result=result)


class PipelineUsageError(ShiplineError):
    """Raised when a finished sequencer is run again without reset()."""

    pass


class PipelineCancelled(ShiplineError):
    """Raised when a cancel signal arrives between stages."""

    def __init__(self, next_stage: str):
        self.next_stage = next_stage
        super().__init__(
            "Pipeline cancelled", context=f"Stopped before stage '{next_stage}'"
        )
