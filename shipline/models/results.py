"""
Result Models

Dataclass models for step, health, deploy, and pipeline results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple, TYPE_CHECKING

from shipline.models.pipeline import PipelineState
from shipline.models.deployment import BuiltImage, ImageRef

if TYPE_CHECKING:
    from shipline.exceptions import ShiplineError


@dataclass(frozen=True)
class ExecutionResult:
    """Result of one completed step (local process or remote script)."""

    stage: str
    step: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_seconds: float = 0.0
    command: str = ""
    expected_exit_code: int = 0

    @property
    def succeeded(self) -> bool:
        """Check if the step exited as expected."""
        return self.exit_code == self.expected_exit_code

    @property
    def output(self) -> str:
        """Get combined output (stdout + stderr)."""
        return f"{self.stdout}\n{self.stderr}".strip()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "stage": self.stage,
            "step": self.step,
            "command": self.command,
            "exit_code": self.exit_code,
            "expected_exit_code": self.expected_exit_code,
            "succeeded": self.succeeded,
            "duration_seconds": round(self.duration_seconds, 3),
        }

    def __repr__(self) -> str:
        return (
            f"ExecutionResult(stage={self.stage}, step={self.step}, "
            f"exit_code={self.exit_code}, duration={self.duration_seconds:.2f}s)"
        )


class HealthStatus(Enum):
    """Outcome of a health wait."""

    READY = "ready"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class HealthResult:
    """Result of HealthWaiter.wait_ready."""

    status: HealthStatus
    attempts: int
    elapsed_seconds: float
    last_error: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.status == HealthStatus.READY


@dataclass(frozen=True)
class PushAck:
    """Registry acknowledgement for pushed tags."""

    references: Tuple[str, ...]
    registry: str


@dataclass
class DeployResult:
    """Result of DeploymentClient.deploy."""

    container_name: str
    image: ImageRef
    substeps: List[ExecutionResult] = field(default_factory=list)
    ignored: List[str] = field(default_factory=list)
    failed_step: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        """Check if every sub-step completed."""
        return self.failed_step is None

    @property
    def requires_manual_verification(self) -> bool:
        """A failed deploy leaves the previous instance in an unknown state."""
        return not self.succeeded

    @property
    def completed_steps(self) -> List[str]:
        """Names of sub-steps that completed (including ignored not-found)."""
        return [r.step for r in self.substeps if r.step != self.failed_step]

    def __repr__(self) -> str:
        return (
            f"DeployResult(container={self.container_name}, image={self.image}, "
            f"succeeded={self.succeeded})"
        )


@dataclass
class PipelineReport:
    """Outcome of one sequencer run."""

    state: PipelineState
    history: List[PipelineState] = field(default_factory=list)
    results: List[ExecutionResult] = field(default_factory=list)
    failed_stage: Optional[str] = None
    failed_step: Optional[str] = None
    error: Optional["ShiplineError"] = None
    image: Optional[BuiltImage] = None
    deploy: Optional[DeployResult] = None

    @property
    def succeeded(self) -> bool:
        return self.state == PipelineState.SUCCEEDED

    @property
    def failure_output(self) -> str:
        """Captured output of the failing step, if any."""
        if self.error is not None and self.error.result is not None:
            return self.error.result.output
        return ""

    def stage_results(self, stage: str) -> List[ExecutionResult]:
        """Get results recorded for one stage."""
        return [r for r in self.results if r.stage == stage]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        data: Dict[str, Any] = {
            "state": self.state.value,
            "history": [s.value for s in self.history],
            "results": [r.to_dict() for r in self.results],
        }
        if self.image is not None:
            data["image"] = self.image.versioned.reference
        if not self.succeeded:
            data["failed_stage"] = self.failed_stage
            data["failed_step"] = self.failed_step
            data["error"] = self.error.message if self.error else None
            data["output"] = self.failure_output
        return data

    def __repr__(self) -> str:
        return f"PipelineReport(state={self.state.value}, results={len(self.results)})"
