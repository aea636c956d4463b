"""
Pipeline Models

Dataclass models for stages, steps, and the sequencer state machine.
"""

import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Tuple, Union


class PipelineState(Enum):
    """State of a pipeline run."""

    IDLE = "idle"
    TESTING = "testing"
    BUILDING = "building"
    PUSHING = "pushing"
    DEPLOYING = "deploying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if no further transition is possible."""
        return self in (PipelineState.SUCCEEDED, PipelineState.FAILED)


@dataclass(frozen=True)
class Step:
    """
    A single executable action inside a stage.

    ``command`` is either a shell string or an argv sequence. Argv commands
    run without a shell, so a missing binary surfaces as an ExecutionError
    instead of exit code 127.
    """

    name: str
    command: Union[str, Tuple[str, ...]]
    env: Mapping[str, str] = field(default_factory=dict)
    expected_exit_code: int = 0
    timeout: Optional[float] = None
    cwd: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Step name must not be empty")
        if not isinstance(self.command, str):
            object.__setattr__(self, "command", tuple(self.command))
        if not self.command:
            raise ValueError(f"Step '{self.name}' has no command")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"Step '{self.name}' timeout must be positive")
        env = {str(k): str(v) for k, v in dict(self.env).items()}
        object.__setattr__(self, "env", MappingProxyType(env))

    @property
    def uses_shell(self) -> bool:
        """Check if the command is run through a shell."""
        return isinstance(self.command, str)

    @property
    def display_command(self) -> str:
        """Get the command as a single line."""
        if self.uses_shell:
            return self.command
        return shlex.join(self.command)

    def __repr__(self) -> str:
        return f"Step(name={self.name}, command='{self.display_command[:50]}')"


@dataclass(frozen=True)
class Stage:
    """A named phase of the pipeline with ordered steps."""

    name: str
    steps: Tuple[Step, ...] = ()
    enabled: bool = True

    def __post_init__(self):
        object.__setattr__(self, "steps", tuple(self.steps))
        names = [step.name for step in self.steps]
        if len(names) != len(set(names)):
            raise ValueError(f"Stage '{self.name}' has duplicate step names")

    def __repr__(self) -> str:
        return f"Stage(name={self.name}, steps={len(self.steps)}, enabled={self.enabled})"


@dataclass(frozen=True)
class WorkingContext:
    """Environment a step is run against."""

    stage: str
    env: Mapping[str, str] = field(default_factory=dict)
    cwd: Optional[Path] = None

    def __post_init__(self):
        object.__setattr__(
            self, "env", MappingProxyType({str(k): str(v) for k, v in dict(self.env).items()})
        )

    def merged_env(self, base: Mapping[str, str], step: Step) -> dict:
        """Merge base (process) env, context env, then step env."""
        return {**base, **self.env, **step.env}

    def resolve_cwd(self, step: Step) -> Optional[Path]:
        """Get the directory the step runs in."""
        if step.cwd:
            path = Path(step.cwd)
            if not path.is_absolute() and self.cwd is not None:
                return self.cwd / path
            return path
        return self.cwd
