"""
Pipeline Sequencer

Runs test → build → push → deploy as a terminal state machine:

    IDLE → TESTING → BUILDING → PUSHING → DEPLOYING → SUCCEEDED
                 ↘         ↘          ↘           ↘
                                FAILED

A stage starts only after every step of the previous stage succeeded.
The first failure moves straight to FAILED and no later stage runs.
SUCCEEDED and FAILED are final until reset() is called.
"""

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, FrozenSet, List, Mapping, Optional, Tuple

from shipline.constants import (
    STAGE_BUILD,
    STAGE_DEPLOY,
    STAGE_ORDER,
    STAGE_PUSH,
    STAGE_TEST,
)
from shipline.exceptions import (
    ConfigurationError,
    DeployAborted,
    HealthTimeout,
    PipelineCancelled,
    PipelineUsageError,
    ShiplineError,
)
from shipline.models.deployment import (
    BuiltImage,
    DeploymentTarget,
    RegistryCredentials,
)
from shipline.models.pipeline import PipelineState, Stage, WorkingContext
from shipline.models.results import PipelineReport

STAGE_STATES: Tuple[Tuple[str, PipelineState], ...] = (
    (STAGE_TEST, PipelineState.TESTING),
    (STAGE_BUILD, PipelineState.BUILDING),
    (STAGE_PUSH, PipelineState.PUSHING),
    (STAGE_DEPLOY, PipelineState.DEPLOYING),
)


@dataclass(frozen=True)
class HealthCheck:
    """Dependency the test stage waits for before running its steps."""

    probe: Callable[[], bool]
    interval: float
    max_attempts: int
    name: str = "dependency"

    def __post_init__(self):
        if not isinstance(self.max_attempts, int) or self.max_attempts < 1:
            raise ConfigurationError(
                f"Health check '{self.name}' needs max_attempts >= 1",
                context=f"Got: {self.max_attempts!r}",
            )
        if self.interval < 0:
            raise ConfigurationError(
                f"Health check '{self.name}' interval must not be negative",
                context=f"Got: {self.interval!r}",
            )


@dataclass(frozen=True)
class PipelineDefinition:
    """Everything one pipeline run needs, independent of collaborators."""

    name: str
    test: Stage
    target: DeploymentTarget
    registry_credentials: RegistryCredentials
    build_context: Path = Path(".")
    test_env: Mapping[str, str] = field(default_factory=dict)
    health: Optional[HealthCheck] = None
    skip_stages: FrozenSet[str] = frozenset()
    image: Optional[BuiltImage] = None

    def __post_init__(self):
        unknown = set(self.skip_stages) - set(STAGE_ORDER)
        if unknown:
            raise ConfigurationError(
                f"Unknown stages: {', '.join(sorted(unknown))}",
                context=f"Valid stages: {', '.join(STAGE_ORDER)}",
            )
        needs_image = {STAGE_PUSH, STAGE_DEPLOY} - set(self.skip_stages)
        if STAGE_BUILD in self.skip_stages and needs_image and self.image is None:
            raise ConfigurationError(
                "Build stage is skipped but no image was given",
                context=f"Stages needing an image: {', '.join(sorted(needs_image))}",
            )

    def is_enabled(self, stage: str) -> bool:
        return stage not in self.skip_stages


class PipelineSequencer:
    """
    Single-use orchestrator for one pipeline run.

    Collaborators are injected so every stage can be replaced in tests:
    runner (StepRunner), health_waiter (HealthWaiter), image_builder
    (build(context) -> BuiltImage), registry (push(image, credentials)),
    deployment_client (deploy(target, image) -> DeployResult).
    """

    def __init__(
        self,
        definition: PipelineDefinition,
        runner,
        health_waiter,
        image_builder,
        registry,
        deployment_client,
        logger=None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.definition = definition
        self.runner = runner
        self.health_waiter = health_waiter
        self.image_builder = image_builder
        self.registry = registry
        self.deployment_client = deployment_client
        self.logger = logger
        self.cancel_event = cancel_event or threading.Event()
        self.state = PipelineState.IDLE
        self.history: List[PipelineState] = [PipelineState.IDLE]

        self._handlers = {
            STAGE_TEST: self._run_test,
            STAGE_BUILD: self._run_build,
            STAGE_PUSH: self._run_push,
            STAGE_DEPLOY: self._run_deploy,
        }

    def cancel(self) -> None:
        """Stop before the next stage starts. A running step is not killed."""
        self.cancel_event.set()

    def reset(self) -> None:
        """Explicitly re-arm a finished sequencer."""
        self.state = PipelineState.IDLE
        self.history = [PipelineState.IDLE]
        self.cancel_event.clear()

    def _transition(self, state: PipelineState) -> None:
        self.state = state
        self.history.append(state)
        if self.logger:
            self.logger.log(f"Pipeline state: {state.value}", "DEBUG")

    def run(self) -> PipelineReport:
        """
        Run every enabled stage in order.

        Returns:
            PipelineReport with the final state, the visited states and
            every step result

        Raises:
            PipelineUsageError: If this sequencer already ran
        """
        if self.state != PipelineState.IDLE:
            raise PipelineUsageError(
                f"Pipeline '{self.definition.name}' already finished ({self.state.value})",
                context="Call reset() to run it again",
            )

        report = PipelineReport(state=self.state, image=self.definition.image)

        for stage, state in STAGE_STATES:
            if not self.definition.is_enabled(stage):
                if self.logger:
                    self.logger.log(f"Stage '{stage}' disabled, skipping", "INFO")
                continue

            if self.cancel_event.is_set():
                self._fail(report, stage, PipelineCancelled(stage))
                break

            self._transition(state)
            if self.logger:
                self.logger.step(f"Stage: {stage}")

            mark = len(self.runner.history)
            try:
                self._handlers[stage](report)
            except ShiplineError as e:
                report.results.extend(self.runner.history[mark:])
                self._fail(report, stage, e)
                break
            except Exception as e:
                # Unexpected errors still end the run in a terminal state
                report.results.extend(self.runner.history[mark:])
                report.failed_stage = stage
                self._transition(PipelineState.FAILED)
                if self.logger:
                    self.logger.log_error(
                        f"Unexpected error in stage '{stage}': {e}",
                        context=type(e).__name__,
                    )
                raise
            report.results.extend(self.runner.history[mark:])

            if self.logger:
                self.logger.success(f"Stage '{stage}' passed")
        else:
            self._transition(PipelineState.SUCCEEDED)

        report.state = self.state
        report.history = list(self.history)
        return report

    def _fail(self, report: PipelineReport, stage: str, error: ShiplineError) -> None:
        report.failed_stage = stage
        report.error = error
        if error.result is not None:
            report.failed_step = error.result.step
        elif getattr(error, "step_name", None):
            report.failed_step = error.step_name
        elif isinstance(error, HealthTimeout):
            report.failed_step = f"health:{error.probe_name}"

        self._transition(PipelineState.FAILED)

        if self.logger:
            self.logger.log_error(
                error.message,
                context=f"Stage: {stage}, Step: {report.failed_step or '-'}",
            )
            if report.failure_output:
                self.logger.log_output(report.failure_output, "failed")

    def _run_test(self, report: PipelineReport) -> None:
        health = self.definition.health
        if health is not None:
            waited = self.health_waiter.wait_ready(
                health.probe, health.interval, health.max_attempts, name=health.name
            )
            if not waited.is_ready:
                raise HealthTimeout(health.name, waited.attempts, waited.elapsed_seconds)
            if self.logger:
                self.logger.success(f"'{health.name}' ready after {waited.attempts} attempt(s)")

        context = WorkingContext(
            stage=STAGE_TEST,
            env=self.definition.test_env,
            cwd=self.definition.build_context,
        )
        for step in self.definition.test.steps:
            self.runner.run_checked(step, context)

    def _run_build(self, report: PipelineReport) -> None:
        report.image = self.image_builder.build(self.definition.build_context)
        if self.logger:
            self.logger.success(f"Built {report.image.versioned}")

    def _run_push(self, report: PipelineReport) -> None:
        ack = self.registry.push(report.image, self.definition.registry_credentials)
        if self.logger:
            self.logger.success(f"Pushed {', '.join(ack.references)}")

    def _run_deploy(self, report: PipelineReport) -> None:
        result = self.deployment_client.deploy(
            self.definition.target, report.image.versioned
        )
        report.deploy = result
        report.results.extend(result.substeps)
        if not result.succeeded:
            raise DeployAborted(
                f"Deploy failed at '{result.failed_step}': {result.error}",
                context="Previous container state is unknown, verify the host manually",
                deploy_result=result,
            )
