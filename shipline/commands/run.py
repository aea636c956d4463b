"""Run command - test, build, push and deploy for a repository event"""

import signal
import threading

import click

from shipline.base import PipelineCommand
from shipline.core import PipelineTrigger, create_sequencer
from shipline.core.triggers import EVENTS
from shipline.models.pipeline import PipelineState


class RunCommand(PipelineCommand):
    """Run the pipeline for a push or pull-request event."""

    def __init__(
        self,
        event: str,
        branch: str,
        skip_stages: tuple = (),
        config_path: str = None,
        verbose: bool = False,
        json_output: bool = False,
    ):
        super().__init__(config_path, verbose=verbose, json_output=json_output)
        self.event = event
        self.branch = branch
        self.skip_stages = skip_stages
        self.cancel_event = threading.Event()

    def _install_cancel_handler(self) -> None:
        """SIGTERM stops the pipeline before its next stage."""
        if threading.current_thread() is not threading.main_thread():
            return

        def handle(_signum, _frame):
            self.cancel_event.set()
            if self.logger:
                self.logger.warning("Cancellation requested, stopping before next stage")

        signal.signal(signal.SIGTERM, handle)

    def execute(self) -> None:
        """Execute run command."""
        config = self.load_config()
        self.show_header(
            title="Pipeline Run",
            details={"Pipeline": config.name, "Event": self.event, "Branch": self.branch},
        )
        logger = self.init_logger(config.name, f"run-{self.event}")
        secrets = self.secret_store()
        self._install_cancel_handler()

        trigger = PipelineTrigger(
            config.branch,
            lambda: create_sequencer(
                config,
                secrets,
                logger=logger,
                skip_stages=self.skip_stages,
                cancel_event=self.cancel_event,
            ),
            logger=logger,
        )
        report = trigger.dispatch(self.event, self.branch)

        if report is None:
            if self.json_output:
                self.output_json({"state": "skipped", "branch": self.branch})
            else:
                self.print_dim(
                    f"Branch '{self.branch}' does not trigger pipeline '{config.name}' "
                    f"(runs on '{config.branch}')"
                )
            return

        if self.json_output:
            self.output_json(report.to_dict(), exit_code=0 if report.succeeded else 1)
            return

        path = " → ".join(state.value for state in report.history)
        self.print_dim(f"\nStates: {path}")
        if report.state == PipelineState.SUCCEEDED:
            self.print_success(f"Pipeline '{config.name}' succeeded")
            self.print_log_location()
            return

        self.print_error(
            f"Pipeline '{config.name}' failed at stage '{report.failed_stage}'"
            f" (step: {report.failed_step or '-'})"
        )
        if report.deploy is not None and report.deploy.requires_manual_verification:
            self.print_warning("Deploy aborted: verify the container on the host manually")
        self.print_log_location()
        raise SystemExit(1)


@click.command(name="run")
@click.option(
    "--event",
    type=click.Choice(EVENTS),
    default="push",
    show_default=True,
    help="Repository event that triggered the run",
)
@click.option("--branch", "-b", required=True, help="Branch the event targets")
@click.option("--config", "-c", "config_path", default=None, help="Path to shipline.yml")
@click.option("--test/--no-test", "run_test", default=True, help="Run test stage")
@click.option("--build/--no-build", "run_build", default=True, help="Build Docker image")
@click.option("--push/--no-push", "run_push", default=True, help="Push to registry")
@click.option("--deploy/--no-deploy", "run_deploy", default=True, help="Deploy to host")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def run(event, branch, config_path, run_test, run_build, run_push, run_deploy, verbose, json_output):
    """
    Run the pipeline: test → build → push → deploy

    The pipeline only runs when the branch matches 'pipeline.branch'.
    Any failure stops the run; later stages never start.

    Examples:
        shipline run --branch main
        shipline run --event pull_request --branch main --no-deploy
        shipline run -b main -v
    """
    toggles = {"test": run_test, "build": run_build, "push": run_push, "deploy": run_deploy}
    skip = tuple(stage for stage, enabled in toggles.items() if not enabled)
    cmd = RunCommand(
        event,
        branch,
        skip_stages=skip,
        config_path=config_path,
        verbose=verbose,
        json_output=json_output,
    )
    cmd.run()
