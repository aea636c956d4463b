"""Deploy command - redeploy an already pushed image"""

import click

from shipline.base import PipelineCommand
from shipline.core import create_sequencer
from shipline.constants import DEFAULT_IMAGE_TAG, STAGE_BUILD, STAGE_PUSH, STAGE_TEST
from shipline.exceptions import ConfigurationError
from shipline.models.deployment import BuiltImage, ImageRef


class DeployCommand(PipelineCommand):
    """Run only the deploy stage for an existing image tag."""

    def __init__(
        self,
        tag: str,
        config_path: str = None,
        verbose: bool = False,
        json_output: bool = False,
    ):
        super().__init__(config_path, verbose=verbose, json_output=json_output)
        self.tag = tag

    def execute(self) -> None:
        """Execute deploy command."""
        config = self.load_config()
        base = ImageRef(config.repository)
        try:
            versioned = base.with_tag(self.tag)
        except ValueError as e:
            raise ConfigurationError(str(e), context=f"Repository: {config.repository}") from e
        image = BuiltImage(versioned=versioned, latest=base.with_tag(DEFAULT_IMAGE_TAG))

        self.show_header(
            title="Deploy",
            details={"Pipeline": config.name, "Image": image.versioned.reference},
        )
        logger = self.init_logger(config.name, "deploy")

        sequencer = create_sequencer(
            config,
            self.secret_store(),
            logger=logger,
            skip_stages=(STAGE_TEST, STAGE_BUILD, STAGE_PUSH),
            image=image,
        )
        report = sequencer.run()

        if self.json_output:
            self.output_json(report.to_dict(), exit_code=0 if report.succeeded else 1)
            return

        if report.succeeded:
            self.print_success(f"{config.raw_config['deploy']['container_name']} now runs {image.versioned}")
            self.print_log_location()
            return

        self.print_error(f"Deploy failed at '{report.failed_step or '-'}'")
        self.print_warning("Verify the container on the host manually")
        self.print_log_location()
        raise SystemExit(1)


@click.command(name="deploy")
@click.option("--tag", "-t", default=DEFAULT_IMAGE_TAG, show_default=True, help="Image tag to deploy")
@click.option("--config", "-c", "config_path", default=None, help="Path to shipline.yml")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def deploy(tag, config_path, verbose, json_output):
    """
    Deploy an already pushed image to the host

    Pulls the image, replaces the running container and starts the new one.
    A missing container is not an error.

    Examples:
        shipline deploy --tag 3f2a9c1
        shipline deploy
    """
    cmd = DeployCommand(tag, config_path=config_path, verbose=verbose, json_output=json_output)
    cmd.run()
