"""Validate command - check shipline.yml and secret availability"""

import click
from rich.table import Table

from shipline.base import PipelineCommand


class ValidateCommand(PipelineCommand):
    """Load the config and report missing secrets."""

    def execute(self) -> None:
        """Execute validate command."""
        config = self.load_config()
        missing = self.secret_store().missing(config.secret_refs())
        stages = {
            "test": f"{len(config.test_stage().steps)} step(s)"
            + (" + health wait" if config.health else ""),
            "build": config.repository,
            "push": "enabled" if config.push_enabled else "disabled",
            "deploy": config.raw_config["deploy"]["container_name"],
        }

        if self.json_output:
            self.output_json(
                {
                    "pipeline": config.name,
                    "branch": config.branch,
                    "stages": stages,
                    "missing_secrets": missing,
                    "valid": True,
                }
            )
            return

        self.show_header(title="Validate", details={"Pipeline": config.name, "Branch": config.branch})

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Stage")
        table.add_column("Details")
        for stage, details in stages.items():
            table.add_row(stage, details)
        self.console.print(table)

        self.print_success("Configuration is valid")
        for name in missing:
            self.print_warning(f"Secret {name} is not set (environment or .env)")


@click.command(name="validate")
@click.option("--config", "-c", "config_path", default=None, help="Path to shipline.yml")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def validate(config_path, json_output):
    """
    Validate shipline.yml

    Secret values are never printed; only missing names are listed.

    Examples:
        shipline validate
        shipline validate -c deploy/shipline.yml --json
    """
    cmd = ValidateCommand(config_path=config_path, json_output=json_output)
    cmd.run()
