"""
Base Command Class

Abstract base for all Shipline CLI commands.
Provides common functionality and structure.
"""

from abc import ABC, abstractmethod
from typing import Optional, Any, Dict
import json
from rich.console import Console

from shipline.exceptions import ShiplineError
from shipline.logger import PipelineLogger
from shipline.constants import EXIT_CANCELLED


class BaseCommand(ABC):
    """
    Abstract base command class.

    Provides:
    - Logger initialization
    - Error handling with consistent exit codes
    - JSON output support
    """

    def __init__(self, verbose: bool = False, json_output: bool = False):
        self.verbose = verbose
        self.json_output = json_output
        self.console = Console()
        self.logger: Optional[PipelineLogger] = None

    def init_logger(self, pipeline_name: str, command_name: str) -> Optional[PipelineLogger]:
        """
        Initialize command logger (skip in JSON mode).

        Args:
            pipeline_name: Pipeline name
            command_name: Command name

        Returns:
            PipelineLogger instance or None if JSON mode
        """
        if self.json_output:
            return None
        self.logger = PipelineLogger(pipeline_name, command_name, verbose=self.verbose)
        return self.logger

    def output_json(self, data: Dict[str, Any], exit_code: int = 0) -> None:
        """
        Output data as JSON and exit.

        Args:
            data: Data to output as JSON
            exit_code: Exit code (0 for success, non-zero for error)
        """
        print(json.dumps(data, indent=2))
        if exit_code != 0:
            raise SystemExit(exit_code)

    def output_json_error(
        self, error: str, details: Optional[Dict[str, Any]] = None, exit_code: int = 1
    ) -> None:
        """Output error as JSON and exit."""
        error_data = {"error": error}
        if details:
            error_data["details"] = details
        self.output_json(error_data, exit_code=exit_code)

    def show_header(self, title: str, details: Optional[dict] = None) -> None:
        """Show command header (skip in JSON or verbose mode)."""
        if self.verbose or self.json_output:
            return
        self.console.print(
            f" [bold color(214)]shipline[/bold color(214)] [dim]›[/dim] [bold white]{title}[/bold white]"
        )
        for key, value in (details or {}).items():
            self.console.print(
                f" [bold color(214)]shipline[/bold color(214)] [dim]›[/dim] {key}: [cyan]{value}[/cyan]"
            )
        self.console.print()

    def print_success(self, message: str) -> None:
        """Print success message (skip in JSON mode)."""
        if not self.json_output:
            self.console.print(f"[green]✓ {message}[/green]")

    def print_error(self, message: str) -> None:
        """Print error message (skip in JSON mode)."""
        if not self.json_output:
            self.console.print(f"[red]✗ {message}[/red]")

    def print_warning(self, message: str) -> None:
        """Print warning message (skip in JSON mode)."""
        if not self.json_output:
            self.console.print(f"[yellow]⚠ {message}[/yellow]")

    def print_dim(self, message: str) -> None:
        """Print dim message (skip in JSON mode)."""
        if not self.json_output:
            self.console.print(f"[dim]{message}[/dim]")

    def print_log_location(self) -> None:
        if self.logger and not self.verbose:
            self.console.print(f"\n[dim]Logs saved to:[/dim] {self.logger.log_path}\n")

    @abstractmethod
    def execute(self, **kwargs) -> None:
        """
        Execute command logic.

        Must be implemented by subclasses.
        """
        pass

    def run(self, **kwargs) -> None:
        """
        Run command with error handling.

        Args:
            **kwargs: Command arguments
        """
        try:
            self.execute(**kwargs)
        except KeyboardInterrupt:
            if not self.json_output:
                self.console.print("\n[yellow]⚠️  Operation cancelled by user[/yellow]")
            self.print_log_location()
            raise SystemExit(EXIT_CANCELLED)
        except SystemExit:
            raise
        except ShiplineError as e:
            if self.json_output:
                self.output_json_error(e.message, {"context": e.context} if e.context else None)
            if self.logger:
                self.logger.log_error(e.message, context=e.context)
            else:
                self.print_error(e.message)
                if e.context:
                    self.print_dim(e.context)
            self.print_log_location()
            raise SystemExit(1)
        finally:
            if self.logger:
                self.logger.close()
