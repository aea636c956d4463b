"""
Logging system for Shipline
Provides real-time logging to files with clean console output
"""

import re
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, Optional, Set, TextIO

from rich.console import Console
from rich.live import Live
from rich.padding import Padding
from rich.spinner import Spinner
from rich.text import Text

from shipline.constants import (
    LOG_DATE_FORMAT,
    LOG_TIME_FORMAT,
    REDACTED,
    SHORT_SECRET_LENGTH,
)

console = Console()

ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


class PipelineLogger:
    """
    Manages logging for pipeline runs
    - Writes all output to log files in real-time
    - Shows clean progress UI in console (unless verbose)
    - Redacts registered secret values from everything it writes
    """

    def __init__(
        self,
        pipeline_name: str,
        operation: str,
        verbose: bool = False,
        log_dir: Optional[Path] = None,
        output_console: Optional[Console] = None,
    ):
        """
        Initialize logger

        Args:
            pipeline_name: Name of the pipeline
            operation: Operation name (e.g., 'run', 'deploy')
            verbose: If True, show all output in console
            log_dir: Root logs directory (default: ./logs)
            output_console: Rich console (default: module console)
        """
        self.pipeline_name = pipeline_name
        self.operation = operation
        self.verbose = verbose
        self.console = output_console or console
        self.log_file: Optional[TextIO] = None
        self.current_step = ""
        self.has_errors = False
        self._secrets: Set[str] = set()

        # Structure: logs/{pipeline}/{date}/{time}_{operation}.log
        now = datetime.now()
        root = Path(log_dir) if log_dir is not None else Path.cwd() / "logs"
        run_dir = root / pipeline_name / now.strftime(LOG_DATE_FORMAT)
        run_dir.mkdir(parents=True, exist_ok=True)
        self.log_path = run_dir / f"{now.strftime(LOG_TIME_FORMAT)}_{operation}.log"

        # Line-buffered for real-time tailing
        self.log_file = open(self.log_path, "w", buffering=1)
        self._write_log_header()

    def _write_log_header(self):
        """Write log file header"""
        header = f"""
{"=" * 80}
Shipline Pipeline Log
{"=" * 80}
Pipeline: {self.pipeline_name}
Operation: {self.operation}
Started: {datetime.now().isoformat()}
{"=" * 80}

"""
        self.log_file.write(header)
        self.log_file.flush()

    def add_secret(self, value: Optional[str]) -> None:
        """Register a secret value that must never reach the log or console."""
        if value and value.strip():
            self._secrets.add(value)
            # Multi-line secrets (keys) are also masked line by line
            for line in value.splitlines():
                if len(line.strip()) >= 4:
                    self._secrets.add(line.strip())

    def redact(self, text: str) -> str:
        """Replace registered secret values with a placeholder."""
        if not text:
            return text
        # Longest first so a secret containing another is fully masked
        for secret in sorted(self._secrets, key=len, reverse=True):
            if len(secret) < SHORT_SECRET_LENGTH:
                pattern = rf"(?<![\w.-]){re.escape(secret)}(?![\w.-])"
                text = re.sub(pattern, REDACTED, text)
            else:
                text = text.replace(secret, REDACTED)
        return text

    def _write(self, text: str) -> None:
        if self.log_file:
            self.log_file.write(text)
            self.log_file.flush()

    def log(self, message: str, level: str = "INFO"):
        """
        Log a message to file and optionally console

        Args:
            message: Message to log
            level: Log level (INFO, WARNING, ERROR, DEBUG)
        """
        message = self.redact(message)
        timestamp = datetime.now().strftime("%H:%M:%S")
        self._write(f"[{timestamp}] [{level}] {message}\n")

        if self.verbose:
            if level == "ERROR":
                self.console.print(f"[red]{message}[/red]")
            elif level == "WARNING":
                self.console.print(f"[yellow]{message}[/yellow]")
            elif level == "DEBUG":
                self.console.print(f"[dim]{message}[/dim]")
            else:
                self.console.print(message)

    def log_command(self, command: str):
        """Log a command being executed"""
        self.log(f"Executing: {command}", "DEBUG")

    def log_output(self, output: str, stream: str = "stdout"):
        """
        Log command output

        Always written to the log file, shown in console only if verbose.

        Args:
            output: Command output (single line or multiline)
            stream: Stream name (stdout, stderr)
        """
        if not output:
            return

        clean_output = self.redact(ANSI_ESCAPE.sub("", output))
        for line in clean_output.splitlines():
            self._write(f"  [{stream}] {line}\n")

        if self.verbose:
            self.console.print(clean_output, markup=False, highlight=False)

    def log_error(self, error: str, context: Optional[str] = None):
        """
        Log an error with context

        Args:
            error: Error message
            context: Additional context (e.g., failing stage)
        """
        self.has_errors = True
        error = self.redact(error)
        context = self.redact(context) if context else context

        error_block = f"""
{"!" * 80}
ERROR OCCURRED
{"!" * 80}
{error}
"""
        if context:
            error_block += f"\nContext: {context}\n"
        error_block += f"{'!' * 80}\n\n"
        self._write(error_block)

        if not self.verbose:
            self.console.print()

        self.console.print(f"[bold red]✗ {error}[/bold red]")
        if context:
            self.console.print(f"  [color(208)]{context}[/color(208)]")

    def step(self, step_name: str):
        """
        Start a new step

        Args:
            step_name: Name of the step
        """
        if self.current_step and not self.verbose:
            self.console.print()

        self.current_step = step_name
        self.log(f"Step: {step_name}", "INFO")

        if not self.verbose:
            self.console.print(f"[color(214)]▶[/color(214)] [white]{step_name}[/white]")

    def success(self, message: str):
        """Log a success message"""
        self.log(message, "INFO")

        if not self.verbose:
            self.console.print(f"  [dim]✓ {self.redact(message)}[/dim]")

    def warning(self, message: str):
        """Log a warning message"""
        self.log(message, "WARNING")

        if not self.verbose:
            self.console.print(f"  [yellow]⚠[/yellow] [dim]{self.redact(message)}[/dim]")

    @contextmanager
    def progress(self, description: str) -> Iterator[Callable[[bool], None]]:
        """
        Show a spinner while a command runs.

        Yields a callback taking the success flag; the spinner line is
        replaced with ✓ or ✗ when the block exits.
        """
        outcome = {"ok": None}

        def finish(ok: bool) -> None:
            outcome["ok"] = ok

        if self.verbose:
            yield finish
            return

        spinner = Spinner("dots", text=f"[cyan]{description}...[/cyan]")
        with Live(
            Padding(spinner, (0, 0, 0, 2)),
            console=self.console,
            refresh_per_second=10,
            transient=False,
        ) as live:
            try:
                yield finish
            finally:
                if outcome["ok"]:
                    line = Text("  ✓ ", style="dim")
                else:
                    line = Text("  ✗ ", style="red")
                line.append(description, style="dim")
                live.update(line)

    def close(self):
        """Close log file"""
        if self.log_file:
            footer = f"""
{"=" * 80}
Completed: {datetime.now().isoformat()}
Status: {"FAILED" if self.has_errors else "SUCCESS"}
{"=" * 80}
"""
            self.log_file.write(footer)
            self.log_file.close()
            self.log_file = None

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, _exc_tb):
        """Context manager exit"""
        if exc_type is not None and exc_type != SystemExit:
            self.log_error(
                str(exc_val) if exc_val else "Operation failed",
                context=f"{exc_type.__name__}",
            )
        self.close()
        return False
