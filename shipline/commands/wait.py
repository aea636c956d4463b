"""Wait command - block until a TCP service accepts connections"""

import click

from shipline.base import BaseCommand
from shipline.constants import DEFAULT_HEALTH_INTERVAL, DEFAULT_HEALTH_MAX_ATTEMPTS
from shipline.services import HealthWaiter, tcp_probe


class WaitCommand(BaseCommand):
    """Bounded wait for host:port."""

    def __init__(self, host: str, port: int, interval: float, max_attempts: int, json_output: bool = False):
        super().__init__(json_output=json_output)
        self.host = host
        self.port = port
        self.interval = interval
        self.max_attempts = max_attempts

    def execute(self) -> None:
        """Execute wait command."""
        name = f"{self.host}:{self.port}"
        result = HealthWaiter().wait_ready(
            tcp_probe(self.host, self.port), self.interval, self.max_attempts, name=name
        )

        if self.json_output:
            self.output_json(
                {
                    "target": name,
                    "status": result.status.value,
                    "attempts": result.attempts,
                    "elapsed_seconds": round(result.elapsed_seconds, 3),
                },
                exit_code=0 if result.is_ready else 1,
            )
            return

        if result.is_ready:
            self.print_success(f"{name} ready after {result.attempts} attempt(s)")
            return

        self.print_error(f"{name} not ready after {result.attempts} attempt(s)")
        if result.last_error:
            self.print_dim(result.last_error)
        raise SystemExit(1)


@click.command(name="wait")
@click.option("--host", default="localhost", show_default=True, help="Host to probe")
@click.option("--port", "-p", type=int, required=True, help="Port to probe")
@click.option("--interval", type=click.FloatRange(min=0), default=DEFAULT_HEALTH_INTERVAL, show_default=True, help="Seconds between attempts")
@click.option("--max-attempts", type=click.IntRange(min=1), default=DEFAULT_HEALTH_MAX_ATTEMPTS, show_default=True, help="Give up after this many attempts")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def wait(host, port, interval, max_attempts, json_output):
    """
    Wait for a service (e.g. the test database) to accept connections

    Examples:
        shipline wait --port 5432
        shipline wait --host db --port 5432 --interval 2 --max-attempts 30
    """
    cmd = WaitCommand(host, port, interval, max_attempts, json_output=json_output)
    cmd.run()
