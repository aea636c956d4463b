"""Health waiter - bounded polling of an external dependency."""

import socket
import time
from typing import Callable, Optional

from shipline.constants import DEFAULT_TCP_PROBE_TIMEOUT
from shipline.exceptions import ShiplineError
from shipline.models.pipeline import Step, WorkingContext
from shipline.models.results import HealthResult, HealthStatus

Probe = Callable[[], bool]


class HealthWaiter:
    """
    Polls a probe until it reports healthy or the attempts run out.

    Polling is always bounded: there is no "wait forever" mode, and there
    is no sleep after the final attempt.
    """

    def __init__(
        self,
        logger=None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.logger = logger
        self._sleep = sleep
        self._clock = clock

    def wait_ready(
        self,
        probe: Probe,
        interval: float,
        max_attempts: int,
        name: str = "dependency",
    ) -> HealthResult:
        """
        Invoke probe() every interval seconds, at most max_attempts times.

        A probe raising OSError or ShiplineError counts as not ready.

        Returns:
            HealthResult with READY or TIMED_OUT status
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if interval < 0:
            raise ValueError("interval must not be negative")

        start = self._clock()
        last_error = None

        for attempt in range(1, max_attempts + 1):
            if self.logger:
                self.logger.log(f"Health check '{name}' attempt {attempt}/{max_attempts}", "DEBUG")

            try:
                healthy = bool(probe())
            except (OSError, ShiplineError) as e:
                healthy = False
                last_error = str(e)

            if healthy:
                return HealthResult(
                    status=HealthStatus.READY,
                    attempts=attempt,
                    elapsed_seconds=self._clock() - start,
                )

            if attempt < max_attempts:
                self._sleep(interval)

        if self.logger:
            self.logger.warning(f"'{name}' not ready after {max_attempts} attempts")
        return HealthResult(
            status=HealthStatus.TIMED_OUT,
            attempts=max_attempts,
            elapsed_seconds=self._clock() - start,
            last_error=last_error,
        )


def tcp_probe(host: str, port: int, timeout: float = DEFAULT_TCP_PROBE_TIMEOUT) -> Probe:
    """Probe that succeeds when a TCP connection can be opened."""

    def probe() -> bool:
        with socket.create_connection((host, port), timeout=timeout):
            return True

    return probe


def command_probe(runner, step: Step, context: Optional[WorkingContext] = None) -> Probe:
    """Probe that succeeds when a step (e.g. pg_isready) exits as expected."""
    context = context or WorkingContext(stage="health")

    def probe() -> bool:
        return runner.run(step, context).succeeded

    return probe
