"""Background check that the host keeps the tailnet address it is bound to."""
import logging
import threading
from enum import Enum
from typing import Optional

from tailscale_exporter.errors import FetchError, FetchExhaustion, IdentityDrift

logger = logging.getLogger(__name__)


class WatchdogState(str, Enum):
    """Watchdog lifecycle state."""
    RUNNING = "running"
    DEGRADED = "degraded"
    TERMINATED = "terminated"


class AddressWatchdog:
    """
    Periodically re-fetches tailscale status and compares the self address
    against the address the metrics server was bound to at startup.

    - Successful fetch with the bound address: failure count resets, RUNNING.
    - Failed fetch: DEGRADED; reaching ``max_failures`` consecutive failures
      terminates with FetchExhaustion.
    - Successful fetch with a different address: terminates with
      IdentityDrift at once.

    TERMINATED is absorbing. The watchdog never exits the process; the
    fatal error is left in ``fatal_error`` and returned from run() for the
    driver to act on.
    """

    def __init__(
        self,
        fetcher,
        boot_address: str,
        interval_s: float = 20.0,
        max_failures: int = 20,
    ):
        """
        Args:
            fetcher: object whose fetch() returns a TailscaleStatus
            boot_address: address the server is bound to
            interval_s: seconds between checks
            max_failures: consecutive failed fetches tolerated before terminating
        """
        self.fetcher = fetcher
        self.bound_address = boot_address
        self.interval_s = interval_s
        self.max_failures = max_failures

        self.state = WatchdogState.RUNNING
        self.consecutive_failures = 0
        self.fatal_error: Optional[Exception] = None

        self._stop_event = threading.Event()

    def tick(self) -> WatchdogState:
        """Run one fetch-and-compare step and return the resulting state."""
        if self.state is WatchdogState.TERMINATED:
            return self.state

        try:
            observed = self.fetcher.fetch().self_node.primary_address()
        except FetchError as e:
            return self._record_failure(e)

        if observed != self.bound_address:
            return self.terminate(IdentityDrift(self.bound_address, observed))

        if self.state is WatchdogState.DEGRADED:
            logger.info(
                f"Status fetch recovered after {self.consecutive_failures} failures"
            )
        self.consecutive_failures = 0
        self.state = WatchdogState.RUNNING
        return self.state

    def _record_failure(self, error: FetchError) -> WatchdogState:
        self.consecutive_failures += 1
        if self.consecutive_failures >= self.max_failures:
            return self.terminate(FetchExhaustion(self.consecutive_failures, error))

        logger.warning(
            f"Status fetch failed ({self.consecutive_failures}/{self.max_failures}): {error}"
        )
        self.state = WatchdogState.DEGRADED
        return self.state

    def terminate(self, error: Exception) -> WatchdogState:
        """Enter TERMINATED with the given error."""
        logger.critical(f"Address watchdog terminated: {error}")
        self.fatal_error = error
        self.state = WatchdogState.TERMINATED
        self._stop_event.set()
        return self.state

    def run(self) -> Optional[Exception]:
        """Tick every interval until terminated or stopped.

        Returns:
            The fatal error, or None when stopped via stop().
        """
        logger.info(
            f"Address watchdog started: bound to {self.bound_address}, "
            f"interval {self.interval_s}s"
        )
        while not self._stop_event.wait(self.interval_s):
            if self.tick() is WatchdogState.TERMINATED:
                break
        return self.fatal_error

    def stop(self):
        """Cancel the loop; takes effect at the next wait."""
        self._stop_event.set()
