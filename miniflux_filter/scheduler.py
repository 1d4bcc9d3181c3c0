from __future__ import annotations

import threading
from typing import Optional

from .fetchers import MinifluxAPIError, MinifluxClient
from .orchestrator import CycleResult, Orchestrator
from .utils.logging import get_logger

logger = get_logger("mff.scheduler")


class StartupError(Exception):
    """Raised when the initial connectivity check against Miniflux fails."""


class PollScheduler:
    """Runs filtering cycles at a fixed interval until stopped.

    Cycles never overlap: the wait for the next tick starts only after the
    previous cycle returned. A failing cycle is logged and the loop goes on.
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        client: MinifluxClient,
        *,
        interval: float = 300,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.orchestrator = orchestrator
        self.client = client
        self.interval = interval
        self._stop = stop_event or threading.Event()
        self.cycles_run = 0
        self.cycles_failed = 0
        self.last_result: Optional[CycleResult] = None

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def start(self) -> None:
        """Check that Miniflux is reachable and the token is accepted."""
        try:
            self.client.test_connection()
        except MinifluxAPIError as exc:
            raise StartupError(f"Failed initial API connection test: {exc}") from exc

    def stop(self) -> None:
        self._stop.set()

    def run_once(self) -> Optional[CycleResult]:
        self.cycles_run += 1
        try:
            result = self.orchestrator.run_cycle()
        except Exception as exc:  # noqa: BLE001 - no cycle failure is fatal after startup
            self.cycles_failed += 1
            logger.error("Error during filtering cycle: %s", exc, exc_info=True)
            return None
        self.last_result = result
        return result

    def run_forever(self, *, max_cycles: Optional[int] = None) -> None:
        logger.info("Starting filtering engine with %s second intervals", self.interval)
        while not self._stop.is_set():
            self.run_once()
            if max_cycles is not None and self.cycles_run >= max_cycles:
                break
            logger.debug("Sleeping for %s seconds", self.interval)
            if self._stop.wait(self.interval):
                break
        logger.info("Filtering engine stopped after %d cycles", self.cycles_run)
