"""
Background expiry of stale pending transactions.
"""

import logging
import threading

from ..lifecycle import LifecycleManager

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Runs LifecycleManager.expire at a fixed interval on a daemon thread.

    A failing sweep is logged and the loop keeps going.
    """

    def __init__(
        self,
        manager: LifecycleManager,
        interval_seconds: float = 60 * 60,
        ttl_hours: float | None = None,
    ):
        self.manager = manager
        self.interval_seconds = interval_seconds
        self.ttl_hours = ttl_hours
        self._shutdown = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sweep_once(self) -> int:
        """Run a single sweep. Returns the number of expired transactions."""
        try:
            return len(self.manager.expire(self.ttl_hours))
        except Exception as e:
            logger.error(f"Error in expiry sweep: {e}", exc_info=True)
            return 0

    def _loop(self) -> None:
        logger.info("Expiry sweeper started (every %ss)", self.interval_seconds)
        while not self._shutdown.is_set():
            self.sweep_once()
            # Event.wait returns early on stop()
            self._shutdown.wait(self.interval_seconds)
        logger.info("Expiry sweeper stopped")

    def start(self) -> None:
        if self.running:
            return
        self._shutdown.clear()
        self._thread = threading.Thread(target=self._loop, name="expiry-sweeper", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._shutdown.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
