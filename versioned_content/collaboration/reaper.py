import logging
import threading
from typing import Optional

from versioned_content.collaboration.coordinator import (
    CollaborationCoordinator,
)

logger = logging.getLogger(__name__)


class IdleSessionReaper:
    """Periodically closes idle collaborative sessions.

    Starts a daemon thread that calls
    :meth:`CollaborationCoordinator.close_idle_sessions` every `interval`
    seconds until :meth:`stop` is called.
    """

    def __init__(
        self,
        coordinator: CollaborationCoordinator,
        interval: float = 30.0,
    ) -> None:
        """Initialise an :class:`IdleSessionReaper`.

        :param coordinator: The coordinator whose sessions are reaped.
        :param interval: The number of seconds between two sweeps.
        """
        self._coordinator = coordinator
        self._interval = interval
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def __enter__(self) -> 'IdleSessionReaper':
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stopped.clear()
        self._thread = threading.Thread(
            target=self._run, name='idle-session-reaper', daemon=True
        )
        self._thread.start()
        logger.debug("Idle session reaper started (every %ss)", self._interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the reaper, waiting for a sweep in progress to finish."""
        if not self.is_running():
            return
        self._stopped.set()
        self._thread.join(timeout)
        self._thread = None
        logger.debug("Idle session reaper stopped")

    def sweep(self) -> int:
        closed = self._coordinator.close_idle_sessions()
        if closed:
            logger.info("Closed %d idle session(s)", len(closed))
        return len(closed)

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            self.sweep()
