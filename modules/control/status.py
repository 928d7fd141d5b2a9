"""
Status sinks: where detector and dispatcher state text is shown.

Delivery is fire-and-forget and best-effort. A sink that fails or is gone
drops the update; correctness never depends on it.
"""

import logging
import threading
import time
from collections import deque
from typing import Optional

logger = logging.getLogger(__name__)


class StatusSink:
    """Receives short human-readable state text."""

    def set_status(self, text: str):
        raise NotImplementedError


class LoggingStatusSink(StatusSink):
    """Writes status changes to the log (headless runs)."""

    def __init__(self, name: str = "status"):
        self._logger = logging.getLogger(name)
        self._last: Optional[str] = None

    def set_status(self, text: str):
        if text != self._last:
            self._last = text
            self._logger.info("%s", text)


class LatestStatus(StatusSink):
    """Keeps the latest status for a UI-owning thread to pick up.

    Writers on any thread only swap the stored text; the owner polls
    current() or consumes the change once with take().
    """

    def __init__(self, history: int = 20):
        self._lock = threading.Lock()
        self._text: Optional[str] = None
        self._updated_at = 0.0
        self._changed = False
        self._history = deque(maxlen=history)

    def set_status(self, text: str):
        with self._lock:
            self._text = text
            self._updated_at = time.time()
            self._changed = True
            self._history.append(text)

    def current(self) -> Optional[str]:
        with self._lock:
            return self._text

    def take(self) -> Optional[str]:
        """Return the text if it changed since the last take(), else None."""
        with self._lock:
            if not self._changed:
                return None
            self._changed = False
            return self._text

    @property
    def updated_at(self) -> float:
        with self._lock:
            return self._updated_at

    @property
    def history(self) -> list:
        with self._lock:
            return list(self._history)


def post_status(sink: Optional[StatusSink], text: str):
    """Deliver text to sink, dropping it if the sink is missing or fails."""
    if sink is None or text is None:
        return
    try:
        sink.set_status(text)
    except Exception as e:
        logger.debug("Status update dropped (%s): %s", text, e)
