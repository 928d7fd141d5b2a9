"""
Cross-modal action cooldown.

A single timestamp shared by every modality: once an action is accepted no
other action may be accepted until the window elapses, regardless of which
detector produced it. Face and hand pipelines run on separate threads and
can race to dispatch in the same instant; try_acquire() is a check-and-set
under one lock, so exactly one of them wins.

Detectors may also consult the timestamp with their own, longer window
(is_cooling) to skip work while an action is still settling.
"""

import logging
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class Cooldown:
    """Single-writer-at-a-time cooldown over a shared last-action timestamp."""

    def __init__(self, config: dict = None):
        config = config or {}
        self._window_ms = int(config.get("cooldown_ms", 800))
        self._lock = threading.Lock()
        self._last_action_ms: Optional[int] = None
        self._accepted = 0
        self._rejected = 0

    def try_acquire(self, now_ms: int) -> bool:
        """Accept an action at now_ms if the window has elapsed.

        On success the timestamp is moved to now_ms atomically.
        """
        with self._lock:
            if self._last_action_ms is not None and now_ms - self._last_action_ms < self._window_ms:
                self._rejected += 1
                logger.debug("Cooldown active: %d ms left",
                             self._window_ms - (now_ms - self._last_action_ms))
                return False
            self._last_action_ms = now_ms
            self._accepted += 1
            return True

    def is_cooling(self, now_ms: int, window_ms: int = None) -> bool:
        """Whether now_ms is still inside window_ms (default: own window) of the last action."""
        window = self._window_ms if window_ms is None else window_ms
        with self._lock:
            last = self._last_action_ms
        return last is not None and now_ms - last < window

    def remaining_ms(self, now_ms: int) -> int:
        with self._lock:
            last = self._last_action_ms
        if last is None:
            return 0
        return max(0, self._window_ms - (now_ms - last))

    @property
    def last_action_ms(self) -> Optional[int]:
        with self._lock:
            return self._last_action_ms

    @property
    def window_ms(self) -> int:
        return self._window_ms

    @property
    def accepted_count(self) -> int:
        return self._accepted

    @property
    def rejected_count(self) -> int:
        return self._rejected

    def reset(self):
        """Forget the last action."""
        with self._lock:
            self._last_action_ms = None
            self._accepted = 0
            self._rejected = 0
