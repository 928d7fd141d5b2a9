"""
Common behaviour of the camera-driven gesture detectors.
"""

import logging
from typing import Optional

from core.types import ActionEvent, Modality

logger = logging.getLogger(__name__)


class GestureDetector:
    """Base for per-modality detectors.

    Each detector owns its state exclusively. The cooldown it is given is
    only read: detectors skip work while the last action (their own or any
    other modality's, as recorded by the dispatcher) is within their
    gesture delay.
    """

    modality: Modality = None

    def __init__(self, gesture_delay_ms: int, cooldown=None):
        self._gesture_delay_ms = gesture_delay_ms
        self._cooldown = cooldown
        self._last_emit_ms: Optional[int] = None
        self._status_text: Optional[str] = None

    def process(self, sample, now_ms: int) -> Optional[ActionEvent]:
        """Uniform entry point used by sessions."""
        raise NotImplementedError

    def reset(self):
        """Return to the initial state, as at session start."""
        self._last_emit_ms = None

    def _in_cooldown(self, now_ms: int) -> bool:
        last = self._last_emit_ms
        if last is not None and now_ms - last < self._gesture_delay_ms:
            return True
        return self._cooldown is not None and self._cooldown.is_cooling(now_ms, self._gesture_delay_ms)

    def _emit(self, event: ActionEvent, now_ms: int, status: str) -> ActionEvent:
        self._last_emit_ms = now_ms
        self._status_text = status
        logger.debug("%s gesture: %s (%s)", self.modality.value, event.action.value, status)
        return event

    @property
    def status_text(self) -> Optional[str]:
        """Latest state text for the status sink (None until first change)."""
        return self._status_text

    @property
    def gesture_delay_ms(self) -> int:
        return self._gesture_delay_ms
