"""
Face gesture detection: open mouth and double blink.

Gestures:
    mouth open (distance > threshold)       -> SWIPE_NEXT, checked first
    both eyes closed twice within 800 ms    -> DOUBLE_TAP

Blink state machine (blink_count in {0, 1}):
    closed, no blink yet or window expired  -> count = 1, remember time
    closed, count == 1 inside the window    -> count = 0, emit DOUBLE_TAP
    anything else                           -> nothing
"""

import logging
import math
from typing import Optional

from core.types import ActionEvent, FaceSample, Modality
from modules.recognition.gesture_detector import GestureDetector

logger = logging.getLogger(__name__)


class FaceGestureDetector(GestureDetector):
    """Turns face samples into MouthOpen / DoubleBlink action events."""

    modality = Modality.FACE

    def __init__(self, config: dict = None, cooldown=None):
        config = config or {}
        super().__init__(config.get("gesture_delay_ms", 1500), cooldown)
        self._mouth_open_threshold = config.get("mouth_open_threshold", 25.0)
        self._eye_closed_threshold = config.get("eye_closed_threshold", 0.3)
        self._double_blink_window_ms = config.get("double_blink_window_ms", 800)

        self._last_blink_ms: Optional[int] = None
        self._blink_count = 0

    def process(self, sample: Optional[FaceSample], now_ms: int) -> Optional[ActionEvent]:
        return self.detect(sample, now_ms)

    def detect(self, sample: Optional[FaceSample], now_ms: int) -> Optional[ActionEvent]:
        """Process one face sample.

        Args:
            sample: FaceSample, or None when no face was found
            now_ms: Monotonic time of the sample in ms

        Returns:
            ActionEvent or None; at most one per call
        """
        if self._in_cooldown(now_ms):
            return None
        if sample is None:
            return None

        mouth = _as_float(getattr(sample, "mouth_open_distance", None))
        if mouth is not None and mouth > self._mouth_open_threshold:
            return self._emit(ActionEvent.swipe_next(Modality.FACE, "Mouth"), now_ms, "Mouth!")

        if not self._eyes_closed(sample):
            return None

        if self._last_blink_ms is None or now_ms - self._last_blink_ms > self._double_blink_window_ms:
            self._blink_count = 1
            self._last_blink_ms = now_ms
            logger.debug("First blink at %d", now_ms)
        elif self._blink_count == 1:
            self._blink_count = 0
            return self._emit(ActionEvent.double_tap(Modality.FACE, "Double blink"),
                              now_ms, "Double blink!")
        return None

    def _eyes_closed(self, sample: FaceSample) -> bool:
        left = _as_float(getattr(sample, "left_eye_open_prob", None))
        right = _as_float(getattr(sample, "right_eye_open_prob", None))
        left = 1.0 if left is None else left
        right = 1.0 if right is None else right
        return left < self._eye_closed_threshold and right < self._eye_closed_threshold

    def reset(self):
        super().reset()
        self._last_blink_ms = None
        self._blink_count = 0

    @property
    def blink_count(self) -> int:
        return self._blink_count

    @property
    def last_blink_ms(self) -> Optional[int]:
        return self._last_blink_ms


def _as_float(value) -> Optional[float]:
    """float(value) if it is a finite number, else None."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None
