"""
Hand gesture detection: pinch then release.

The thumb-index distance runs through a hysteresis band so a hand resting
near a single boundary cannot chatter:

    was_pinched  condition               -> was_pinched  event
    False        d < PINCH               -> True         -
    True         d > RELEASE             -> False        SWIPE_NEXT
    True         PINCH <= d <= RELEASE   -> True         -
    False        d >= PINCH              -> False        -

Losing the hand resets the pinch, also during a cooldown: tracking cannot
span an occlusion. Visible hands are ignored while cooling.
"""

import logging
import math
from typing import Optional, Sequence

from core.types import (ActionEvent, HandSample, Modality, Point,
                        HAND_LANDMARK_COUNT, INDEX_TIP, THUMB_TIP)
from modules.recognition.gesture_detector import GestureDetector

logger = logging.getLogger(__name__)


def pinch_distance(landmarks: Optional[Sequence[Point]]) -> Optional[float]:
    """Euclidean thumb-tip to index-tip distance in normalized coordinates.

    Returns None for a missing, short or non-numeric landmark list.
    """
    if landmarks is None:
        return None
    try:
        if len(landmarks) < HAND_LANDMARK_COUNT:
            return None
        thumb = landmarks[THUMB_TIP]
        index = landmarks[INDEX_TIP]
        d = math.hypot(float(thumb[0]) - float(index[0]), float(thumb[1]) - float(index[1]))
    except (TypeError, ValueError, IndexError):
        return None
    return d if math.isfinite(d) else None


class HandGestureDetector(GestureDetector):
    """Stateful pinch/release tracker emitting SWIPE_NEXT on release."""

    modality = Modality.HAND

    def __init__(self, config: dict = None, cooldown=None):
        config = config or {}
        super().__init__(config.get("gesture_delay_ms", 800), cooldown)
        self._pinch_threshold = config.get("pinch_threshold", 0.05)
        self._release_threshold = config.get("release_threshold", 0.12)
        if self._pinch_threshold >= self._release_threshold:
            raise ValueError("pinch_threshold must be below release_threshold")

        self._was_pinched = False
        self._last_distance: Optional[float] = None

    def process(self, sample: Optional[HandSample], now_ms: int) -> Optional[ActionEvent]:
        landmarks = getattr(sample, "landmarks", None)
        return self.detect(landmarks, now_ms)

    def detect(self, landmarks: Optional[Sequence[Point]], now_ms: int) -> Optional[ActionEvent]:
        """Process one hand sample.

        Args:
            landmarks: 21 normalized (x, y) points, or None when no hand
            now_ms: Monotonic time of the sample in ms

        Returns:
            SWIPE_NEXT on a completed pinch -> release, otherwise None
        """
        d = pinch_distance(landmarks)
        self._last_distance = d
        cooling = self._in_cooldown(now_ms)
        # Losing the hand resets even while cooling
        if d is None:
            if self._was_pinched:
                logger.debug("Hand lost while pinched, resetting")
            self._was_pinched = False
            if not cooling:
                self._status_text = "Show hand"
            return None

        if cooling:
            return None

        if not self._was_pinched and d < self._pinch_threshold:
            self._was_pinched = True
            self._status_text = "Pinched!"
        elif self._was_pinched and d > self._release_threshold:
            self._was_pinched = False
            return self._emit(ActionEvent.swipe_next(Modality.HAND, "Pinch"), now_ms, "Scroll!")
        elif self._was_pinched and d >= self._pinch_threshold:
            self._status_text = "Release"
        elif not self._was_pinched:
            self._status_text = "Pinch fingers"
        return None

    def reset(self):
        super().reset()
        self._was_pinched = False
        self._last_distance = None

    @property
    def was_pinched(self) -> bool:
        return self._was_pinched

    @property
    def last_distance(self) -> Optional[float]:
        return self._last_distance
