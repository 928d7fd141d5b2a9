"""
MediaPipe Hands adapter: RGB frame -> HandSample for the first hand.
"""

import logging
import numpy as np
import mediapipe as mp

from core.types import HandSample
from modules.detection.landmark_extractor import hand_points

logger = logging.getLogger(__name__)


class HandDetector:
    """Single-hand MediaPipe tracker feeding the pinch detector."""

    def __init__(self, config: dict):
        self._options = dict(
            static_image_mode=False,
            max_num_hands=1,
            model_complexity=config.get("model_complexity", 0),
            min_detection_confidence=config.get("min_detection_confidence", 0.5),
            min_tracking_confidence=config.get("min_tracking_confidence", 0.5),
        )
        self._solution = mp.solutions.hands
        self._tracker = None
        self._last_hand = None

    def initialize(self):
        self._tracker = self._solution.Hands(**self._options)
        logger.info("Hand tracker ready (%s)", ", ".join(
            f"{key}={value}" for key, value in self._options.items() if key.startswith(("model", "min"))
        ))

    def detect(self, rgb_frame: np.ndarray) -> HandSample:
        """Track the hand in an RGB frame.

        Returns:
            HandSample with 21 (x, y) points, or landmarks=None without a hand
        """
        if self._tracker is None:
            self.initialize()

        # Read-only input lets MediaPipe skip a copy
        rgb_frame.flags.writeable = False
        try:
            found = self._tracker.process(rgb_frame).multi_hand_landmarks
        finally:
            rgb_frame.flags.writeable = True

        self._last_hand = found[0] if found else None
        if self._last_hand is None:
            return HandSample(None)
        return HandSample(hand_points(self._last_hand))

    def draw_landmarks(self, frame: np.ndarray):
        """Overlay the most recently tracked hand on a BGR frame."""
        if self._last_hand is not None:
            mp.solutions.drawing_utils.draw_landmarks(
                frame, self._last_hand, self._solution.HAND_CONNECTIONS)
        return frame

    def close(self):
        if self._tracker is not None:
            self._tracker.close()
            self._tracker = None
            logger.info("Hand tracker closed")

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, *args):
        self.close()
