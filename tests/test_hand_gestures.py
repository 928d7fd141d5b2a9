"""
Tests for Hand Gesture Detection
=================================
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.types import ActionType, HandSample, Modality
from modules.control.cooldown import Cooldown
from modules.recognition.hand_gestures import HandGestureDetector, pinch_distance


def create_hand(distance: float, base=(0.5, 0.5)):
    """21 landmarks with thumb tip and index tip `distance` apart horizontally."""
    landmarks = [(base[0], base[1] + 0.1)] * 21
    landmarks = list(landmarks)
    landmarks[4] = base
    landmarks[8] = (base[0] + distance, base[1])
    return landmarks


class TestPinchDistance:

    def test_euclidean(self):
        landmarks = create_hand(0.0)
        landmarks[8] = (0.53, 0.54)
        assert pinch_distance(landmarks) == pytest.approx(0.05)

    def test_numpy_landmarks(self):
        landmarks = np.array(create_hand(0.1))
        assert pinch_distance(landmarks) == pytest.approx(0.1)

    @pytest.mark.parametrize("landmarks", [
        None,
        [],
        [(0.5, 0.5)] * 9,
        [(0.5, 0.5)] * 4 + [(float("nan"), 0.5)] + [(0.5, 0.5)] * 16,
        [(0.5, 0.5)] * 4 + [("x", "y")] + [(0.5, 0.5)] * 16,
        [None] * 21,
    ])
    def test_malformed_is_none(self, landmarks):
        assert pinch_distance(landmarks) is None


class TestPinchRelease:
    """Hysteresis state machine."""

    @pytest.fixture
    def detector(self):
        return HandGestureDetector({"pinch_threshold": 0.05, "release_threshold": 0.12})

    def test_pinch_then_release_emits(self, detector):
        assert detector.detect(create_hand(0.03), 0) is None
        assert detector.was_pinched
        event = detector.detect(create_hand(0.15), 100)
        assert event.action == ActionType.SWIPE_NEXT
        assert event.source == Modality.HAND
        assert not detector.was_pinched
        assert detector.status_text == "Scroll!"

    def test_release_without_pinch_is_nothing(self, detector):
        assert detector.detect(create_hand(0.2), 0) is None
        assert not detector.was_pinched
        assert detector.status_text == "Pinch fingers"

    def test_inside_band_holds_pinch(self, detector):
        detector.detect(create_hand(0.03), 0)
        assert detector.detect(create_hand(0.08), 50) is None
        assert detector.was_pinched
        assert detector.status_text == "Release"
        assert detector.detect(create_hand(0.12), 100) is None
        assert detector.was_pinched

    def test_no_chatter_within_band(self, detector):
        """Oscillating across the pinch boundary alone never emits."""
        events = [detector.detect(create_hand(d), t * 50)
                  for t, d in enumerate([0.04, 0.06, 0.04, 0.10, 0.049, 0.11] * 3)]
        assert events == [None] * 18
        assert detector.was_pinched

    def test_boundaries(self, detector):
        # Exactly at the pinch threshold does not pinch
        detector.detect(create_hand(0.05), 0)
        assert not detector.was_pinched
        detector.detect(create_hand(0.0499), 10)
        assert detector.was_pinched
        # Exactly at the release threshold does not release
        assert detector.detect(create_hand(0.12), 20) is None
        assert detector.detect(create_hand(0.1201), 30) is not None

    def test_hand_lost_resets_pinch(self, detector):
        detector.detect(create_hand(0.03), 0)
        assert detector.detect(None, 50) is None
        assert not detector.was_pinched
        assert detector.status_text == "Show hand"
        assert detector.detect(create_hand(0.15), 100) is None

    def test_partial_hand_resets_pinch(self, detector):
        detector.detect(create_hand(0.03), 0)
        assert detector.detect(create_hand(0.15)[:10], 50) is None
        assert not detector.was_pinched

    def test_gesture_delay(self, detector):
        detector.detect(create_hand(0.03), 0)
        assert detector.detect(create_hand(0.15), 100) is not None
        # Samples inside the 800 ms delay are ignored entirely
        assert detector.detect(create_hand(0.03), 300) is None
        assert not detector.was_pinched
        assert detector.detect(create_hand(0.03), 900) is None
        assert detector.detect(create_hand(0.15), 1000) is not None

    def test_process_reads_hand_sample(self, detector):
        assert detector.process(HandSample(create_hand(0.03)), 0) is None
        assert detector.process(HandSample(create_hand(0.15)), 10) is not None
        assert detector.process(HandSample(None), 20) is None

    def test_invalid_thresholds(self):
        with pytest.raises(ValueError):
            HandGestureDetector({"pinch_threshold": 0.12, "release_threshold": 0.05})

    def test_shared_cooldown_blocks_hand(self):
        cooldown = Cooldown()
        detector = HandGestureDetector({}, cooldown)
        detector.detect(create_hand(0.03), 0)
        assert cooldown.try_acquire(500)
        assert detector.detect(create_hand(0.15), 600) is None
        # The release was skipped, pinch state survives the cooldown
        assert detector.was_pinched
        assert detector.detect(create_hand(0.15), 1300) is not None

    def test_hand_lost_during_shared_cooldown_resets_pinch(self):
        cooldown = Cooldown()
        detector = HandGestureDetector({}, cooldown)
        detector.detect(create_hand(0.03), 1000)
        assert cooldown.try_acquire(1010)
        assert detector.detect(None, 1040) is None
        assert not detector.was_pinched
        # Opening the hand after the window is not a release
        assert detector.detect(create_hand(0.15), 1850) is None
        assert detector.status_text == "Pinch fingers"

    def test_hand_lost_while_cooling_keeps_status(self):
        cooldown = Cooldown()
        detector = HandGestureDetector({}, cooldown)
        detector.detect(create_hand(0.03), 0)
        detector.detect(create_hand(0.15), 100)
        assert detector.detect(None, 200) is None
        assert detector.status_text == "Scroll!"
        detector.detect(None, 950)
        assert detector.status_text == "Show hand"

    def test_cooldown_consults_shared_window_with_own_delay(self):
        cooldown = Cooldown({"cooldown_ms": 100})
        detector = HandGestureDetector({"gesture_delay_ms": 800}, cooldown)
        assert cooldown.try_acquire(0)
        # Past the dispatcher window but inside the hand delay
        detector.detect(create_hand(0.03), 500)
        assert not detector.was_pinched
        detector.detect(create_hand(0.03), 800)
        assert detector.was_pinched

    def test_reset(self, detector):
        detector.detect(create_hand(0.03), 0)
        detector.reset()
        assert not detector.was_pinched
        assert detector.last_distance is None
