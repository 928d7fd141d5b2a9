"""
Shared domain types for the Hands-Free Control system.

Centralizes enums, feature samples and action events used across modules
to eliminate circular imports and ensure type consistency.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple, Union


# =============================================================================
# Modalities
# =============================================================================

class Modality(Enum):
    """Independent sensing modalities feeding the gesture core."""
    FACE = "face"
    HAND = "hand"
    VOICE = "voice"


# =============================================================================
# Feature Samples
# =============================================================================

Point = Tuple[float, float]

# MediaPipe hand landmark indices used by the pinch gesture
THUMB_TIP = 4
INDEX_TIP = 8
HAND_LANDMARK_COUNT = 21


@dataclass(frozen=True)
class FaceSample:
    """One analysed face: mouth opening and per-eye open probability.

    A probability of None means the engine did not classify the eye in this
    frame; it is treated as open.
    """
    mouth_open_distance: float
    left_eye_open_prob: Optional[float] = None
    right_eye_open_prob: Optional[float] = None


@dataclass(frozen=True)
class HandSample:
    """One analysed frame for the hand modality.

    landmarks is None when no hand was found; otherwise 21 normalized
    (x, y) points in MediaPipe order.
    """
    landmarks: Optional[Sequence[Point]] = None

    @property
    def has_hand(self) -> bool:
        return self.landmarks is not None and len(self.landmarks) > 0


@dataclass(frozen=True)
class VoiceSample:
    """One completed recognition turn, lower-cased."""
    phrase: str


FeatureSample = Union[FaceSample, HandSample, VoiceSample]

SAMPLE_MODALITY = {
    FaceSample: Modality.FACE,
    HandSample: Modality.HAND,
    VoiceSample: Modality.VOICE,
}


def modality_of(sample) -> Optional[Modality]:
    """Return the modality a feature sample belongs to, or None."""
    return SAMPLE_MODALITY.get(type(sample))


# =============================================================================
# Actions
# =============================================================================

class ActionType(Enum):
    """The fixed set of actions replayed on the host device."""
    SWIPE_NEXT = "swipe_next"
    SWIPE_PREV = "swipe_prev"
    TAP = "tap"
    DOUBLE_TAP = "double_tap"
    TAP_AT = "tap_at"
    LONG_PRESS = "long_press"
    VOLUME_DOWN = "volume_down"


class SwipeDirection(Enum):
    """Vertical stroke direction. UP advances the feed, DOWN goes back."""
    UP = "up"
    DOWN = "down"


ACTION_LABELS = {
    ActionType.SWIPE_NEXT: "Next",
    ActionType.SWIPE_PREV: "Back",
    ActionType.TAP: "Tap",
    ActionType.DOUBLE_TAP: "Like",
    ActionType.TAP_AT: "Tap",
    ActionType.LONG_PRESS: "Save",
    ActionType.VOLUME_DOWN: "Volume down",
}


def _check_pct(name: str, value) -> float:
    value = float(value)
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be within [0, 1], got {value!r}")
    return value


@dataclass(frozen=True)
class ActionEvent:
    """A discrete, modality-independent user intent.

    Created by a detector and consumed exactly once by the dispatcher.
    Only TAP_AT carries a position.
    """
    action: ActionType
    x_pct: Optional[float] = None
    y_pct: Optional[float] = None
    source: Optional[Modality] = None
    label: str = ""

    def __post_init__(self):
        if self.action is ActionType.TAP_AT:
            if self.x_pct is None or self.y_pct is None:
                raise ValueError("TAP_AT requires x_pct and y_pct")
            object.__setattr__(self, "x_pct", _check_pct("x_pct", self.x_pct))
            object.__setattr__(self, "y_pct", _check_pct("y_pct", self.y_pct))
        if not self.label:
            object.__setattr__(self, "label", ACTION_LABELS[self.action])

    def __repr__(self):
        if self.action is ActionType.TAP_AT:
            return f"ActionEvent({self.action.value}@{self.x_pct:.2f},{self.y_pct:.2f})"
        return f"ActionEvent({self.action.value})"

    @classmethod
    def swipe_next(cls, source: Optional[Modality] = None, label: str = "") -> "ActionEvent":
        return cls(ActionType.SWIPE_NEXT, source=source, label=label)

    @classmethod
    def swipe_prev(cls, source: Optional[Modality] = None, label: str = "") -> "ActionEvent":
        return cls(ActionType.SWIPE_PREV, source=source, label=label)

    @classmethod
    def tap(cls, source: Optional[Modality] = None, label: str = "") -> "ActionEvent":
        return cls(ActionType.TAP, source=source, label=label)

    @classmethod
    def double_tap(cls, source: Optional[Modality] = None, label: str = "") -> "ActionEvent":
        return cls(ActionType.DOUBLE_TAP, source=source, label=label)

    @classmethod
    def tap_at(cls, x_pct: float, y_pct: float, source: Optional[Modality] = None,
               label: str = "") -> "ActionEvent":
        return cls(ActionType.TAP_AT, x_pct=x_pct, y_pct=y_pct, source=source, label=label)

    @classmethod
    def long_press(cls, source: Optional[Modality] = None, label: str = "") -> "ActionEvent":
        return cls(ActionType.LONG_PRESS, source=source, label=label)

    @classmethod
    def volume_down(cls, source: Optional[Modality] = None, label: str = "") -> "ActionEvent":
        return cls(ActionType.VOLUME_DOWN, source=source, label=label)
