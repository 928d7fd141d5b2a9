"""
Landmark geometry shared by the MediaPipe adapters.

Converts MediaPipe landmark lists into the plain feature values the gesture
detectors consume: 21 normalized (x, y) hand points, a mouth opening in
pixels, and an eye-open probability derived from the eye aspect ratio (EAR).
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from core.types import FaceSample, HAND_LANDMARK_COUNT

logger = logging.getLogger(__name__)

# MediaPipe Face Mesh indices
UPPER_LIP_INNER = 13
LOWER_LIP_INNER = 14
# EAR order: outer corner, two upper lid points, inner corner, two lower lid points
LEFT_EYE = (33, 160, 158, 133, 153, 144)
RIGHT_EYE = (362, 385, 387, 263, 373, 380)


def hand_points(hand_landmarks) -> Optional[List[Tuple[float, float]]]:
    """MediaPipe NormalizedLandmarkList (or plain list) -> 21 (x, y) tuples."""
    points = getattr(hand_landmarks, "landmark", hand_landmarks)
    if points is None:
        return None
    result = [(float(lm.x), float(lm.y)) for lm in points]
    if len(result) < HAND_LANDMARK_COUNT:
        logger.debug("Partial hand: %d landmarks", len(result))
        return None
    return result[:HAND_LANDMARK_COUNT]


def face_pixels(face_landmarks, frame_width: int, frame_height: int) -> np.ndarray:
    """Face Mesh landmarks -> (N, 2) float array in pixels."""
    points = getattr(face_landmarks, "landmark", face_landmarks)
    coords = np.array([(lm.x, lm.y) for lm in points], dtype=np.float32)
    coords[:, 0] *= frame_width
    coords[:, 1] *= frame_height
    return coords


def mouth_open_distance(pixels: np.ndarray) -> float:
    """Vertical gap between the inner lips, in pixels."""
    return float(abs(pixels[LOWER_LIP_INNER, 1] - pixels[UPPER_LIP_INNER, 1]))


def eye_aspect_ratio(pixels: np.ndarray, eye: Sequence[int]) -> float:
    """(|p2-p6| + |p3-p5|) / (2 |p1-p4|); ~0.3 open, ~0.1 closed."""
    p1, p2, p3, p4, p5, p6 = (pixels[i] for i in eye)
    horizontal = np.linalg.norm(p1 - p4)
    if horizontal <= 1e-6:
        return 0.0
    vertical = np.linalg.norm(p2 - p6) + np.linalg.norm(p3 - p5)
    return float(vertical / (2.0 * horizontal))


def eye_open_probability(ear: float, closed_ear: float = 0.12, open_ear: float = 0.28) -> float:
    """Map an EAR linearly onto [0, 1] between the closed and open references."""
    if open_ear <= closed_ear:
        raise ValueError("open_ear must be greater than closed_ear")
    return float(np.clip((ear - closed_ear) / (open_ear - closed_ear), 0.0, 1.0))


def face_sample(face_landmarks, frame_width: int, frame_height: int,
                closed_ear: float = 0.12, open_ear: float = 0.28) -> FaceSample:
    """Build the FaceSample for one Face Mesh result."""
    pixels = face_pixels(face_landmarks, frame_width, frame_height)
    left = eye_open_probability(eye_aspect_ratio(pixels, LEFT_EYE), closed_ear, open_ear)
    right = eye_open_probability(eye_aspect_ratio(pixels, RIGHT_EYE), closed_ear, open_ear)
    return FaceSample(
        mouth_open_distance=mouth_open_distance(pixels),
        left_eye_open_prob=left,
        right_eye_open_prob=right,
    )
