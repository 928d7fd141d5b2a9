"""
MediaPipe Face Mesh adapter: RGB frame -> FaceSample for the first face.
"""

import logging
from typing import Optional

import numpy as np
import mediapipe as mp

from core.types import FaceSample
from modules.detection.landmark_extractor import face_sample

logger = logging.getLogger(__name__)


class FaceDetector:
    """Face Mesh wrapper producing mouth opening and eye-open probabilities."""

    def __init__(self, config: dict):
        self._min_detect_conf = config.get("min_detection_confidence", 0.5)
        self._min_track_conf = config.get("min_tracking_confidence", 0.5)
        self._closed_ear = config.get("closed_ear", 0.12)
        self._open_ear = config.get("open_ear", 0.28)

        self._mp_face_mesh = mp.solutions.face_mesh
        self._face_mesh = None

    def initialize(self):
        self._face_mesh = self._mp_face_mesh.FaceMesh(
            static_image_mode=False,
            max_num_faces=1,
            refine_landmarks=False,
            min_detection_confidence=self._min_detect_conf,
            min_tracking_confidence=self._min_track_conf,
        )
        logger.info("MediaPipe Face Mesh initialized (detect_conf=%.2f, track_conf=%.2f)",
                    self._min_detect_conf, self._min_track_conf)

    def detect(self, rgb_frame: np.ndarray) -> Optional[FaceSample]:
        """Run face detection on an RGB frame.

        Returns:
            FaceSample for the first face, or None when no face is visible
        """
        if self._face_mesh is None:
            self.initialize()

        rgb_frame.flags.writeable = False
        results = self._face_mesh.process(rgb_frame)
        rgb_frame.flags.writeable = True

        if not results.multi_face_landmarks:
            return None
        height, width = rgb_frame.shape[:2]
        return face_sample(results.multi_face_landmarks[0], width, height,
                           self._closed_ear, self._open_ear)

    def close(self):
        if self._face_mesh:
            self._face_mesh.close()
            self._face_mesh = None
            logger.info("MediaPipe Face Mesh closed")

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, *args):
        self.close()
