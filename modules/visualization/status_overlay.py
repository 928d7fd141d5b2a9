"""
Preview window overlay: the latest status text, a modality banner and the
voice switch state, rendered by the thread that owns the window.
"""

import time
import logging
from typing import Iterable, Optional

import cv2
import numpy as np

from modules.control.status import LatestStatus

logger = logging.getLogger(__name__)

_OK = (0, 220, 0)
_FAIL = (0, 0, 255)
_INFO = (255, 255, 255)
_MUTED = (150, 150, 150)


def status_color(text: str):
    if text.startswith("✓"):
        return _OK
    if text.startswith("✗"):
        return _FAIL
    return _INFO


def ascii_text(text: str) -> str:
    """cv2's Hershey fonts only cover ASCII; swap the check and cross marks."""
    return text.replace("✓", "OK").replace("✗", "X").encode("ascii", "replace").decode("ascii")


class StatusOverlay:
    """Draws LatestStatus onto BGR frames with a short fade after each change."""

    def __init__(self, status: LatestStatus, config: dict = None):
        config = config or {}
        self._status = status
        self._fade_after_s = config.get("fade_after_ms", 1200) / 1000.0
        self._fade_s = 0.3
        self._font_scale = config.get("font_scale", 0.8)

    def opacity(self, now: Optional[float] = None) -> float:
        """1.0 while fresh, fading to 0.4 once the status has gone stale."""
        now = time.time() if now is None else now
        age = now - self._status.updated_at
        if age <= self._fade_after_s:
            return 1.0
        progress = min((age - self._fade_after_s) / self._fade_s, 1.0)
        return 1.0 - 0.6 * progress

    def render(self, frame: np.ndarray, modalities: Iterable[str] = (),
               voice_enabled: Optional[bool] = None) -> np.ndarray:
        text = self._status.current()
        h, w = frame.shape[:2]

        banner = " + ".join(modalities)
        if voice_enabled is not None:
            banner += f"   voice: {'on' if voice_enabled else 'off'} [v]"
        if banner:
            cv2.putText(frame, banner, (10, 25), cv2.FONT_HERSHEY_SIMPLEX,
                        0.5, _MUTED, 1, cv2.LINE_AA)

        if not text:
            return frame

        opacity = self.opacity()
        label = ascii_text(text)
        (tw, th), _ = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, self._font_scale, 2)
        x1, y1 = (w - tw) // 2 - 15, h - th - 40
        x2, y2 = x1 + tw + 30, h - 20

        overlay = frame.copy()
        cv2.rectangle(overlay, (x1, y1), (x2, y2), (40, 40, 40), -1)
        cv2.rectangle(overlay, (x1, y1), (x2, y2), status_color(text), 2)
        cv2.addWeighted(overlay, opacity * 0.8, frame, 1 - opacity * 0.8, 0, frame)
        cv2.putText(frame, label, (x1 + 15, y2 - 12), cv2.FONT_HERSHEY_SIMPLEX,
                    self._font_scale, status_color(text), 2, cv2.LINE_AA)
        return frame
