"""
Threaded camera capture that always holds the newest frame.

The face and hand adapters only ever want the current frame, so there is a
single slot: a frame the consumer never read is overwritten and counted as
dropped instead of queued.
"""

import threading
import logging
import cv2

logger = logging.getLogger(__name__)

_IDLE_WAIT_S = 0.005


class CameraManager:
    """Keep-latest camera capture on a background thread."""

    def __init__(self, config: dict):
        self._device_id = config.get("device_id", 0)
        self._requested = {
            cv2.CAP_PROP_FRAME_WIDTH: config.get("width", 640),
            cv2.CAP_PROP_FRAME_HEIGHT: config.get("height", 480),
            cv2.CAP_PROP_FPS: config.get("fps", 30),
            cv2.CAP_PROP_BUFFERSIZE: config.get("buffer_size", 1),
        }
        self._mirror = config.get("flip_horizontal", True)
        self._warmup = config.get("warmup_frames", 5)
        self._size = (self._requested[cv2.CAP_PROP_FRAME_WIDTH],
                      self._requested[cv2.CAP_PROP_FRAME_HEIGHT])

        self._cap = None
        self._worker = None
        self._halt = threading.Event()
        self._slot_lock = threading.Lock()
        self._latest = None
        self._captured = 0
        self._delivered = 0
        self._dropped = 0

    def open(self) -> bool:
        """Open the device and apply the requested capture properties."""
        cap = cv2.VideoCapture(self._device_id)
        if not cap.isOpened():
            logger.error("Camera %d could not be opened", self._device_id)
            cap.release()
            return False

        for prop, value in self._requested.items():
            cap.set(prop, value)
        # Drivers may round the resolution; keep what they actually chose
        self._size = (int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)) or self._size[0],
                      int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)) or self._size[1])
        logger.info("Camera %d ready at %dx%d", self._device_id, *self._size)

        for _ in range(self._warmup):
            cap.read()
        self._cap = cap
        return True

    def start_async(self):
        if self._cap is None or (self._worker and self._worker.is_alive()):
            return
        self._halt.clear()
        self._worker = threading.Thread(target=self._run, name="camera-capture", daemon=True)
        self._worker.start()
        logger.info("Capture thread started")

    def _run(self):
        while not self._halt.is_set():
            ok, frame = self._cap.read()
            if not ok or frame is None:
                self._halt.wait(_IDLE_WAIT_S)
                continue
            if self._mirror:
                frame = cv2.flip(frame, 1)
            with self._slot_lock:
                if self._captured > self._delivered:
                    self._dropped += 1
                self._latest = frame
                self._captured += 1

    def read(self):
        """Take the newest frame if it has not been handed out yet.

        Returns:
            tuple: (frame_id, BGR frame), or (None, None) when nothing new arrived
        """
        with self._slot_lock:
            if self._latest is None or self._delivered == self._captured:
                return None, None
            self._delivered = self._captured
            return self._captured, self._latest.copy()

    @property
    def frames_captured(self) -> int:
        return self._captured

    @property
    def dropped_frames(self) -> int:
        return self._dropped

    @property
    def resolution(self) -> tuple:
        return self._size

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def stop(self):
        """Join the capture thread and release the device."""
        self._halt.set()
        if self._worker is not None:
            self._worker.join(timeout=2.0)
            self._worker = None
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        logger.info("Camera %d released after %d frames (%d dropped)",
                    self._device_id, self._captured, self._dropped)

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.stop()
