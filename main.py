#!/usr/bin/env python3
"""
Hands-Free Control
Main application entry point and orchestrator.

Architecture:
    - Camera frames -> MediaPipe adapters -> face/hand samples
    - Microphone -> speech listener -> voice phrases
    - core.Pipeline routes each sample to its modality session
    - ActionDispatcher enforces the shared cooldown and drives the injector
    - core.EventBus for decoupled logging and status reporting

Usage:
    python main.py                          # Face + hand + voice, simulated injection
    python main.py --modality hand          # Pinch-to-scroll only
    python main.py --injector adb --device emulator-5554
    python main.py --no-preview             # Headless, status goes to the log
"""

import sys
import time
import signal
import argparse
import logging

import cv2
import numpy as np

from modules.utils.config import Config
from modules.utils.logger import setup_logging, ActionLogger, log_timing
from modules.control.action_dispatcher import ActionDispatcher
from modules.control.input_injector import create_injector
from modules.control.status import LatestStatus, LoggingStatusSink
from modules.recognition.face_gestures import FaceGestureDetector
from modules.recognition.hand_gestures import HandGestureDetector
from modules.recognition.voice_commands import VoiceCommandRouter

from core.events import EventBus, Events
from core.pipeline import Pipeline
from core.scheduler import ThreadScheduler
from core.switch import ModalitySwitch
from core.types import Modality, VoiceSample

logger = logging.getLogger(__name__)

MODALITY_CHOICES = {
    "face": (Modality.FACE,),
    "hand": (Modality.HAND,),
    "voice": (Modality.VOICE,),
    "all": (Modality.FACE, Modality.HAND, Modality.VOICE),
}


class HandsFreeControl:
    """Main application wiring sensors, pipeline and dispatcher together."""

    def __init__(self, config: Config, modalities=MODALITY_CHOICES["all"], preview: bool = True):
        self._config = config
        self._modalities = tuple(modalities)
        self._preview = preview and config.get("visualization.enabled", True)
        self._running = False

        # --- Events ---
        self._bus = EventBus()
        self._action_logger = ActionLogger().attach(self._bus)

        # --- Status ---
        if self._preview:
            self._status = LatestStatus(history=config.get("status.history_size", 50))
        else:
            self._status = LoggingStatusSink()

        # --- Control ---
        self._injector = create_injector(config.injection)
        self._scheduler = ThreadScheduler()
        self._dispatcher = ActionDispatcher(
            self._injector, self._scheduler, config.dispatch,
            status_sink=self._status, event_bus=self._bus,
        )

        # --- Recognition ---
        self._voice_switch = ModalitySwitch("voice", enabled=config.get("voice.enabled", True))
        self._voice_switch.on_change(
            lambda enabled: self._bus.emit(Events.VOICE_TOGGLED, enabled=enabled)
        )
        detectors = {}
        if Modality.FACE in self._modalities:
            detectors[Modality.FACE] = FaceGestureDetector(config.face, self._dispatcher.cooldown)
        if Modality.HAND in self._modalities:
            detectors[Modality.HAND] = HandGestureDetector(config.hand, self._dispatcher.cooldown)
        if Modality.VOICE in self._modalities:
            detectors[Modality.VOICE] = VoiceCommandRouter(self._voice_switch)

        self._pipeline = Pipeline(
            self._dispatcher, detectors, config.session,
            status_sink=self._status, event_bus=self._bus,
        )

        # --- Sensors (created lazily so optional extras are only needed when used) ---
        self._camera = None
        self._face_detector = None
        self._hand_detector = None
        self._overlay = None
        self._listener = None

        self._bus.subscribe(Events.CAPABILITY_UNAVAILABLE, self._on_capability_unavailable)
        self._bus.subscribe(Events.RECOGNITION_FAILED, self._on_recognition_failed)

        logger.info("HandsFreeControl initialized (modalities=%s)",
                    ", ".join(m.value for m in self._modalities))

    @property
    def uses_camera(self) -> bool:
        return Modality.FACE in self._modalities or Modality.HAND in self._modalities

    def _on_capability_unavailable(self, **kwargs):
        logger.warning("Input injection unavailable; enable it and retry the gesture")

    def _on_recognition_failed(self, error=None, **kwargs):
        logger.debug("Recognition failure reported: %s", error)

    def _on_phrase(self, phrase: str):
        self._pipeline.feed(VoiceSample(phrase))

    def _open_sensors(self) -> bool:
        if self.uses_camera:
            from modules.capture.camera_manager import CameraManager

            self._camera = CameraManager(self._config.camera)
            if not self._camera.open():
                logger.error("Camera %s unavailable; check the device id and permissions",
                             self._config.get("camera.device_id", 0))
                return False
            self._camera.start_async()

        if Modality.FACE in self._modalities:
            from modules.detection.face_detector import FaceDetector
            self._face_detector = FaceDetector(self._config.face)
            self._face_detector.initialize()

        if Modality.HAND in self._modalities:
            from modules.detection.hand_detector import HandDetector
            self._hand_detector = HandDetector(self._config.hand)
            self._hand_detector.initialize()

        if Modality.VOICE in self._modalities:
            from modules.voice.speech_listener import SpeechListener
            self._listener = SpeechListener(
                self._config.voice, self._on_phrase,
                switch=self._voice_switch, event_bus=self._bus,
            )

        if self._preview:
            from modules.visualization.status_overlay import StatusOverlay
            self._overlay = StatusOverlay(self._status, self._config.visualization)
        return True

    def start(self) -> bool:
        """Open sensors, start sessions and run the main loop until quit."""
        if not self._open_sensors():
            self._shutdown()
            return False

        self._pipeline.start()
        if self._listener is not None:
            self._listener.start()

        self._running = True
        self._bus.emit(Events.SYSTEM_STARTED, modalities=self._modalities)
        try:
            self._run_main_loop()
        finally:
            self._shutdown()
        return True

    @log_timing
    def _process_frame(self, frame: np.ndarray) -> bool:
        """Feed one camera frame to the face and hand sessions.

        Returns True when a hand was visible in the frame.
        """
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        if self._face_detector is not None:
            face = self._face_detector.detect(rgb)
            # No face: skip the sample; a long gap interrupts the session
            if face is not None:
                self._pipeline.feed(face)
        if self._hand_detector is None:
            return False
        hand = self._hand_detector.detect(rgb)
        self._pipeline.feed(hand)
        return hand.has_hand

    def _run_main_loop(self):
        window_name = self._config.get("visualization.window_name", "Hands-Free Control")
        draw_landmarks = self._config.get("visualization.draw_landmarks", True)
        width, height = self._config.get("camera.width", 640), self._config.get("camera.height", 480)
        labels = [m.value for m in self._modalities]

        while self._running:
            frame = None
            if self._camera is not None:
                _, frame = self._camera.read()
                if frame is not None:
                    hand_visible = self._process_frame(frame)
                    if draw_landmarks and hand_visible:
                        self._hand_detector.draw_landmarks(frame)
            elif self._preview:
                frame = np.zeros((height, width, 3), dtype=np.uint8)

            if not self._preview:
                if frame is None:
                    time.sleep(0.005)
                continue

            if frame is not None:
                voice_state = self._voice_switch.enabled if self._listener else None
                cv2.imshow(window_name, self._overlay.render(frame, labels, voice_state))

            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                self._running = False
            elif key == ord("v"):
                self._voice_switch.toggle()

    def _shutdown(self):
        """Clean shutdown of all modules."""
        logger.info("Stopping sensors and sessions")
        self._running = False
        if self._listener is not None:
            self._listener.stop()
        self._pipeline.stop()
        self._scheduler.shutdown(wait=False)
        if self._camera is not None:
            self._camera.stop()
        for detector in (self._face_detector, self._hand_detector):
            if detector is not None:
                detector.close()
        if self._preview:
            cv2.destroyAllWindows()

        self._bus.emit(Events.SYSTEM_SHUTDOWN)
        logger.info("Actions dispatched: %d %s", self._action_logger.total_actions,
                    self._action_logger.counts_by_modality())
        # Silence continuations still queued on the scheduler
        self._bus.set_enabled(False)
        logger.info("Stopped")

    def handle_signal(self, signum, frame):
        """Handle SIGINT/SIGTERM for graceful shutdown."""
        logger.info("Received signal %d, stopping", signum)
        self._running = False


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Hands-Free Control - face, hand and voice gestures for short-video feeds"
    )
    parser.add_argument(
        "--modality", choices=sorted(MODALITY_CHOICES), default="all",
        help="Input modality to run"
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to config.yaml"
    )
    parser.add_argument(
        "--camera", type=int, default=None,
        help="Camera device ID"
    )
    parser.add_argument(
        "--injector", choices=["simulated", "xdotool", "adb"], default=None,
        help="Input injection backend"
    )
    parser.add_argument(
        "--device", type=str, default=None,
        help="adb device serial"
    )
    parser.add_argument(
        "--no-preview", action="store_true",
        help="Run without the preview window"
    )
    return parser.parse_args(argv)


def apply_overrides(config: Config, args) -> Config:
    """Fold command-line flags into the loaded config."""
    overrides = {}
    if args.camera is not None:
        overrides.setdefault("camera", {})["device_id"] = args.camera
    if args.injector is not None:
        overrides.setdefault("injection", {})["backend"] = args.injector
    if args.device is not None:
        overrides.setdefault("injection", {})["device_serial"] = args.device
    if args.no_preview:
        overrides.setdefault("visualization", {})["enabled"] = False
    return config.update(overrides)


def main(argv=None):
    args = parse_args(argv)

    config = apply_overrides(Config().load(config_path=args.config), args)

    log_cfg = config.logging
    setup_logging(log_cfg.get("level", "INFO"), log_cfg.get("file"),
                  log_cfg.get("max_size_mb", 10), log_cfg.get("backup_count", 3))

    logger.info("Hands-Free Control %s | modality=%s injector=%s",
                config.get("system.version", "1.0.0"), args.modality,
                config.get("injection.backend", "simulated"))

    app = HandsFreeControl(config, MODALITY_CHOICES[args.modality],
                           preview=not args.no_preview)

    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, app.handle_signal)

    return 0 if app.start() else 1


if __name__ == "__main__":
    sys.exit(main())
