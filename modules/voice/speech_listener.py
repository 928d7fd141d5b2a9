"""
Continuous speech recognition feeding the voice command router.

One background thread listens for a phrase, hands each recognized phrase to
on_phrase and listens again after restart_delay_ms. The loop is gated by the
voice switch: while it is off nothing is recorded. Engine errors never stop
the loop; they are logged, emitted on the bus and followed by a restart.
"""

import logging
import threading
from typing import Callable, Optional

import speech_recognition as sr

from core.errors import RecognitionFailureError
from core.events import EventBus, Events
from core.switch import ModalitySwitch

logger = logging.getLogger(__name__)


class SpeechListener:
    """Google web speech recognition loop on its own thread."""

    def __init__(self, config: dict, on_phrase: Callable[[str], None],
                 switch: Optional[ModalitySwitch] = None,
                 event_bus: Optional[EventBus] = None,
                 recognizer=None, microphone=None):
        self._language = config.get("language", "es-MX")
        self._restart_delay_s = config.get("restart_delay_ms", 500) / 1000.0
        self._listen_timeout = config.get("listen_timeout_sec", 5)
        self._phrase_limit = config.get("phrase_time_limit_sec", 4)
        self._ambient_s = config.get("ambient_noise_sec", 0.5)

        self._on_phrase = on_phrase
        self._switch = switch
        self._bus = event_bus
        self._recognizer = recognizer if recognizer is not None else sr.Recognizer()
        self._microphone = microphone

        self._stop = threading.Event()
        self._thread = None
        self._calibrated = False
        self._phrases = 0
        self._failures = 0

    def _mic(self):
        if self._microphone is None:
            self._microphone = sr.Microphone()
        return self._microphone

    def calibrate(self):
        """Adjust the energy threshold to the room's ambient noise."""
        with self._mic() as source:
            self._recognizer.adjust_for_ambient_noise(source, duration=self._ambient_s)
        self._calibrated = True
        logger.info("Microphone calibrated (energy threshold %.0f)",
                    getattr(self._recognizer, "energy_threshold", 0.0))

    def listen_once(self) -> Optional[str]:
        """Record and recognize a single phrase.

        Returns:
            The recognized text, or None on silence or unintelligible speech

        Raises:
            RecognitionFailureError: the engine or microphone failed
        """
        try:
            with self._mic() as source:
                audio = self._recognizer.listen(
                    source,
                    timeout=self._listen_timeout,
                    phrase_time_limit=self._phrase_limit,
                )
            text = self._recognizer.recognize_google(audio, language=self._language)
        except sr.WaitTimeoutError:
            return None
        except sr.UnknownValueError:
            logger.debug("Speech not understood")
            return None
        except sr.RequestError as e:
            raise RecognitionFailureError(f"speech service unavailable: {e}") from e
        except OSError as e:
            raise RecognitionFailureError(f"microphone error: {e}") from e

        if not isinstance(text, str) or not text.strip():
            return None
        return text

    def step(self) -> Optional[str]:
        """One listen turn: switch check, recognition and delivery.

        Returns the phrase delivered to on_phrase, if any.
        """
        if self._switch is not None and not self._switch.enabled:
            return None
        try:
            phrase = self.listen_once()
        except RecognitionFailureError as e:
            self._failures += 1
            logger.warning("Recognition failed: %s", e)
            if self._bus is not None:
                self._bus.emit(Events.RECOGNITION_FAILED, error=e)
            return None

        # The switch may have been turned off while recording
        if phrase is None or (self._switch is not None and not self._switch.enabled):
            return None
        self._phrases += 1
        logger.info("Heard: %r", phrase)
        self._on_phrase(phrase)
        return phrase

    def _loop(self):
        if not self._calibrated:
            try:
                self.calibrate()
            except OSError as e:
                logger.error("Microphone unavailable: %s", e)
                if self._bus is not None:
                    self._bus.emit(Events.RECOGNITION_FAILED,
                                   error=RecognitionFailureError(str(e)))
                return

        while not self._stop.is_set():
            if self._switch is not None and not self._switch.wait_enabled(timeout=0.2):
                continue
            try:
                self.step()
            except Exception:
                logger.exception("Voice phrase handler failed")
            self._stop.wait(self._restart_delay_s)

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="speech-listener", daemon=True)
        self._thread.start()
        logger.info("Speech listener started (language=%s)", self._language)

    def stop(self, timeout: float = 2.0):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Speech listener stopped (%d phrases, %d failures)",
                    self._phrases, self._failures)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def phrase_count(self) -> int:
        return self._phrases

    @property
    def failure_count(self) -> int:
        return self._failures
