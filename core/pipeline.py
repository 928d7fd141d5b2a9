"""
Core pipeline: per-modality sessions feeding detectors into the dispatcher.

Architecture:
    Signal source -> ModalitySession.feed(sample)
        -> detector.process(sample, now_ms) -> ActionEvent
        -> ActionDispatcher.dispatch(event, now_ms)
        -> input injector + status sink

One session per modality, one producer per session. Sessions on different
threads share nothing but the dispatcher, whose cooldown decides which of
two simultaneous events wins.
"""

import logging
import threading
from typing import Dict, Optional

from core.errors import CapabilityUnavailableError, SessionInterruptedError
from core.events import EventBus, Events
from core.scheduler import monotonic_ms
from core.types import ActionEvent, FeatureSample, Modality, modality_of

logger = logging.getLogger(__name__)


class PipelineResult:
    """Result of feeding one sample."""

    __slots__ = (
        "modality", "now_ms", "event", "dispatched",
        "capability_unavailable", "interrupted", "status",
    )

    def __init__(self, modality: Optional[Modality], now_ms: int):
        self.modality = modality
        self.now_ms = now_ms
        self.event: Optional[ActionEvent] = None
        self.dispatched = False
        self.capability_unavailable = False
        self.interrupted = False
        self.status: Optional[str] = None

    def __repr__(self):
        return (f"PipelineResult({self.modality.value if self.modality else None}, "
                f"event={self.event}, dispatched={self.dispatched})")


class ModalitySession:
    """Lifetime of one modality's processing: owns its detector's state.

    Starting or ending a session resets the detector. A gap between samples
    longer than interrupt_after_ms counts as the source having stopped
    mid-gesture, and the detector is reset before the next sample is used.
    """

    def __init__(self, modality: Modality, detector, dispatcher, config: dict = None,
                 status_sink=None, event_bus: Optional[EventBus] = None):
        config = config or {}
        self.modality = modality
        self._detector = detector
        self._dispatcher = dispatcher
        self._status_sink = status_sink
        self._bus = event_bus
        self._interrupt_after_ms = config.get("interrupt_after_ms")
        self._idle_text = config.get("idle_text", "Ready")
        self._unavailable_text = config.get("unavailable_text", "✗ Enable input injection")

        self._lock = threading.Lock()
        self._active = False
        self._last_sample_ms: Optional[int] = None
        self._last_status: Optional[str] = None
        self._sample_count = 0
        self._event_count = 0
        self._interruptions = 0

    def start(self):
        """Begin a session with fresh detector state."""
        with self._lock:
            self._detector.reset()
            self._active = True
            self._last_sample_ms = None
            self._last_status = None
        self._post(self._idle_text)
        self._emit(Events.SESSION_STARTED, modality=self.modality)
        logger.info("%s session started", self.modality.value)

    def end(self):
        """End the session; its detector state is discarded."""
        with self._lock:
            if not self._active:
                return
            self._active = False
            self._detector.reset()
            self._last_sample_ms = None
        self._emit(Events.SESSION_ENDED, modality=self.modality)
        logger.info("%s session ended (%d samples, %d events, %d interruptions)",
                    self.modality.value, self._sample_count, self._event_count,
                    self._interruptions)

    def interrupt(self, reason: str = "", raise_error: bool = False):
        """The source stopped delivering samples; reset detector state.

        The session stays active and keeps accepting samples. With
        raise_error=True a SessionInterruptedError is raised after recovery,
        for callers that need to propagate it.
        """
        with self._lock:
            self._detector.reset()
            self._last_sample_ms = None
            self._interruptions += 1
        logger.info("%s session interrupted%s", self.modality.value,
                    f": {reason}" if reason else "")
        self._emit(Events.SESSION_INTERRUPTED, modality=self.modality, reason=reason)
        if raise_error:
            raise SessionInterruptedError(self.modality, reason)

    def feed(self, sample: FeatureSample, now_ms: int) -> PipelineResult:
        """Run one sample through detector and dispatcher.

        Malformed samples resolve to no event; an unavailable injector is
        reported in the result and as status text, not raised.
        """
        result = PipelineResult(self.modality, now_ms)
        if not self._active:
            return result

        gap_ms = None
        with self._lock:
            if self._last_sample_ms is not None:
                gap_ms = now_ms - self._last_sample_ms
            self._last_sample_ms = now_ms
            self._sample_count += 1

        if (self._interrupt_after_ms is not None and gap_ms is not None
                and gap_ms > self._interrupt_after_ms):
            self.interrupt(f"no samples for {gap_ms} ms")
            with self._lock:
                self._last_sample_ms = now_ms
            result.interrupted = True

        event = self._detector.process(sample, now_ms)
        self._post_detector_status()
        result.status = self._last_status
        if event is None:
            return result

        result.event = event
        self._event_count += 1
        self._emit(Events.GESTURE_DETECTED, event=event, now_ms=now_ms)

        try:
            result.dispatched = self._dispatcher.dispatch(event, now_ms)
        except CapabilityUnavailableError as e:
            logger.warning("%s gesture %s not dispatched: %s",
                           self.modality.value, event.action.value, e)
            result.capability_unavailable = True
            self._post(self._unavailable_text)
            result.status = self._unavailable_text
        return result

    def _post_detector_status(self):
        text = self._detector.status_text
        if text is not None and text != self._last_status:
            self._post(text)

    def _post(self, text: str):
        self._last_status = text
        if self._status_sink is None:
            return
        try:
            self._status_sink.set_status(text)
        except Exception as e:
            logger.debug("Status update dropped (%s): %s", text, e)
        self._emit(Events.STATUS_CHANGED, modality=self.modality, text=text)

    def _emit(self, event_name: str, **kwargs):
        if self._bus is not None:
            self._bus.emit(event_name, **kwargs)

    @property
    def active(self) -> bool:
        return self._active

    @property
    def detector(self):
        return self._detector

    @property
    def sample_count(self) -> int:
        return self._sample_count

    @property
    def event_count(self) -> int:
        return self._event_count

    @property
    def interruptions(self) -> int:
        return self._interruptions


class Pipeline:
    """Routes feature samples to the session of their modality."""

    def __init__(self, dispatcher, detectors: Dict[Modality, object], config: dict = None,
                 status_sink=None, event_bus: Optional[EventBus] = None, clock=monotonic_ms):
        config = config or {}
        self._dispatcher = dispatcher
        self._clock = clock
        self._bus = event_bus
        self._sessions: Dict[Modality, ModalitySession] = {}

        for modality, detector in detectors.items():
            session_cfg = dict(config.get("defaults", {}))
            session_cfg.update(config.get(modality.value, {}))
            self._sessions[modality] = ModalitySession(
                modality, detector, dispatcher, session_cfg,
                status_sink=status_sink, event_bus=event_bus,
            )

    def start(self, *modalities: Modality):
        """Start sessions for the given modalities (all when none given)."""
        for modality in modalities or tuple(self._sessions):
            self.session(modality).start()

    def stop(self, *modalities: Modality):
        for modality in modalities or tuple(self._sessions):
            self.session(modality).end()
        if not modalities:
            self._dispatcher.cancel_pending()

    def feed(self, sample: FeatureSample, now_ms: int = None) -> PipelineResult:
        """Feed one sample; now_ms defaults to the pipeline clock."""
        if now_ms is None:
            now_ms = self._clock()
        modality = modality_of(sample)
        session = self._sessions.get(modality)
        if session is None:
            logger.debug("No session for sample %r", sample)
            return PipelineResult(modality, now_ms)
        return session.feed(sample, now_ms)

    def session(self, modality: Modality) -> ModalitySession:
        try:
            return self._sessions[modality]
        except KeyError:
            raise KeyError(f"No {modality.value} session configured") from None

    @property
    def modalities(self):
        return tuple(self._sessions)

    @property
    def dispatcher(self):
        return self._dispatcher
