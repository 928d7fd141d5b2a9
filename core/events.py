"""
Event bus for decoupled observers.

Observers (action logging, status, session lifecycle) subscribe to named
events instead of being called directly by the dispatcher or sessions.

Usage:
    bus = EventBus()
    unsubscribe = bus.subscribe(Events.ACTION_DISPATCHED, on_action)
    bus.emit(Events.ACTION_DISPATCHED, event=action_event, now_ms=1500)
    unsubscribe()

The bus is passed explicitly to the components that publish on it; there is
no process-wide instance.
"""

import bisect
import itertools
import logging
import threading
import time
from collections import deque
from typing import Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

# (sort key, callback); sort key is (-priority, subscription order)
_Entry = Tuple[Tuple[int, int], Callable]


def _name(callback) -> str:
    return getattr(callback, "__qualname__", None) or repr(callback)


class EventBus:
    """Synchronous publish/subscribe.

    Listeners run on the emitting thread, highest priority first and in
    subscription order within a priority. A failing listener is logged and
    never affects the emitter or the other listeners.
    """

    def __init__(self, max_history: int = 100):
        self._listeners: Dict[str, List[_Entry]] = {}
        self._order = itertools.count()
        self._lock = threading.Lock()
        self._history = deque(maxlen=max_history)
        self._enabled = True

    def subscribe(self, event_name: str, callback: Callable, priority: int = 0) -> Callable[[], None]:
        """Register callback(**kwargs) for event_name.

        Returns a function that removes this subscription.
        """
        entry = ((-priority, next(self._order)), callback)
        with self._lock:
            self._insert(event_name, entry)
        logger.debug("Subscribed %s to '%s' (priority=%d)", _name(callback), event_name, priority)
        return lambda: self.unsubscribe(event_name, callback)

    def _insert(self, event_name: str, entry: _Entry):
        entries = self._listeners.setdefault(event_name, [])
        keys = [e[0] for e in entries]
        entries.insert(bisect.bisect(keys, entry[0]), entry)

    def unsubscribe(self, event_name: str, callback: Callable):
        with self._lock:
            entries = self._listeners.get(event_name)
            if entries:
                entries[:] = [e for e in entries if e[1] is not callback]

    def emit(self, event_name: str, **kwargs):
        """Call every listener of event_name with kwargs."""
        if not self._enabled:
            return
        with self._lock:
            callbacks = [cb for _, cb in self._listeners.get(event_name, ())]
            self._history.append({
                "event": event_name,
                "time": time.time(),
                "data_keys": sorted(kwargs),
            })

        for callback in callbacks:
            try:
                callback(**kwargs)
            except Exception as e:
                logger.error("Listener %s failed on '%s': %s", _name(callback), event_name, e)

    def set_enabled(self, enabled: bool):
        self._enabled = bool(enabled)

    def clear(self, event_name: str = None):
        """Drop listeners for one event, or for all events."""
        with self._lock:
            if event_name is None:
                self._listeners.clear()
            else:
                self._listeners.pop(event_name, None)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return sum(map(len, self._listeners.values()))

    def get_history(self, last_n: int = 10) -> list:
        """Most recent emits, oldest first."""
        with self._lock:
            return list(self._history)[-last_n:]


class Events:
    """Event names published in the system."""

    # Detection
    GESTURE_DETECTED = "gesture_detected"

    # Dispatch
    ACTION_DISPATCHED = "action_dispatched"
    ACTION_SUPPRESSED = "action_suppressed"
    ACTION_FAILED = "action_failed"
    CAPABILITY_UNAVAILABLE = "capability_unavailable"
    STATUS_CHANGED = "status_changed"

    # Sessions
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"
    SESSION_INTERRUPTED = "session_interrupted"

    # Voice
    VOICE_TOGGLED = "voice_toggled"
    RECOGNITION_FAILED = "recognition_failed"

    # System
    SYSTEM_STARTED = "system_started"
    SYSTEM_SHUTDOWN = "system_shutdown"
