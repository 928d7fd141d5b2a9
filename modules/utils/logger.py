"""
Logging setup and the action log fed from the event bus.
"""

import logging
import logging.handlers
import time
from collections import Counter, deque
from functools import wraps
from pathlib import Path

from core.events import Events

CONSOLE_FORMAT = "%(asctime)s  %(levelname)-5s  %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)-30s | %(message)s"
TIME_FORMAT = "%H:%M:%S"


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Route all loggers to the console and, if log_file is set, a rotating file.

    The console stays at INFO; the file receives everything down to `level`.
    """
    handlers = [logging.StreamHandler()]
    handlers[0].setLevel(logging.INFO)
    handlers[0].setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=TIME_FORMAT))

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            path, maxBytes=int(max_size_mb * 1024 * 1024),
            backupCount=backup_count, encoding="utf-8",
        )
        rotating.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=TIME_FORMAT))
        handlers.append(rotating)

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    for handler in handlers:
        root.addHandler(handler)
    return root


class ActionLogger:
    """Keeps a history of dispatched actions and logs one line per action."""

    def __init__(self, max_history: int = 500):
        self.logger = logging.getLogger("action_events")
        self._history = deque(maxlen=max_history)
        self._failures = 0

    def attach(self, event_bus):
        """Subscribe to dispatch outcome events on the bus."""
        event_bus.subscribe(Events.ACTION_DISPATCHED, self._on_dispatched)
        event_bus.subscribe(Events.ACTION_FAILED, self._on_failed)
        return self

    def detach(self, event_bus):
        event_bus.unsubscribe(Events.ACTION_DISPATCHED, self._on_dispatched)
        event_bus.unsubscribe(Events.ACTION_FAILED, self._on_failed)

    def _on_dispatched(self, event=None, now_ms=None, **kwargs):
        if event is not None:
            self.log_action(event, now_ms)

    def _on_failed(self, event=None, error=None, **kwargs):
        self._failures += 1
        action = event.action.value if event is not None else "?"
        self.logger.warning("Failed: %-11s | %s", action, error)

    def log_action(self, event, now_ms=None):
        """Record one dispatched ActionEvent."""
        modality = event.source.value if event.source else None
        self._history.append({
            "timestamp": time.time(),
            "now_ms": now_ms,
            "modality": modality,
            "action": event.action.value,
            "label": event.label,
        })
        self.logger.info("%-11s <- %-5s | %s", event.action.value, modality or "-", event.label)

    def get_history(self, last_n=None):
        """Recorded actions, oldest first; the last `last_n` when given."""
        entries = list(self._history)
        return entries[-last_n:] if last_n else entries

    def counts_by_modality(self) -> dict:
        return dict(Counter(entry["modality"] or "-" for entry in self._history))

    @property
    def total_actions(self):
        return len(self._history)

    @property
    def failures(self):
        return self._failures


def log_timing(func):
    """Log how long each call of func takes, at DEBUG on func's module logger."""
    timing_logger = logging.getLogger(func.__module__)

    @wraps(func)
    def timed(*args, **kwargs):
        started = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            timing_logger.debug("%s: %.2f ms", func.__qualname__,
                                (time.perf_counter() - started) * 1000)

    return timed
