"""
Enable/disable switch for a modality, toggled by an external control surface.
"""

import logging
import threading
from typing import Callable, List

logger = logging.getLogger(__name__)


class ModalitySwitch:
    """Thread-safe boolean with change notifications."""

    def __init__(self, name: str, enabled: bool = True):
        self.name = name
        self._enabled = threading.Event()
        if enabled:
            self._enabled.set()
        self._callbacks: List[Callable[[bool], None]] = []

    @property
    def enabled(self) -> bool:
        return self._enabled.is_set()

    def set(self, enabled: bool):
        was = self.enabled
        if enabled:
            self._enabled.set()
        else:
            self._enabled.clear()
        if was != bool(enabled):
            logger.info("%s %s", self.name, "enabled" if enabled else "disabled")
            for callback in list(self._callbacks):
                try:
                    callback(bool(enabled))
                except Exception as e:
                    logger.error("Switch callback error (%s): %s", self.name, e)

    def enable(self):
        self.set(True)

    def disable(self):
        self.set(False)

    def toggle(self) -> bool:
        self.set(not self.enabled)
        return self.enabled

    def wait_enabled(self, timeout: float = None) -> bool:
        """Block until enabled (or timeout). Returns the current state."""
        return self._enabled.wait(timeout)

    def on_change(self, callback: Callable[[bool], None]):
        self._callbacks.append(callback)
