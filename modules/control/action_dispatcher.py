"""
Action dispatcher: maps action events onto the input-injection capability.

Every detector's events end up here. The dispatcher owns the cross-modal
cooldown, re-checks the capability on every call, and hands the injection
to a scheduler worker so callers never wait on the device.

Double tap is the only composite action: the first tap runs, and the second
is scheduled double_tap_gap_ms after the first one completed, as a
cancellable continuation.
"""

import logging
import threading
from typing import Optional

from core.errors import CapabilityUnavailableError, InjectionError
from core.events import EventBus, Events
from core.types import ActionEvent, ActionType, SwipeDirection
from modules.control.cooldown import Cooldown
from modules.control.status import post_status

logger = logging.getLogger(__name__)


class ActionDispatcher:
    """Dispatches ActionEvents with at-most-one-action-per-window semantics."""

    def __init__(self, injector, scheduler, config: dict = None,
                 status_sink=None, event_bus: Optional[EventBus] = None):
        config = config or {}
        self._injector = injector
        self._scheduler = scheduler
        self._status_sink = status_sink
        self._bus = event_bus

        self._cooldown = Cooldown(config)
        self._tap_ms = config.get("tap_ms", 50)
        self._long_press_ms = config.get("long_press_ms", 800)
        self._double_tap_gap_ms = config.get("double_tap_gap_ms", 100)
        self._center = (config.get("tap_x_pct", 0.5), config.get("tap_y_pct", 0.5))
        self._status_reset_ms = config.get("status_reset_ms", 1200)
        self._idle_text = config.get("idle_text", "Ready")

        self._lock = threading.Lock()
        self._pending = []
        self._status_reset_task = None

        self._last_action: Optional[ActionEvent] = None
        self._action_count = 0
        self._failure_count = 0

        self._handlers = {
            ActionType.SWIPE_NEXT: lambda e: self._injector.swipe(SwipeDirection.UP),
            ActionType.SWIPE_PREV: lambda e: self._injector.swipe(SwipeDirection.DOWN),
            ActionType.TAP: lambda e: self._injector.tap(*self._center, self._tap_ms),
            ActionType.DOUBLE_TAP: self._double_tap,
            ActionType.TAP_AT: lambda e: self._injector.tap(e.x_pct, e.y_pct, self._tap_ms),
            ActionType.LONG_PRESS: lambda e: self._injector.tap(*self._center, self._long_press_ms),
            ActionType.VOLUME_DOWN: lambda e: self._injector.volume_down(),
        }

        logger.info("ActionDispatcher initialized (injector=%s, cooldown=%dms)",
                    getattr(injector, "name", type(injector).__name__), self._cooldown.window_ms)

    def dispatch(self, event: ActionEvent, now_ms: int = None) -> bool:
        """Dispatch an action event.

        Returns:
            True if the action was accepted and handed to the injector,
            False if it fell inside the cooldown window.

        Raises:
            CapabilityUnavailableError: no injection capability right now.
        """
        if now_ms is None:
            now_ms = self._scheduler.now_ms()

        if not self._capability_ready():
            logger.warning("Input injection unavailable, dropping %s", event)
            self._emit(Events.CAPABILITY_UNAVAILABLE, event=event, now_ms=now_ms)
            raise CapabilityUnavailableError(
                f"input injection ({getattr(self._injector, 'name', 'unknown')}) is not available"
            )

        if not self._cooldown.try_acquire(now_ms):
            self._emit(Events.ACTION_SUPPRESSED, event=event, now_ms=now_ms,
                       remaining_ms=self._cooldown.remaining_ms(now_ms))
            return False

        self._record(event, now_ms)
        self._scheduler.submit(self._perform, event, name=event.action.value)
        return True

    def _capability_ready(self) -> bool:
        try:
            return bool(self._injector.is_available())
        except Exception as e:
            logger.warning("Availability check failed: %s", e)
            return False

    def _record(self, event: ActionEvent, now_ms: int):
        with self._lock:
            self._last_action = event
            self._action_count += 1
            if self._status_reset_task is not None:
                self._status_reset_task.cancel()
            self._status_reset_task = self._scheduler.call_later(
                self._status_reset_ms, post_status, self._status_sink, self._idle_text,
                name="status_reset",
            )
        post_status(self._status_sink, f"✓ {event.label}")
        logger.debug("Action: %-11s | source: %-5s | %s", event.action.value,
                     event.source.value if event.source else "-", event.label)
        self._emit(Events.ACTION_DISPATCHED, event=event, now_ms=now_ms)

    # =========================================================================
    # Worker side
    # =========================================================================

    def _perform(self, event: ActionEvent):
        self._guarded(self._handlers[event.action], event)

    def _double_tap(self, event: ActionEvent):
        self._injector.tap(*self._center, self._tap_ms)
        task = self._scheduler.call_later(
            self._double_tap_gap_ms, self._guarded, self._second_tap, event,
            name="double_tap_second",
        )
        with self._lock:
            self._pending = [t for t in self._pending if not (t.done or t.cancelled)]
            self._pending.append(task)

    def _second_tap(self, event: ActionEvent):
        self._injector.tap(*self._center, self._tap_ms)
        logger.debug("Double tap completed")

    def _guarded(self, handler, event: ActionEvent):
        try:
            handler(event)
        except InjectionError as e:
            with self._lock:
                self._failure_count += 1
            logger.error("Injection failed for %s: %s", event, e)
            post_status(self._status_sink, f"✗ {event.label} failed")
            self._emit(Events.ACTION_FAILED, event=event, error=e)

    def cancel_pending(self) -> int:
        """Cancel scheduled continuations and the pending status reset."""
        with self._lock:
            tasks = self._pending
            self._pending = []
            if self._status_reset_task is not None:
                tasks = tasks + [self._status_reset_task]
                self._status_reset_task = None
        cancelled = sum(1 for task in tasks if task.cancel())
        if cancelled:
            logger.debug("Cancelled %d pending task(s)", cancelled)
        return cancelled

    def _emit(self, event_name: str, **kwargs):
        if self._bus is not None:
            self._bus.emit(event_name, **kwargs)

    @property
    def cooldown(self) -> Cooldown:
        return self._cooldown

    @property
    def injector(self):
        return self._injector

    @property
    def last_action(self) -> Optional[ActionEvent]:
        return self._last_action

    @property
    def action_count(self) -> int:
        return self._action_count

    @property
    def failure_count(self) -> int:
        return self._failure_count
