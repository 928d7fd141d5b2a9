"""
Tests for the Action Dispatcher
================================
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.errors import CapabilityUnavailableError, InjectionError
from core.events import EventBus, Events
from core.scheduler import ManualScheduler
from core.types import ActionEvent, Modality, SwipeDirection
from modules.control.action_dispatcher import ActionDispatcher
from modules.control.input_injector import SimulatedInjector
from modules.control.status import LatestStatus


class FailingInjector(SimulatedInjector):
    """Simulated backend whose swipes fail."""

    def swipe(self, direction):
        raise InjectionError("device went away")


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def injector():
    return SimulatedInjector()


@pytest.fixture
def status():
    return LatestStatus()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def dispatcher(injector, scheduler, status, bus):
    return ActionDispatcher(injector, scheduler, {"cooldown_ms": 800},
                            status_sink=status, event_bus=bus)


def record(bus, event_name):
    received = []
    bus.subscribe(event_name, lambda **kw: received.append(kw))
    return received


class TestActionMapping:

    @pytest.mark.parametrize("event,expected", [
        (ActionEvent.swipe_next(), ("swipe", SwipeDirection.UP)),
        (ActionEvent.swipe_prev(), ("swipe", SwipeDirection.DOWN)),
        (ActionEvent.tap(), ("tap", 0.5, 0.5, 50)),
        (ActionEvent.tap_at(0.9, 0.7), ("tap", 0.9, 0.7, 50)),
        (ActionEvent.long_press(), ("tap", 0.5, 0.5, 800)),
        (ActionEvent.volume_down(), ("volume_down",)),
    ])
    def test_single_step_actions(self, dispatcher, injector, event, expected):
        assert dispatcher.dispatch(event, 0)
        assert injector.calls == [expected]

    def test_double_tap_second_tap_after_gap(self, dispatcher, injector, scheduler):
        assert dispatcher.dispatch(ActionEvent.double_tap(), 0)
        assert injector.calls == [("tap", 0.5, 0.5, 50)]
        scheduler.advance(99)
        assert len(injector.calls) == 1
        scheduler.advance(1)
        assert injector.calls == [("tap", 0.5, 0.5, 50)] * 2

    def test_double_tap_cancelled(self, dispatcher, injector, scheduler):
        dispatcher.dispatch(ActionEvent.double_tap(), 0)
        assert dispatcher.cancel_pending() >= 1
        scheduler.advance(500)
        assert len(injector.calls) == 1

    def test_custom_timings(self, injector, scheduler):
        dispatcher = ActionDispatcher(injector, scheduler, {
            "tap_ms": 30, "long_press_ms": 1000, "double_tap_gap_ms": 150,
        })
        dispatcher.dispatch(ActionEvent.long_press(), 0)
        assert injector.calls[-1] == ("tap", 0.5, 0.5, 1000)
        scheduler.advance(1000)
        dispatcher.dispatch(ActionEvent.double_tap(), 1000)
        scheduler.advance(149)
        assert injector.calls[-1] == ("tap", 0.5, 0.5, 30)
        assert len(injector.calls) == 2
        scheduler.advance(1)
        assert len(injector.calls) == 3


class TestCooldownGate:

    def test_second_action_inside_window_suppressed(self, dispatcher, injector, bus):
        suppressed = record(bus, Events.ACTION_SUPPRESSED)
        assert dispatcher.dispatch(ActionEvent.swipe_next(), 1000)
        assert not dispatcher.dispatch(ActionEvent.tap(), 1500)
        assert injector.calls == [("swipe", SwipeDirection.UP)]
        assert suppressed[0]["remaining_ms"] == 300
        assert dispatcher.dispatch(ActionEvent.tap(), 1800)

    def test_cross_modal_first_wins(self, dispatcher, injector):
        assert dispatcher.dispatch(ActionEvent.swipe_next(Modality.HAND), 0)
        assert not dispatcher.dispatch(ActionEvent.double_tap(Modality.FACE), 0)
        assert dispatcher.last_action.source == Modality.HAND
        assert dispatcher.action_count == 1


class TestCapability:

    def test_unavailable_raises_and_keeps_cooldown(self, dispatcher, injector, bus):
        unavailable = record(bus, Events.CAPABILITY_UNAVAILABLE)
        injector.available = False
        with pytest.raises(CapabilityUnavailableError):
            dispatcher.dispatch(ActionEvent.swipe_next(), 0)
        assert injector.calls == []
        assert dispatcher.cooldown.last_action_ms is None
        assert len(unavailable) == 1

    def test_rechecked_on_every_dispatch(self, dispatcher, injector):
        injector.available = False
        with pytest.raises(CapabilityUnavailableError):
            dispatcher.dispatch(ActionEvent.swipe_next(), 0)
        injector.available = True
        assert dispatcher.dispatch(ActionEvent.swipe_next(), 10)
        assert injector.calls == [("swipe", SwipeDirection.UP)]

    def test_failing_availability_check_is_unavailable(self, scheduler):
        class Broken(SimulatedInjector):
            def is_available(self):
                raise RuntimeError("service crashed")

        dispatcher = ActionDispatcher(Broken(), scheduler)
        with pytest.raises(CapabilityUnavailableError):
            dispatcher.dispatch(ActionEvent.tap(), 0)


class TestStatusAndEvents:

    def test_confirmation_then_idle(self, dispatcher, status, scheduler):
        dispatcher.dispatch(ActionEvent.swipe_next(Modality.FACE, "Mouth"), 0)
        assert status.current() == "✓ Mouth"
        scheduler.advance(1199)
        assert status.current() == "✓ Mouth"
        scheduler.advance(1)
        assert status.current() == "Ready"

    def test_new_action_postpones_reset(self, dispatcher, status, scheduler):
        dispatcher.dispatch(ActionEvent.swipe_next(), 0)
        scheduler.advance(900)
        dispatcher.dispatch(ActionEvent.tap(label="Pause"), 900)
        scheduler.advance(400)
        assert status.current() == "✓ Pause"
        scheduler.advance(800)
        assert status.current() == "Ready"

    def test_dispatched_event_emitted(self, dispatcher, bus):
        dispatched = record(bus, Events.ACTION_DISPATCHED)
        event = ActionEvent.volume_down(Modality.VOICE, "Mute")
        dispatcher.dispatch(event, 5)
        assert dispatched == [{"event": event, "now_ms": 5}]

    def test_injection_failure_is_contained(self, scheduler, status, bus):
        failed = record(bus, Events.ACTION_FAILED)
        dispatcher = ActionDispatcher(FailingInjector(), scheduler,
                                      status_sink=status, event_bus=bus)
        assert dispatcher.dispatch(ActionEvent.swipe_next(), 0)
        assert dispatcher.failure_count == 1
        assert status.current() == "✗ Next failed"
        assert isinstance(failed[0]["error"], InjectionError)

    def test_status_sink_failure_dropped(self, injector, scheduler):
        class BrokenSink:
            def set_status(self, text):
                raise RuntimeError("window closed")

        dispatcher = ActionDispatcher(injector, scheduler, status_sink=BrokenSink())
        assert dispatcher.dispatch(ActionEvent.tap(), 0)
        scheduler.advance(2000)
        assert injector.calls == [("tap", 0.5, 0.5, 50)]

    def test_cancel_pending_stops_status_reset(self, dispatcher, status, scheduler):
        dispatcher.dispatch(ActionEvent.tap(), 0)
        dispatcher.cancel_pending()
        scheduler.advance(5000)
        assert status.current() == "✓ Tap"
