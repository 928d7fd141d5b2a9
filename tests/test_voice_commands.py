"""
Tests for Voice Command Routing
================================
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.switch import ModalitySwitch
from core.types import ActionType, Modality, VoiceSample
from modules.recognition.voice_commands import VOICE_COMMANDS, VoiceCommandRouter


@pytest.fixture
def router():
    return VoiceCommandRouter()


class TestCommandTable:

    @pytest.mark.parametrize("phrase,action,label", [
        ("siguiente", ActionType.SWIPE_NEXT, "Next"),
        ("haz scroll", ActionType.SWIPE_NEXT, "Next"),
        ("atrás", ActionType.SWIPE_PREV, "Back"),
        ("video anterior", ActionType.SWIPE_PREV, "Back"),
        ("like", ActionType.DOUBLE_TAP, "Like"),
        ("me gusta este video", ActionType.DOUBLE_TAP, "Like"),
        ("pausa", ActionType.TAP, "Pause"),
        ("play", ActionType.TAP, "Play"),
        ("reproduce", ActionType.TAP, "Play"),
        ("silencio", ActionType.VOLUME_DOWN, "Mute"),
        ("mutear", ActionType.VOLUME_DOWN, "Mute"),
        ("guardar", ActionType.LONG_PRESS, "Save"),
        ("favorito", ActionType.LONG_PRESS, "Save"),
    ])
    def test_keywords(self, router, phrase, action, label):
        event = router.route(phrase)
        assert event.action == action
        assert event.label == label
        assert event.source == Modality.VOICE

    def test_share_taps_side_button(self, router):
        event = router.route("compartir")
        assert event.action == ActionType.TAP_AT
        assert (event.x_pct, event.y_pct) == (0.9, 0.5)

    def test_comments_taps_side_button(self, router):
        event = router.route("abre los comentarios")
        assert event.action == ActionType.TAP_AT
        assert (event.x_pct, event.y_pct) == (0.9, 0.7)

    def test_table_order(self):
        names = [command.name for command in VOICE_COMMANDS]
        assert names == ["next", "back", "like", "pause", "play",
                         "mute", "share", "save", "comments"]


class TestMatching:

    def test_case_and_whitespace_insensitive(self, router):
        assert router.route("  SIGUIENTE  ").action == ActionType.SWIPE_NEXT
        assert router.route("ATRÁS").action == ActionType.SWIPE_PREV

    def test_first_match_wins(self, router):
        """A phrase naming two commands resolves by table order."""
        assert router.match("pausa y guardar").name == "pause"
        assert router.match("guardar y pausa").name == "pause"
        assert router.match("siguiente o anterior").name == "next"

    def test_deterministic(self, router):
        results = {router.route("me gusta y siguiente").action for _ in range(10)}
        assert results == {ActionType.SWIPE_NEXT}

    def test_substring_false_positive(self, router):
        """Keywords match inside longer words."""
        assert router.match("display").name == "play"

    def test_unmatched_phrase(self, router):
        assert router.route("hola mundo") is None
        assert router.status_text == "? hola mundo"

    @pytest.mark.parametrize("phrase", ["", "   ", None, 42])
    def test_empty_or_invalid(self, router, phrase):
        assert router.route(phrase) is None
        assert router.status_text is None


class TestVoiceSwitch:

    def test_disabled_switch_ignores_phrases(self):
        switch = ModalitySwitch("voice", enabled=False)
        router = VoiceCommandRouter(switch)
        assert router.route("siguiente") is None
        switch.enable()
        assert router.route("siguiente") is not None

    def test_process_voice_sample(self, router):
        event = router.process(VoiceSample("me gusta"), 0)
        assert event.action == ActionType.DOUBLE_TAP
        assert router.process(None, 0) is None

    def test_reset_clears_status(self, router):
        router.route("hola")
        router.reset()
        assert router.status_text is None
