"""
Voice command routing: recognized phrase -> action event.

Plain substring matching over a fixed, ordered command table. The first
command whose keyword occurs in the phrase wins, so a phrase naming several
commands ("pausa y guardar") always resolves the same way.

Substring matching is deliberate and has known false positives: a keyword
inside a longer word still matches ("display" contains "play").
"""

import logging
from typing import Callable, NamedTuple, Optional, Tuple

from core.switch import ModalitySwitch
from core.types import ActionEvent, Modality, VoiceSample

logger = logging.getLogger(__name__)


class VoiceCommand(NamedTuple):
    """A routable command: trigger keywords, action factory and status label."""
    name: str
    keywords: Tuple[str, ...]
    make_event: Callable[[str], ActionEvent]
    label: str


def _src(factory):
    return lambda label: factory(Modality.VOICE, label)


# Evaluation order matters: first match wins
VOICE_COMMANDS: Tuple[VoiceCommand, ...] = (
    # Navigation
    VoiceCommand("next", ("siguiente", "scroll"), _src(ActionEvent.swipe_next), "Next"),
    VoiceCommand("back", ("atrás", "anterior"), _src(ActionEvent.swipe_prev), "Back"),
    # Interaction
    VoiceCommand("like", ("like", "me gusta"), _src(ActionEvent.double_tap), "Like"),
    VoiceCommand("pause", ("pausa",), _src(ActionEvent.tap), "Pause"),
    VoiceCommand("play", ("play", "reproduce"), _src(ActionEvent.tap), "Play"),
    VoiceCommand("mute", ("silencio", "mutear"), _src(ActionEvent.volume_down), "Mute"),
    # Optional, positions of the feed's side buttons
    VoiceCommand("share", ("compartir",),
                 lambda label: ActionEvent.tap_at(0.9, 0.5, Modality.VOICE, label), "Share"),
    VoiceCommand("save", ("guardar", "favorito"), _src(ActionEvent.long_press), "Save"),
    VoiceCommand("comments", ("comentario",),
                 lambda label: ActionEvent.tap_at(0.9, 0.7, Modality.VOICE, label), "Comments"),
)


class VoiceCommandRouter:
    """Stateless keyword matcher gated by the voice enable switch."""

    modality = Modality.VOICE

    def __init__(self, switch: Optional[ModalitySwitch] = None,
                 commands: Tuple[VoiceCommand, ...] = VOICE_COMMANDS):
        self._switch = switch
        self._commands = commands
        self._status_text: Optional[str] = None

    def match(self, phrase) -> Optional[VoiceCommand]:
        """Return the first command matching phrase, ignoring the switch."""
        if not isinstance(phrase, str):
            return None
        phrase = phrase.strip().lower()
        if not phrase:
            return None
        for command in self._commands:
            if any(keyword in phrase for keyword in command.keywords):
                return command
        return None

    def route(self, phrase) -> Optional[ActionEvent]:
        """Map a recognized phrase to an action event, or None."""
        if self._switch is not None and not self._switch.enabled:
            logger.debug("Voice disabled, ignoring phrase: %r", phrase)
            return None

        command = self.match(phrase)
        if command is None:
            if isinstance(phrase, str) and phrase.strip():
                logger.info("Unrecognized command: %s", phrase)
                self._status_text = f"? {phrase.strip()}"
            return None

        logger.info("Voice command: %-8s <- %r", command.name, phrase)
        return command.make_event(command.label)

    def process(self, sample: Optional[VoiceSample], now_ms: int = None) -> Optional[ActionEvent]:
        return self.route(getattr(sample, "phrase", None))

    def reset(self):
        self._status_text = None

    @property
    def status_text(self) -> Optional[str]:
        return self._status_text

    @property
    def commands(self) -> Tuple[VoiceCommand, ...]:
        return self._commands
