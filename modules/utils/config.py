"""
Configuration for the hands-free controller.

A single YAML file (config/config.yaml) is read once at startup; components
receive their section as a plain dict and apply their own defaults, so an
absent file or section still yields a working setup. Command-line flags are
folded in afterwards with Config.update().
"""

import os
import yaml
import logging

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
DEFAULT_CONFIG_PATH = os.path.join(_BASE_DIR, "config", "config.yaml")

# Sections that must be present, with the types of the fields that matter
_REQUIRED = {
    "camera": {"device_id": int, "width": int, "height": int, "fps": int},
    "face": {
        "gesture_delay_ms": int,
        "mouth_open_threshold": float,
        "eye_closed_threshold": float,
        "double_blink_window_ms": int,
    },
    "hand": {"gesture_delay_ms": int, "pinch_threshold": float, "release_threshold": float},
    "voice": {"enabled": bool, "language": str, "restart_delay_ms": int},
    "dispatch": {
        "cooldown_ms": int,
        "tap_ms": int,
        "long_press_ms": int,
        "double_tap_gap_ms": int,
        "status_reset_ms": int,
    },
    "injection": {"backend": str},
    "session": {"defaults": dict},
}


def _matches(value, expected: type) -> bool:
    # YAML 'true' must not pass as a number
    if expected in (int, float):
        if isinstance(value, bool):
            return False
        return isinstance(value, int) or (expected is float and isinstance(value, float))
    return isinstance(value, expected)


def validate(data: dict) -> list:
    """Describe every schema problem in data; an empty list means valid."""
    problems = []
    for name, fields in _REQUIRED.items():
        if name not in data or data[name] is None:
            problems.append(f"Missing config section: '{name}'")
            continue
        section = data[name]
        if not isinstance(section, dict):
            problems.append(f"Section '{name}' should be a dict, got {type(section).__name__}")
            continue
        problems.extend(
            f"{name}.{field}: expected {kind.__name__}, "
            f"got {type(section[field]).__name__} ({section[field]!r})"
            for field, kind in fields.items()
            if field in section and not _matches(section[field], kind)
        )
    return problems


def merge(base: dict, overrides: dict) -> dict:
    """New dict with overrides applied on top of base, nested mappings merged."""
    result = dict(base)
    for key, value in overrides.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = merge(current, value)
        result[key] = value
    return result


def _section(name: str):
    return property(lambda self: self.get_section(name), doc=f"The '{name}' section.")


class Config:
    """Process-wide configuration (one shared instance)."""

    _instance = None
    _data = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def load(self, config_path=None):
        path = config_path or DEFAULT_CONFIG_PATH
        if not os.path.isfile(path):
            logger.warning("No config at %s, running on built-in defaults", path)
            data = {}
        else:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            logger.info("Config read from %s", path)

        if not isinstance(data, dict):
            logger.warning("Ignoring config %s: top level is a %s, not a mapping",
                           path, type(data).__name__)
            data = {}
        self._data = data

        problems = self.validation_errors()
        for problem in problems:
            logger.warning("Config: %s", problem)
        if not problems:
            logger.debug("Config schema OK")
        return self

    def update(self, overrides: dict):
        """Apply overrides (e.g. command-line flags) over the loaded values."""
        self._data = merge(self._data, overrides)
        return self

    def validation_errors(self) -> list:
        return validate(self._data)

    def get(self, key_path: str, default=None):
        """Nested lookup by dotted path, e.g. 'dispatch.cooldown_ms'."""
        node = self._data
        for part in key_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def get_section(self, section: str) -> dict:
        value = self._data.get(section)
        return value if isinstance(value, dict) else {}

    system = _section("system")
    camera = _section("camera")
    face = _section("face")
    hand = _section("hand")
    voice = _section("voice")
    dispatch = _section("dispatch")
    injection = _section("injection")
    status = _section("status")
    session = _section("session")
    visualization = _section("visualization")
    logging = _section("logging")

    @property
    def base_dir(self) -> str:
        return _BASE_DIR

    @classmethod
    def reset(cls):
        """Forget the shared instance and its data (used by tests)."""
        cls._instance = None
        cls._data = {}
