"""
Tests for Configuration Loading
================================
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from modules.utils.config import Config

CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"


@pytest.fixture(autouse=True)
def fresh_config():
    Config.reset()
    yield
    Config.reset()


class TestConfig:

    def test_singleton(self):
        assert Config() is Config()

    def test_shipped_config_is_valid(self):
        config = Config().load(str(CONFIG_PATH))
        assert config.validation_errors() == []
        assert config.get("dispatch.cooldown_ms") == 800
        assert config.face["gesture_delay_ms"] == 1500
        assert config.hand["pinch_threshold"] == 0.05
        assert config.voice["language"] == "es-MX"
        assert config.session["voice"]["interrupt_after_ms"] is None

    def test_missing_file_falls_back_to_empty(self, tmp_path):
        config = Config().load(str(tmp_path / "absent.yaml"))
        assert config.get("camera.width", 640) == 640
        assert config.face == {}
        assert "Missing config section: 'face'" in config.validation_errors()

    def test_type_mismatch_reported(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("hand:\n  pinch_threshold: 'tight'\n"
                        "dispatch:\n  cooldown_ms: true\n"
                        "face:\n  mouth_open_threshold: 25\n")
        errors = Config().load(str(path)).validation_errors()
        assert any("hand.pinch_threshold" in e for e in errors)
        assert any("dispatch.cooldown_ms" in e for e in errors)
        # int accepted where float expected
        assert not any("face.mouth_open_threshold" in e for e in errors)

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        config = Config().load(str(path))
        assert config.get_section("camera") == {}

    def test_dot_path_and_default(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("injection:\n  backend: adb\n")
        config = Config().load(str(path))
        assert config.get("injection.backend") == "adb"
        assert config.get("injection.backend.deeper", "x") == "x"
        assert config.get("nope.nothing") is None

    def test_update_merges_overrides(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("injection:\n  backend: simulated\n  adb_path: adb\n")
        config = Config().load(str(path))
        config.update({"injection": {"backend": "adb", "device_serial": "emulator-5554"}})
        assert config.injection == {"backend": "adb", "adb_path": "adb",
                                    "device_serial": "emulator-5554"}
