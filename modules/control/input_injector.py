"""
Input-injection backends: the authority allowed to synthesize touch and
volume events on the host device.

Backends:
    SimulatedInjector - logs and records calls, availability is a flag
    XdotoolInjector   - X11 desktop host via xdotool (mouse drag/click, media key)
    AdbInjector       - attached Android device via `adb shell input`

Availability can change at any time (device plugged in, display attached),
so is_available() is a live check. AdbInjector caches the answer for a
short TTL only, to keep a burst of gestures from spawning one adb process
each.
"""

import re
import shutil
import subprocess
import logging
import threading
from typing import List, Optional, Tuple

from core.errors import InjectionError
from core.scheduler import monotonic_ms
from core.types import SwipeDirection

logger = logging.getLogger(__name__)


class InputInjector:
    """Abstract input-injection capability.

    Coordinates are normalized screen fractions; each backend converts them
    to its own pixel space.
    """

    name = "abstract"

    def __init__(self, config: dict = None):
        config = config or {}
        self._swipe_start_pct = config.get("swipe_start_pct", 0.75)
        self._swipe_end_pct = config.get("swipe_end_pct", 0.25)
        self._swipe_duration_ms = config.get("swipe_duration_ms", 300)

    def is_available(self) -> bool:
        raise NotImplementedError

    def swipe(self, direction: SwipeDirection):
        raise NotImplementedError

    def tap(self, x_pct: float, y_pct: float, duration_ms: int):
        raise NotImplementedError

    def volume_down(self):
        raise NotImplementedError

    def swipe_path(self, direction: SwipeDirection) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """Normalized (start, end) of a vertical stroke through the screen centre."""
        start = (0.5, self._swipe_start_pct)
        end = (0.5, self._swipe_end_pct)
        if direction is SwipeDirection.DOWN:
            start, end = end, start
        return start, end


class SimulatedInjector(InputInjector):
    """Logs every injection instead of performing it. Records calls in order."""

    name = "simulated"

    def __init__(self, config: dict = None, available: bool = True):
        super().__init__(config)
        self.available = available
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        return self.available

    def _record(self, call: tuple):
        with self._lock:
            self.calls.append(call)
        logger.info("[SIMULATED] %s", " ".join(str(part) for part in call))

    def swipe(self, direction: SwipeDirection):
        self._record(("swipe", direction))

    def tap(self, x_pct: float, y_pct: float, duration_ms: int):
        self._record(("tap", round(x_pct, 3), round(y_pct, 3), duration_ms))

    def volume_down(self):
        self._record(("volume_down",))


class CommandInjector(InputInjector):
    """Base for backends driven by an external command-line tool."""

    def __init__(self, config: dict = None):
        super().__init__(config)
        config = config or {}
        self._timeout_s = config.get("command_timeout_ms", 2000) / 1000.0
        self._screen_size: Optional[Tuple[int, int]] = None

    def _run(self, cmd: List[str], timeout: float = None) -> str:
        """Run a backend command and return stdout. Raises InjectionError."""
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                timeout=timeout or self._timeout_s,
            )
        except subprocess.TimeoutExpired as e:
            raise InjectionError(f"{cmd[0]} timed out: {' '.join(cmd)}") from e
        except OSError as e:
            raise InjectionError(f"{cmd[0]} could not be started: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.decode(errors="replace").strip()
            raise InjectionError(f"{' '.join(cmd)} exited {result.returncode}: {stderr}")
        logger.debug("Ran: %s", " ".join(cmd))
        return result.stdout.decode(errors="replace")

    def _query_screen_size(self) -> Tuple[int, int]:
        raise NotImplementedError

    @property
    def screen_size(self) -> Tuple[int, int]:
        if self._screen_size is None:
            self._screen_size = self._query_screen_size()
            logger.info("%s screen size: %dx%d", self.name, *self._screen_size)
        return self._screen_size

    def to_pixels(self, x_pct: float, y_pct: float) -> Tuple[int, int]:
        width, height = self.screen_size
        return int(round(x_pct * (width - 1))), int(round(y_pct * (height - 1)))


class XdotoolInjector(CommandInjector):
    """Desktop host: mouse drags for swipes, clicks for taps, media key for volume."""

    name = "xdotool"

    def __init__(self, config: dict = None):
        super().__init__(config)
        config = config or {}
        self._volume_key = config.get("volume_down_key", "XF86AudioLowerVolume")

    def is_available(self) -> bool:
        return shutil.which("xdotool") is not None

    def _query_screen_size(self) -> Tuple[int, int]:
        out = self._run(["xdotool", "getdisplaygeometry"]).split()
        if len(out) < 2:
            raise InjectionError(f"Unexpected xdotool geometry output: {out!r}")
        return int(out[0]), int(out[1])

    def swipe(self, direction: SwipeDirection):
        (x1, y1), (x2, y2) = self.swipe_path(direction)
        sx, sy = self.to_pixels(x1, y1)
        ex, ey = self.to_pixels(x2, y2)
        self._run([
            "xdotool",
            "mousemove", str(sx), str(sy),
            "mousedown", "1",
            "sleep", f"{self._swipe_duration_ms / 1000.0:.3f}",
            "mousemove", str(ex), str(ey),
            "mouseup", "1",
        ])

    def tap(self, x_pct: float, y_pct: float, duration_ms: int):
        x, y = self.to_pixels(x_pct, y_pct)
        self._run([
            "xdotool",
            "mousemove", str(x), str(y),
            "mousedown", "1",
            "sleep", f"{duration_ms / 1000.0:.3f}",
            "mouseup", "1",
        ], timeout=self._timeout_s + duration_ms / 1000.0)

    def volume_down(self):
        self._run(["xdotool", "key", self._volume_key])


_WM_SIZE_RE = re.compile(r"(\d+)x(\d+)")

KEYCODE_VOLUME_DOWN = 25


class AdbInjector(CommandInjector):
    """Android device over adb: `input swipe`, `input tap`, `input keyevent`."""

    name = "adb"

    def __init__(self, config: dict = None):
        super().__init__(config)
        config = config or {}
        self._adb = config.get("adb_path", "adb")
        self._serial = config.get("device_serial")
        self._availability_ttl_ms = config.get("availability_ttl_ms", 1000)
        self._checked_at_ms: Optional[int] = None
        self._available = False
        self._lock = threading.Lock()

    def _adb_cmd(self, *args) -> List[str]:
        cmd = [self._adb]
        if self._serial:
            cmd += ["-s", self._serial]
        return cmd + [str(a) for a in args]

    def is_available(self) -> bool:
        now = monotonic_ms()
        with self._lock:
            if self._checked_at_ms is not None and now - self._checked_at_ms < self._availability_ttl_ms:
                return self._available
        try:
            state = self._run(self._adb_cmd("get-state")).strip()
            available = state == "device"
        except InjectionError as e:
            logger.debug("adb not ready: %s", e)
            available = False
        with self._lock:
            if not available:
                self._screen_size = None
            self._available = available
            self._checked_at_ms = now
        return available

    def _query_screen_size(self) -> Tuple[int, int]:
        out = self._run(self._adb_cmd("shell", "wm", "size"))
        # "Override size" (if present) is listed after "Physical size" and wins
        matches = _WM_SIZE_RE.findall(out)
        if not matches:
            raise InjectionError(f"Unexpected `wm size` output: {out!r}")
        width, height = matches[-1]
        return int(width), int(height)

    def swipe(self, direction: SwipeDirection):
        (x1, y1), (x2, y2) = self.swipe_path(direction)
        sx, sy = self.to_pixels(x1, y1)
        ex, ey = self.to_pixels(x2, y2)
        self._run(self._adb_cmd("shell", "input", "swipe", sx, sy, ex, ey, self._swipe_duration_ms))

    def tap(self, x_pct: float, y_pct: float, duration_ms: int):
        x, y = self.to_pixels(x_pct, y_pct)
        if duration_ms <= 100:
            self._run(self._adb_cmd("shell", "input", "tap", x, y))
        else:
            # A zero-length swipe held for duration_ms is a long press
            self._run(self._adb_cmd("shell", "input", "swipe", x, y, x, y, duration_ms),
                      timeout=self._timeout_s + duration_ms / 1000.0)

    def volume_down(self):
        self._run(self._adb_cmd("shell", "input", "keyevent", KEYCODE_VOLUME_DOWN))


_BACKENDS = {
    "simulated": SimulatedInjector,
    "xdotool": XdotoolInjector,
    "adb": AdbInjector,
}


def create_injector(config: dict) -> InputInjector:
    """Build the backend named by config['backend'] (default: simulated)."""
    config = config or {}
    backend = config.get("backend", "simulated")
    cls = _BACKENDS.get(backend)
    if cls is None:
        raise ValueError(f"Unknown injection backend '{backend}' "
                         f"(expected one of: {', '.join(sorted(_BACKENDS))})")
    injector = cls(config)
    if not injector.is_available():
        logger.warning("Injection backend '%s' is not available yet; "
                       "gestures will report it until it is", backend)
    logger.info("Input injector: %s", backend)
    return injector
