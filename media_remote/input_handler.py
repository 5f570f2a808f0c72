"""
Input handler using xdotool for mouse and keyboard control.

Every call runs xdotool as a child process, so a crash inside the native
input layer ends that child only and shows up here as a failed call.
"""

import logging
import shutil
import subprocess
from typing import Optional

logger = logging.getLogger(__name__)

# xdotool mouse button numbers
BUTTONS = {
    "left": 1,
    "middle": 2,
    "right": 3,
}

SCROLL_UP = 4
SCROLL_DOWN = 5
SCROLL_LEFT = 6
SCROLL_RIGHT = 7

# Trackpad deltas are in pixels; one wheel click per this many
SCROLL_PIXELS_PER_STEP = 20
MAX_SCROLL_STEPS = 5
SCROLL_CLICK_DELAY_MS = 10

# Per-character delay for xdotool type
TYPE_DELAY_MS = 12


def scroll_steps(delta: int) -> int:
    """Convert a pixel delta to a bounded number of wheel clicks."""
    if not delta:
        return 0
    steps = round(abs(delta) / SCROLL_PIXELS_PER_STEP)
    return max(1, min(MAX_SCROLL_STEPS, steps))


class InputHandler:
    """
    Handle mouse and keyboard input using xdotool.

    Meant to be used as a short-lived, scoped handle::

        with InputHandler() as xdo:
            xdo.key_press("space")

    A new handle is opened for each operation; nothing is shared between
    worker threads.
    """

    def __init__(self, timeout: float = 5.0):
        """
        Initialize the input handler.

        Args:
            timeout: Seconds before an xdotool call is abandoned

        Raises:
            RuntimeError: If xdotool is not installed
        """
        self._xdotool_path = shutil.which("xdotool")
        self._timeout = timeout

        if not self._xdotool_path:
            raise RuntimeError(
                "xdotool not found. Please install it:\n"
                "  sudo apt install xdotool"
            )

        self._closed = False
        self.last_error: Optional[str] = None

    def __enter__(self) -> "InputHandler":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._closed = True

    def _run_xdotool(self, *args, timeout: Optional[float] = None) -> bool:
        """
        Run xdotool with given arguments.

        Args:
            timeout: Override for calls whose run time grows with input size

        Returns:
            True if successful, False otherwise
        """
        if self._closed:
            raise RuntimeError("input handler is closed")

        if timeout is None:
            timeout = self._timeout

        try:
            subprocess.run(
                [self._xdotool_path, *args],
                check=True,
                capture_output=True,
                timeout=timeout,
            )
            self.last_error = None
            return True
        except subprocess.CalledProcessError as e:
            if e.returncode < 0:
                self.last_error = f"xdotool terminated by signal {-e.returncode}"
            else:
                stderr = (e.stderr or b"").decode("utf-8", "replace").strip()
                self.last_error = stderr or f"xdotool exited with status {e.returncode}"
        except subprocess.TimeoutExpired:
            self.last_error = f"xdotool timed out after {timeout}s"
        except OSError as e:
            self.last_error = str(e)

        logger.warning(f"xdotool {args[0]} failed: {self.last_error}")
        return False

    def move_mouse_relative(self, dx: int, dy: int) -> bool:
        """
        Move mouse relative to its current position.

        Args:
            dx: Horizontal offset in pixels
            dy: Vertical offset in pixels

        Returns:
            True if successful
        """
        return self._run_xdotool("mousemove_relative", "--", str(dx), str(dy))

    def click(self, button: int = 1) -> bool:
        """
        Perform mouse click.

        Args:
            button: 1=left, 2=middle, 3=right

        Returns:
            True if successful
        """
        return self._run_xdotool("click", str(button))

    def scroll(self, dx: int, dy: int) -> bool:
        """
        Scroll mouse wheel. Positive dy scrolls down, positive dx right.

        Deltas are pixels of finger travel and are reduced to at most
        MAX_SCROLL_STEPS wheel clicks per axis.

        Returns:
            True if successful
        """
        for delta, forward, back in ((dy, SCROLL_DOWN, SCROLL_UP), (dx, SCROLL_RIGHT, SCROLL_LEFT)):
            steps = scroll_steps(delta)
            if not steps:
                continue
            button = forward if delta > 0 else back
            if not self._run_xdotool(
                "click", "--repeat", str(steps), "--delay", str(SCROLL_CLICK_DELAY_MS), str(button)
            ):
                return False
        return True

    def type_text(self, text: str) -> bool:
        """
        Type text using keyboard.

        Args:
            text: Text to type

        Returns:
            True if successful
        """
        if not text:
            return True

        # Typing takes TYPE_DELAY_MS per character on top of startup
        timeout = self._timeout + len(text) * TYPE_DELAY_MS / 1000
        return self._run_xdotool(
            "type", "--delay", str(TYPE_DELAY_MS), "--", text, timeout=timeout
        )

    def key_press(self, key: str) -> bool:
        """
        Press a key or key combination.

        Args:
            key: Keysym (e.g., "Return", "BackSpace", "ctrl+c")

        Returns:
            True if successful
        """
        return self._run_xdotool("key", "--", key)

    def key_down(self, key: str) -> bool:
        """Press key down (without release)."""
        return self._run_xdotool("keydown", "--", key)

    def key_up(self, key: str) -> bool:
        """Release key."""
        return self._run_xdotool("keyup", "--", key)
