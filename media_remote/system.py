"""
Platform shell commands for volume, brightness and opening URLs.
"""

import logging
import platform
import subprocess
from typing import List, Optional

from .protocol import CommandResult

logger = logging.getLogger(__name__)


def clamp_percent(value: int) -> int:
    return max(0, min(100, int(value)))


class SystemControl:
    """
    Run the OS-specific command behind each system operation.

    Linux uses amixer/xrandr/xdg-open, macOS uses osascript/brightness/open.
    Windows has no volume/brightness backend and reports that as info.
    """

    def __init__(
        self,
        system: Optional[str] = None,
        display_output: str = "eDP-1",
        timeout: float = 5.0,
    ):
        self.system = system or platform.system()
        self.display_output = display_output
        self.timeout = timeout

    def _run(self, args: List[str]) -> Optional[str]:
        """
        Run a command to completion.

        Returns:
            None on success, otherwise an error description
        """
        try:
            subprocess.run(args, check=True, capture_output=True, timeout=self.timeout)
            return None
        except FileNotFoundError:
            return f"{args[0]} not available"
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode("utf-8", "replace").strip()
            return stderr or f"{args[0]} exited with status {e.returncode}"
        except subprocess.TimeoutExpired:
            return f"{args[0]} timed out"
        except OSError as e:
            return str(e)

    def set_volume(self, value: int) -> CommandResult:
        value = clamp_percent(value)

        if self.system == "Darwin":
            error = self._run(["osascript", "-e", f"set volume output volume {value}"])
        elif self.system == "Linux":
            error = self._run(["amixer", "set", "Master", f"{value}%"])
        else:
            return CommandResult.info(f"Volume set not implemented on {self.system} yet")

        if error:
            logger.warning(f"Failed to set volume: {error}")
            return CommandResult.error(f"Failed to set volume: {error}")
        return CommandResult.success(f"Volume set to {value}%")

    def set_brightness(self, value: int) -> CommandResult:
        value = clamp_percent(value)
        level = f"{value / 100.0:.2f}"

        if self.system == "Darwin":
            error = self._run(["brightness", level])
            if error and "not available" in error:
                error = "brightness command not available, install via: brew install brightness"
        elif self.system == "Linux":
            error = self._run(
                ["xrandr", "--output", self.display_output, "--brightness", level]
            )
        else:
            return CommandResult.info(f"Brightness set not implemented on {self.system} yet")

        if error:
            logger.warning(f"Failed to set brightness: {error}")
            return CommandResult.error(f"Failed to set brightness: {error}")
        return CommandResult.success(f"Brightness set to {value}%")

    def open_url(self, url: str) -> CommandResult:
        if not (url.startswith("http://") or url.startswith("https://")):
            return CommandResult.error("Invalid URL: must start with http:// or https://")

        if self.system == "Darwin":
            args = ["open", url]
        elif self.system == "Windows":
            args = ["cmd", "/c", "start", "", url]
        else:
            args = ["xdg-open", url]

        try:
            subprocess.Popen(
                args,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            logger.warning(f"Failed to open URL {url}: {e}")
            return CommandResult.error(f"Failed to open URL: {e}")

        return CommandResult.success(f"Opened website: {url}")
