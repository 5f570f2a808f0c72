"""
Command executor for Media Remote.

Each operation wraps exactly one OS side effect and returns a CommandResult.
Native work never runs on the event loop: it is submitted to a dedicated
thread pool, and every failure raised there comes back as an error result.
"""

import asyncio
import functools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

from .input_handler import BUTTONS, InputHandler
from .keymap import (
    MODIFIER_ALIASES,
    MODIFIER_STATE_NAMES,
    KeyMap,
    modifier_keysym,
)
from .protocol import CommandResult
from .system import SystemControl

logger = logging.getLogger(__name__)

DEFAULT_TEXT_MAX_LENGTH = 1000
DEFAULT_TEXT_MIN_INTERVAL = 0.1


class TextInputGuard:
    """
    Process-wide limits for text input.

    Calls are spaced at least ``min_interval`` seconds apart, and only one
    may be in flight; a caller that finds it taken is told the system is busy.
    """

    def __init__(self, min_interval: float = DEFAULT_TEXT_MIN_INTERVAL):
        self.min_interval = min_interval
        self._rate_lock = threading.Lock()
        self._last_call: Optional[float] = None
        self._slot = threading.Semaphore(1)

    async def wait_turn(self) -> None:
        """Sleep until min_interval has passed since the previous call."""
        with self._rate_lock:
            wait = 0.0
            if self._last_call is not None:
                elapsed = time.monotonic() - self._last_call
                if elapsed < self.min_interval:
                    wait = self.min_interval - elapsed

        if wait > 0:
            logger.debug(f"Rate limiting text input, waiting {wait:.3f}s")
            await asyncio.sleep(wait)

        with self._rate_lock:
            self._last_call = time.monotonic()

    def try_acquire(self) -> bool:
        return self._slot.acquire(blocking=False)

    def release(self) -> None:
        self._slot.release()


class ModifierState:
    """Pressed/released state of toggled modifier keys."""

    def __init__(self):
        self._lock = threading.Lock()
        self._states: Dict[str, bool] = {}

    def is_pressed(self, name: str) -> bool:
        with self._lock:
            return self._states.get(name, False)

    def set(self, name: str, pressed: bool) -> None:
        with self._lock:
            self._states[name] = pressed
            alias = MODIFIER_ALIASES.get(name)
            if alias:
                self._states[alias] = pressed

    def take_pressed(self) -> List[str]:
        """Clear all state and return the names that were pressed."""
        with self._lock:
            pressed = [name for name, down in self._states.items() if down]
            self._states.clear()
        return pressed

    def snapshot(self) -> Dict[str, bool]:
        with self._lock:
            return {name: self._states.get(name, False) for name in MODIFIER_STATE_NAMES}


# Shared by every executor in the process
_text_guard = TextInputGuard()


def get_text_guard() -> TextInputGuard:
    return _text_guard


class CommandExecutor:
    """
    Async facade over the native input and system layers.

    Args:
        input_factory: Callable returning a fresh InputHandler-like context
            manager; called once per operation
        system: Platform command runner
        keymap: Key tables
        workers: Size of the native worker pool
        text_guard: Text input limiter (defaults to the process-wide one)
        text_max_length: Longest text accepted by text_input
    """

    def __init__(
        self,
        input_factory: Optional[Callable[[], InputHandler]] = None,
        system: Optional[SystemControl] = None,
        keymap: Optional[KeyMap] = None,
        workers: int = 4,
        text_guard: Optional[TextInputGuard] = None,
        text_max_length: int = DEFAULT_TEXT_MAX_LENGTH,
        native_timeout: float = 5.0,
    ):
        self._input_factory = input_factory or functools.partial(
            InputHandler, timeout=native_timeout
        )
        self.system = system or SystemControl(timeout=native_timeout)
        self.keymap = keymap or KeyMap()
        self.text_guard = text_guard or get_text_guard()
        self.text_max_length = text_max_length
        self.modifiers = ModifierState()
        self._workers = workers
        self._pool_lock = threading.Lock()
        self._pool: Optional[ThreadPoolExecutor] = None

    def _get_pool(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self._workers, thread_name_prefix="native"
                )
            return self._pool

    def shutdown(self) -> None:
        """
        Release the worker pool. Running calls are left to finish.

        A later operation starts a fresh pool, so a stopped server can be
        started again with the same executor.
        """
        with self._pool_lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=False)

    async def _call(
        self,
        label: str,
        func: Callable[..., CommandResult],
        *args,
        on_done: Optional[Callable[[], None]] = None,
    ) -> CommandResult:
        """
        Run func(*args) on the worker pool.

        If the caller stops waiting (timeout), the native call keeps running
        and on_done still fires when it finishes.
        """
        try:
            future = self._get_pool().submit(func, *args)
        except RuntimeError as e:
            if on_done:
                on_done()
            return CommandResult.error(f"{label} operation failed: {e}")

        if on_done:
            future.add_done_callback(lambda _: on_done())

        try:
            return await asyncio.wrap_future(future)
        except Exception as e:
            logger.exception(f"{label} operation raised")
            return CommandResult.error(f"{label} operation failed: {e}")

    # Native operations (run on worker threads)

    def _press(self, keysym: str, sent: str, failed: str) -> CommandResult:
        with self._input_factory() as xdo:
            if xdo.key_press(keysym):
                return CommandResult.success(sent)
            return CommandResult.error(f"{failed}: {xdo.last_error}")

    def _send_key(self, name: str, keysym: Optional[str]) -> CommandResult:
        with self._input_factory() as xdo:
            # Single characters without a keysym are typed as text
            ok = xdo.type_text(name) if keysym is None else xdo.key_press(keysym)
            if ok:
                return CommandResult.success(f"Key '{name}' sent successfully")
            return CommandResult.error(f"Failed to press key '{name}': {xdo.last_error}")

    def _type(self, text: str) -> CommandResult:
        with self._input_factory() as xdo:
            if xdo.type_text(text):
                return CommandResult.success(f"Text input successful ({len(text)} characters)")
            return CommandResult.error(f"Text input failed: {xdo.last_error}")

    def _move(self, dx: int, dy: int) -> CommandResult:
        with self._input_factory() as xdo:
            if xdo.move_mouse_relative(dx, dy):
                return CommandResult.success(f"Mouse moved by ({dx}, {dy})")
            return CommandResult.error(f"Failed to move mouse: {xdo.last_error}")

    def _click(self, button: str) -> CommandResult:
        with self._input_factory() as xdo:
            if xdo.click(BUTTONS[button]):
                return CommandResult.success(f"Mouse {button} clicked")
            return CommandResult.error(
                f"Failed to click mouse button '{button}': {xdo.last_error}"
            )

    def _scroll(self, dx: int, dy: int) -> CommandResult:
        with self._input_factory() as xdo:
            if xdo.scroll(dx, dy):
                return CommandResult.success(f"Scrolled by ({dx}, {dy})")
            return CommandResult.error(f"Failed to scroll: {xdo.last_error}")

    def _modifier(self, name: str, keysym: str, press: bool) -> CommandResult:
        with self._input_factory() as xdo:
            ok = xdo.key_down(keysym) if press else xdo.key_up(keysym)
            if ok:
                return CommandResult.success(f"Modifier key '{name}' toggled to {str(press).lower()}")
            return CommandResult.error(f"Failed to send modifier key '{name}': {xdo.last_error}")

    def _release_all(self, names: List[str]) -> CommandResult:
        with self._input_factory() as xdo:
            for name in names:
                keysym = modifier_keysym(name)
                if keysym is None:
                    logger.warning(f"Unknown modifier key: {name}")
                    continue
                if not xdo.key_up(keysym):
                    logger.warning(f"Failed to release modifier key '{name}': {xdo.last_error}")
        return CommandResult.success("All modifier keys cleared")

    # Media

    async def _media(self, action: str, label: str) -> CommandResult:
        return await self._call(
            label,
            self._press,
            self.keymap.media_key(action),
            f"{label} command sent",
            f"Failed to send {label.lower()} key",
        )

    async def play_pause(self) -> CommandResult:
        return await self._media("play_pause", "Play/pause")

    async def media_previous(self) -> CommandResult:
        return await self._media("media_previous", "Media previous")

    async def media_next(self) -> CommandResult:
        return await self._media("media_next", "Media next")

    async def media_stop(self) -> CommandResult:
        return await self._media("media_stop", "Media stop")

    # Volume and brightness

    async def _system_key(self, action: str, label: str) -> CommandResult:
        return await self._call(
            label,
            self._press,
            self.keymap.system_key(action),
            f"{label} command sent",
            f"Failed to send {label.lower()} key",
        )

    async def volume_up(self) -> CommandResult:
        return await self._system_key("volume_up", "Volume up")

    async def volume_down(self) -> CommandResult:
        return await self._system_key("volume_down", "Volume down")

    async def volume_mute(self) -> CommandResult:
        return await self._system_key("volume_mute", "Volume mute")

    async def volume_set(self, value: int) -> CommandResult:
        return await self._call("Volume set", self.system.set_volume, value)

    async def brightness_up(self) -> CommandResult:
        return await self._system_key("brightness_up", "Brightness up")

    async def brightness_down(self) -> CommandResult:
        return await self._system_key("brightness_down", "Brightness down")

    async def brightness_set(self, value: int) -> CommandResult:
        return await self._call("Brightness set", self.system.set_brightness, value)

    # Keyboard

    async def send_key(self, name: str) -> CommandResult:
        try:
            keysym = self.keymap.resolve(name)
        except KeyError:
            return CommandResult.error(f"Unknown key: {name}")
        return await self._call("Send key", self._send_key, name, keysym)

    async def text_input(self, text: str) -> CommandResult:
        if not text:
            return CommandResult.success("Empty text input")
        if len(text) > self.text_max_length:
            return CommandResult.error(
                f"Text input too long (max {self.text_max_length} characters)"
            )

        await self.text_guard.wait_turn()
        if not self.text_guard.try_acquire():
            logger.warning("Text input operation already in progress")
            return CommandResult.error("System busy, please try again")

        # The slot is held until the native call ends, even if the caller
        # has given up waiting.
        return await self._call(
            "Text input", self._type, text, on_done=self.text_guard.release
        )

    async def toggle_modifier(self, name: str) -> CommandResult:
        keysym = modifier_keysym(name)
        if keysym is None:
            return CommandResult.error(f"Unknown modifier key: {name}")

        key = name.lower()
        press = not self.modifiers.is_pressed(key)
        result = await self._call("Toggle modifier key", self._modifier, key, keysym, press)
        if result.ok:
            self.modifiers.set(key, press)
        else:
            logger.info(f"Key operation failed, keeping previous state for '{key}'")
        return result

    async def clear_modifiers(self) -> CommandResult:
        pressed = self.modifiers.take_pressed()
        if not pressed:
            return CommandResult.success("All modifier keys cleared")

        result = await self._call("Clear modifier keys", self._release_all, pressed)
        if not result.ok:
            logger.warning(f"Failed to release some modifier keys: {result.message}")
        return CommandResult.success("All modifier keys cleared")

    def modifier_states(self) -> Dict[str, bool]:
        return self.modifiers.snapshot()

    # Mouse

    async def mouse_move(self, dx: int, dy: int) -> CommandResult:
        return await self._call("Mouse move", self._move, dx, dy)

    async def mouse_click(self, button: str) -> CommandResult:
        if button not in BUTTONS:
            return CommandResult.error(f"Unsupported mouse button: {button}")
        return await self._call("Mouse click", self._click, button)

    async def scroll(self, dx: int, dy: int) -> CommandResult:
        return await self._call("Scroll", self._scroll, dx, dy)

    # Browser

    async def open_website(self, url: str) -> CommandResult:
        return await self._call("Open website", self.system.open_url, url)
