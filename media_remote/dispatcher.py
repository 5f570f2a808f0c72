"""
Command dispatcher for Media Remote.

Maps a command name to one executor operation, validates the payload before
anything native runs, and turns the outcome into a response envelope.

Handlers are registered with the @command decorator::

    @command("volume_set")
    async def volume_set(dispatcher, data):
        value = require_int(data, "value", "volume_set")
        return await dispatcher.executor.volume_set(value)
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .executor import DEFAULT_TEXT_MAX_LENGTH, CommandExecutor
from .protocol import Command, CommandResult, Response

logger = logging.getLogger(__name__)

DEFAULT_DISPATCH_TIMEOUT = 30.0

Handler = Callable[["CommandDispatcher", Optional[Dict[str, Any]]], Awaitable[CommandResult]]

_handlers: Dict[str, Handler] = {}


class PayloadError(ValueError):
    """Raised when a command's data is missing or has the wrong shape."""


def command(name: str) -> Callable[[Handler], Handler]:
    """Register a handler under an exact, case-sensitive command name."""
    def decorator(fn: Handler) -> Handler:
        if name in _handlers:
            logger.warning(f"Command '{name}' is being re-registered")
        _handlers[name] = fn
        return fn
    return decorator


def command_names() -> List[str]:
    return list(_handlers.keys())


# Payload helpers

def require_data(data: Optional[Dict[str, Any]], name: str) -> Dict[str, Any]:
    if data is None:
        raise PayloadError(f"Missing data for {name} command")
    return data


def require_int(data: Optional[Dict[str, Any]], field: str, name: str) -> int:
    value = require_data(data, name).get(field)
    # bool is an int subclass; JSON true/false is not a number here
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PayloadError(f"Missing or invalid '{field}' parameter")
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            raise PayloadError(f"Missing or invalid '{field}' parameter")
        value = int(round(value))
    return value


def require_str(data: Optional[Dict[str, Any]], field: str, name: str) -> str:
    value = require_data(data, name).get(field)
    if not isinstance(value, str):
        raise PayloadError(f"Missing or invalid '{field}' parameter")
    return value


class CommandDispatcher:
    """
    Route parsed commands to the executor.

    Args:
        executor: Command executor (anything with the same coroutine methods)
        timeout: Seconds to wait for one command before answering with an error
        text_max_length: Longest text accepted by text_input
    """

    def __init__(
        self,
        executor: CommandExecutor,
        timeout: float = DEFAULT_DISPATCH_TIMEOUT,
        text_max_length: int = DEFAULT_TEXT_MAX_LENGTH,
    ):
        self.executor = executor
        self.timeout = timeout
        self.text_max_length = text_max_length

    async def handle(self, cmd: Command) -> Response:
        """Dispatch one command. Never raises."""
        handler = _handlers.get(cmd.command)
        if handler is None:
            logger.debug(f"Unknown command: {cmd.command}")
            return Response.error(cmd.id, f"Unknown command: {cmd.command}")

        logger.debug(f"Dispatching {cmd.command} (id={cmd.id})")
        try:
            result = await asyncio.wait_for(handler(self, cmd.data), timeout=self.timeout)
        except PayloadError as e:
            return Response.error(cmd.id, str(e))
        except asyncio.TimeoutError:
            logger.warning(f"Command {cmd.command} timed out after {self.timeout}s")
            return Response.error(cmd.id, "Command timed out")
        except Exception as e:
            logger.exception(f"Command {cmd.command} failed")
            return Response.error(cmd.id, f"Command failed: {e}")

        return Response.from_result(cmd.id, result)


# Media

@command("play_pause")
async def play_pause(dispatcher, data):
    return await dispatcher.executor.play_pause()


@command("media_previous")
async def media_previous(dispatcher, data):
    return await dispatcher.executor.media_previous()


@command("media_next")
async def media_next(dispatcher, data):
    return await dispatcher.executor.media_next()


@command("media_stop")
async def media_stop(dispatcher, data):
    return await dispatcher.executor.media_stop()


# Volume

@command("volume_up")
async def volume_up(dispatcher, data):
    return await dispatcher.executor.volume_up()


@command("volume_down")
async def volume_down(dispatcher, data):
    return await dispatcher.executor.volume_down()


@command("volume_mute")
async def volume_mute(dispatcher, data):
    return await dispatcher.executor.volume_mute()


@command("volume_set")
async def volume_set(dispatcher, data):
    # Range is the executor's business
    value = require_int(data, "value", "volume_set")
    return await dispatcher.executor.volume_set(value)


# Brightness

@command("brightness_up")
async def brightness_up(dispatcher, data):
    return await dispatcher.executor.brightness_up()


@command("brightness_down")
async def brightness_down(dispatcher, data):
    return await dispatcher.executor.brightness_down()


@command("brightness_set")
async def brightness_set(dispatcher, data):
    value = require_int(data, "value", "brightness_set")
    return await dispatcher.executor.brightness_set(value)


# Keyboard

@command("send_key")
async def send_key(dispatcher, data):
    key = require_str(data, "key", "send_key")
    return await dispatcher.executor.send_key(key)


@command("text_input")
async def text_input(dispatcher, data):
    text = require_str(data, "text", "text_input")
    if not text:
        return CommandResult.success("Empty text input ignored")
    if len(text) > dispatcher.text_max_length:
        return CommandResult.error(
            f"Text too long (max {dispatcher.text_max_length} characters)"
        )
    return await dispatcher.executor.text_input(text)


@command("toggle_modifier")
async def toggle_modifier(dispatcher, data):
    key = require_str(data, "key", "toggle_modifier")
    return await dispatcher.executor.toggle_modifier(key)


@command("clear_modifiers")
async def clear_modifiers(dispatcher, data):
    return await dispatcher.executor.clear_modifiers()


# Mouse

@command("mouse_move")
async def mouse_move(dispatcher, data):
    dx = require_int(data, "deltaX", "mouse_move")
    dy = require_int(data, "deltaY", "mouse_move")
    return await dispatcher.executor.mouse_move(dx, dy)


@command("mouse_click")
async def mouse_click(dispatcher, data):
    button = require_str(data, "button", "mouse_click")
    return await dispatcher.executor.mouse_click(button)


@command("scroll")
async def scroll(dispatcher, data):
    dx = require_int(data, "deltaX", "scroll")
    dy = require_int(data, "deltaY", "scroll")
    return await dispatcher.executor.scroll(dx, dy)


# Browser

@command("open_website")
async def open_website(dispatcher, data):
    url = require_str(data, "url", "open_website")
    return await dispatcher.executor.open_website(url)
