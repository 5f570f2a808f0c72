"""
Pytest configuration and fixtures for testing.

Provides fake native input handles, a mocked command executor and a
ready-to-use configuration that binds to loopback on an ephemeral port.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from media_remote.config import Config
from media_remote.executor import CommandExecutor, TextInputGuard
from media_remote.protocol import CommandResult
from media_remote.system import SystemControl

EXECUTOR_COROUTINES = [
    "play_pause",
    "media_previous",
    "media_next",
    "media_stop",
    "volume_up",
    "volume_down",
    "volume_mute",
    "volume_set",
    "brightness_up",
    "brightness_down",
    "brightness_set",
    "send_key",
    "text_input",
    "toggle_modifier",
    "clear_modifiers",
    "mouse_move",
    "mouse_click",
    "scroll",
    "open_website",
]


class FakeInputHandler:
    """Stand-in for InputHandler that records calls instead of running xdotool."""

    def __init__(self, log, fail=False):
        self.log = log
        self.fail = fail
        self.last_error = "xdotool exited with status 1" if fail else None

    def __enter__(self):
        self.log.append(("open",))
        return self

    def __exit__(self, exc_type, exc, tb):
        self.log.append(("close",))

    def _record(self, *call):
        self.log.append(call)
        return not self.fail

    def key_press(self, key):
        return self._record("key", key)

    def key_down(self, key):
        return self._record("keydown", key)

    def key_up(self, key):
        return self._record("keyup", key)

    def type_text(self, text):
        return self._record("type", text)

    def move_mouse_relative(self, dx, dy):
        return self._record("move", dx, dy)

    def click(self, button=1):
        return self._record("click", button)

    def scroll(self, dx, dy):
        return self._record("scroll", dx, dy)


def make_mock_executor():
    """
    Creates a mocked CommandExecutor whose operations all succeed.

    Returns:
        MagicMock: Executor with AsyncMock coroutine methods
    """
    executor = MagicMock(spec=CommandExecutor)
    for name in EXECUTOR_COROUTINES:
        setattr(
            executor,
            name,
            AsyncMock(return_value=CommandResult.success(f"{name} done")),
        )
    executor.modifier_states.return_value = {
        "cmd": False,
        "shift": False,
        "alt": False,
        "option": False,
        "ctrl": False,
        "control": False,
    }
    return executor


async def wait_for_clients(server, count, timeout=5.0):
    """Poll until the server's registry holds `count` connections."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while server.registry.count() != count:
        if loop.time() > deadline:
            raise AssertionError(
                f"expected {count} clients, have {server.registry.count()}"
            )
        await asyncio.sleep(0.01)


@pytest.fixture
def input_log():
    return []


@pytest.fixture
def fake_input_factory(input_log):
    return lambda: FakeInputHandler(input_log)


@pytest.fixture
def failing_input_factory(input_log):
    return lambda: FakeInputHandler(input_log, fail=True)


@pytest.fixture
def text_guard():
    return TextInputGuard(min_interval=0)


@pytest.fixture
def system_control():
    control = MagicMock(spec=SystemControl)
    control.set_volume.side_effect = lambda v: CommandResult.success(f"Volume set to {v}%")
    control.set_brightness.side_effect = lambda v: CommandResult.success(f"Brightness set to {v}%")
    control.open_url.side_effect = lambda url: CommandResult.success(f"Opened website: {url}")
    return control


@pytest.fixture
def executor(fake_input_factory, text_guard, system_control):
    executor = CommandExecutor(
        input_factory=fake_input_factory,
        system=system_control,
        text_guard=text_guard,
        workers=2,
    )
    yield executor
    executor.shutdown()


@pytest.fixture
def mock_executor():
    return make_mock_executor()


@pytest.fixture
def config():
    """Loopback config with the HTTP control app disabled."""
    return Config(
        data={
            "server": {
                "host": "127.0.0.1",
                "port": 0,
                "http_port": 0,
                "ping_interval": None,
            },
        }
    )
