"""
Tests for the command dispatcher.

The executor is mocked, so these tests check routing, payload validation and
envelope construction without touching the native layer.
"""

import asyncio

import pytest

from media_remote.dispatcher import CommandDispatcher, command_names
from media_remote.protocol import Command, CommandResult

NO_PAYLOAD_COMMANDS = [
    "play_pause",
    "media_previous",
    "media_next",
    "media_stop",
    "volume_up",
    "volume_down",
    "volume_mute",
    "brightness_up",
    "brightness_down",
    "clear_modifiers",
]


@pytest.fixture
def dispatcher(mock_executor):
    return CommandDispatcher(mock_executor)


class TestRouting:
    """Tests for command name lookup."""

    def test_known_commands_registered(self):
        """Test that every protocol command has a handler."""
        names = set(command_names())
        for name in NO_PAYLOAD_COMMANDS + [
            "volume_set",
            "brightness_set",
            "send_key",
            "text_input",
            "mouse_move",
            "mouse_click",
            "scroll",
            "open_website",
            "toggle_modifier",
        ]:
            assert name in names

    @pytest.mark.parametrize("name", NO_PAYLOAD_COMMANDS)
    async def test_no_payload_commands(self, dispatcher, mock_executor, name):
        """Test that simple commands call their executor operation once."""
        response = await dispatcher.handle(Command(command=name, id="r1"))

        getattr(mock_executor, name).assert_awaited_once_with()
        assert response.id == "r1"
        assert response.status == "success"
        assert response.message == f"{name} done"

    async def test_unknown_command(self, dispatcher):
        """Test the error for an unknown command name."""
        response = await dispatcher.handle(Command(command="self_destruct", id="9"))

        assert response.status == "error"
        assert "Unknown command: self_destruct" in response.message
        assert response.id == "9"

    async def test_names_are_case_sensitive(self, dispatcher, mock_executor):
        """Test that command names must match exactly."""
        response = await dispatcher.handle(Command(command="Play_Pause"))

        assert response.status == "error"
        assert "Unknown command: Play_Pause" in response.message
        mock_executor.play_pause.assert_not_awaited()

    async def test_id_echoed_when_absent(self, dispatcher):
        """Test that a missing id comes back as None."""
        response = await dispatcher.handle(Command(command="volume_up"))

        assert response.id is None
        assert response.to_dict()["data"] is None

    async def test_executor_status_passed_through(self, dispatcher, mock_executor):
        """Test that the executor's status and message are copied verbatim."""
        mock_executor.volume_set.return_value = CommandResult.info(
            "Volume set not implemented on Windows yet"
        )

        response = await dispatcher.handle(
            Command(command="volume_set", id="v", data={"value": 10})
        )

        assert response.status == "info"
        assert response.message == "Volume set not implemented on Windows yet"


class TestPayloadValidation:
    """Tests for required payload fields."""

    async def test_volume_set(self, dispatcher, mock_executor):
        response = await dispatcher.handle(
            Command(command="volume_set", id="1", data={"value": 55})
        )

        mock_executor.volume_set.assert_awaited_once_with(55)
        assert response.status == "success"

    @pytest.mark.parametrize("value", [-20, 150, 1000])
    async def test_volume_set_out_of_range_not_rejected(self, dispatcher, mock_executor, value):
        """Test that range is left to the executor."""
        response = await dispatcher.handle(
            Command(command="volume_set", data={"value": value})
        )

        mock_executor.volume_set.assert_awaited_once_with(value)
        assert response.status == "success"

    async def test_volume_set_missing_data(self, dispatcher, mock_executor):
        response = await dispatcher.handle(Command(command="volume_set", id="x"))

        assert response.status == "error"
        assert response.message == "Missing data for volume_set command"
        assert response.id == "x"
        mock_executor.volume_set.assert_not_awaited()

    @pytest.mark.parametrize("value", ["50", None, True, [50]])
    async def test_volume_set_invalid_value(self, dispatcher, mock_executor, value):
        response = await dispatcher.handle(
            Command(command="volume_set", data={"value": value})
        )

        assert response.status == "error"
        assert "'value'" in response.message
        mock_executor.volume_set.assert_not_awaited()

    async def test_brightness_set(self, dispatcher, mock_executor):
        await dispatcher.handle(Command(command="brightness_set", data={"value": 30}))

        mock_executor.brightness_set.assert_awaited_once_with(30)

    async def test_send_key(self, dispatcher, mock_executor):
        await dispatcher.handle(Command(command="send_key", data={"key": "Enter"}))

        mock_executor.send_key.assert_awaited_once_with("Enter")

    async def test_send_key_missing_key(self, dispatcher, mock_executor):
        response = await dispatcher.handle(Command(command="send_key", data={}))

        assert response.status == "error"
        assert "'key'" in response.message
        mock_executor.send_key.assert_not_awaited()

    async def test_mouse_move(self, dispatcher, mock_executor):
        await dispatcher.handle(
            Command(command="mouse_move", data={"deltaX": 5, "deltaY": -3})
        )

        mock_executor.mouse_move.assert_awaited_once_with(5, -3)

    async def test_mouse_move_fractional_deltas(self, dispatcher, mock_executor):
        """Test that trackpad deltas given as floats are rounded."""
        await dispatcher.handle(
            Command(command="mouse_move", data={"deltaX": 2.6, "deltaY": -0.4})
        )

        mock_executor.mouse_move.assert_awaited_once_with(3, 0)

    async def test_mouse_move_missing_delta(self, dispatcher, mock_executor):
        response = await dispatcher.handle(
            Command(command="mouse_move", data={"deltaX": 5})
        )

        assert response.status == "error"
        assert "'deltaY'" in response.message
        mock_executor.mouse_move.assert_not_awaited()

    async def test_scroll(self, dispatcher, mock_executor):
        await dispatcher.handle(Command(command="scroll", data={"deltaX": 0, "deltaY": 3}))

        mock_executor.scroll.assert_awaited_once_with(0, 3)

    async def test_mouse_click(self, dispatcher, mock_executor):
        await dispatcher.handle(Command(command="mouse_click", data={"button": "right"}))

        mock_executor.mouse_click.assert_awaited_once_with("right")

    async def test_mouse_click_wrong_type(self, dispatcher, mock_executor):
        response = await dispatcher.handle(Command(command="mouse_click", data={"button": 1}))

        assert response.status == "error"
        mock_executor.mouse_click.assert_not_awaited()

    async def test_open_website(self, dispatcher, mock_executor):
        await dispatcher.handle(
            Command(command="open_website", data={"url": "https://example.com"})
        )

        mock_executor.open_website.assert_awaited_once_with("https://example.com")

    async def test_open_website_missing_url(self, dispatcher, mock_executor):
        response = await dispatcher.handle(Command(command="open_website"))

        assert response.status == "error"
        assert response.message == "Missing data for open_website command"

    async def test_toggle_modifier(self, dispatcher, mock_executor):
        await dispatcher.handle(Command(command="toggle_modifier", data={"key": "shift"}))

        mock_executor.toggle_modifier.assert_awaited_once_with("shift")


class TestTextInputPolicy:
    """Tests for the extra guarding around text_input."""

    async def test_empty_text_short_circuits(self, dispatcher, mock_executor):
        """Test that empty text succeeds without touching the executor."""
        response = await dispatcher.handle(
            Command(command="text_input", id="t", data={"text": ""})
        )

        assert response.status == "success"
        assert response.id == "t"
        mock_executor.text_input.assert_not_called()

    async def test_text_over_limit_rejected(self, dispatcher, mock_executor):
        """Test that 1001 characters are rejected before invocation."""
        response = await dispatcher.handle(
            Command(command="text_input", data={"text": "a" * 1001})
        )

        assert response.status == "error"
        assert "1000" in response.message
        mock_executor.text_input.assert_not_called()

    async def test_text_at_limit_accepted(self, dispatcher, mock_executor):
        text = "a" * 1000
        response = await dispatcher.handle(Command(command="text_input", data={"text": text}))

        assert response.status == "success"
        mock_executor.text_input.assert_awaited_once_with(text)

    async def test_text_missing(self, dispatcher, mock_executor):
        response = await dispatcher.handle(Command(command="text_input", data={"txt": "hi"}))

        assert response.status == "error"
        assert "'text'" in response.message


class TestFailures:
    """Tests for timeouts and unexpected executor errors."""

    async def test_timeout_keeps_id(self, mock_executor):
        """Test that a slow command becomes a timeout error with its id."""
        async def slow():
            await asyncio.sleep(5)
            return CommandResult.success("too late")

        mock_executor.play_pause.side_effect = slow
        dispatcher = CommandDispatcher(mock_executor, timeout=0.05)

        response = await dispatcher.handle(Command(command="play_pause", id="slow-1"))

        assert response.status == "error"
        assert response.message == "Command timed out"
        assert response.id == "slow-1"

    async def test_executor_exception_contained(self, dispatcher, mock_executor):
        """Test that an exception from the executor becomes an error response."""
        mock_executor.media_next.side_effect = RuntimeError("native layer exploded")

        response = await dispatcher.handle(Command(command="media_next", id="boom"))

        assert response.status == "error"
        assert "native layer exploded" in response.message
        assert response.id == "boom"
