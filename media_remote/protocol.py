"""
Wire protocol for Media Remote.

Inbound text frames carry a command::

    {"id": "42", "command": "volume_set", "data": {"value": 30}}

Outbound frames carry a response envelope::

    {"id": "42", "status": "success", "message": "Volume set to 30%", "data": null}
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


STATUS_SUCCESS = "success"
STATUS_ERROR = "error"
STATUS_INFO = "info"


class ProtocolError(ValueError):
    """Raised when an inbound frame is not a valid command."""


@dataclass(frozen=True)
class Command:
    """A single client request. Never mutated after parsing."""

    command: str
    id: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one Command Executor operation."""

    status: str
    message: str

    @classmethod
    def success(cls, message: str) -> "CommandResult":
        return cls(STATUS_SUCCESS, message)

    @classmethod
    def error(cls, message: str) -> "CommandResult":
        return cls(STATUS_ERROR, message)

    @classmethod
    def info(cls, message: str) -> "CommandResult":
        return cls(STATUS_INFO, message)

    @property
    def ok(self) -> bool:
        return self.status != STATUS_ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "message": self.message}


@dataclass
class Response:
    """Response envelope sent back to a client."""

    id: Optional[str]
    status: str
    message: str
    data: Optional[Dict[str, Any]] = field(default=None)

    @classmethod
    def from_result(cls, command_id: Optional[str], result: CommandResult) -> "Response":
        return cls(command_id, result.status, result.message)

    @classmethod
    def error(cls, command_id: Optional[str], message: str) -> "Response":
        return cls(command_id, STATUS_ERROR, message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "message": self.message,
            "data": self.data,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def parse_command(raw) -> Command:
    """
    Parse an inbound frame into a Command.

    Args:
        raw: Frame payload (str or UTF-8 bytes)

    Returns:
        Parsed Command

    Raises:
        ProtocolError: If the frame is not a JSON command object
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolError(f"frame is not valid UTF-8: {e}") from e

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ProtocolError(str(e)) from e

    if not isinstance(payload, dict):
        raise ProtocolError("expected a JSON object")

    name = payload.get("command")
    if not isinstance(name, str):
        raise ProtocolError("missing field `command`")

    command_id = payload.get("id")
    if command_id is not None and not isinstance(command_id, str):
        raise ProtocolError("field `id` must be a string or null")

    data = payload.get("data")
    if data is not None and not isinstance(data, dict):
        raise ProtocolError("field `data` must be an object or null")

    return Command(command=name, id=command_id, data=data)
