"""
Messages exchanged between the benchmark client and a KV server.

Every message maps to a JSON object tagged by ``type`` so it can travel as a
single newline-delimited frame.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

CommandId = int
NodeId = int


# =============================================================================
# KV COMMANDS
# =============================================================================

@dataclass(frozen=True)
class Put:
    key: str
    value: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "Put", "key": self.key, "value": self.value}


@dataclass(frozen=True)
class Get:
    key: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "Get", "key": self.key}


@dataclass(frozen=True)
class Delete:
    key: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "Delete", "key": self.key}


KVCommand = Union[Put, Get, Delete]


def command_from_dict(data: Dict[str, Any]) -> KVCommand:
    """Decode a tagged command object."""
    kind = data.get("type")
    if kind == "Put":
        return Put(str(data["key"]), str(data["value"]))
    if kind == "Get":
        return Get(str(data["key"]))
    if kind == "Delete":
        return Delete(str(data["key"]))
    raise ValueError(f"Unknown command type: {kind!r}")


# =============================================================================
# CLIENT -> SERVER
# =============================================================================

@dataclass(frozen=True)
class Append:
    command_id: CommandId
    command: KVCommand

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "Append", "command_id": self.command_id, "command": self.command.to_dict()}


ClientMessage = Append


def client_message_from_dict(data: Dict[str, Any]) -> ClientMessage:
    if data.get("type") != "Append":
        raise ValueError(f"Unknown client message type: {data.get('type')!r}")
    return Append(int(data["command_id"]), command_from_dict(data["command"]))


# =============================================================================
# SERVER -> CLIENT
# =============================================================================

@dataclass(frozen=True)
class StartSignal:
    """Scheduled start instant, in milliseconds since the Unix epoch."""
    start_time_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "StartSignal", "start_time": self.start_time_ms}


@dataclass(frozen=True)
class Read:
    command_id: CommandId
    value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "Read", "command_id": self.command_id, "value": self.value}


@dataclass(frozen=True)
class Write:
    command_id: CommandId

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "Write", "command_id": self.command_id}


ServerMessage = Union[StartSignal, Read, Write]


def server_message_from_dict(data: Dict[str, Any]) -> ServerMessage:
    """Decode a tagged server message.

    Raises:
        ValueError: If the type tag is unknown
        KeyError: If a required field is missing
    """
    kind = data.get("type")
    if kind == "StartSignal":
        return StartSignal(int(data["start_time"]))
    if kind == "Read":
        value = data.get("value")
        return Read(int(data["command_id"]), None if value is None else str(value))
    if kind == "Write":
        return Write(int(data["command_id"]))
    raise ValueError(f"Unknown server message type: {kind!r}")
