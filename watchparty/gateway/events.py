"""Relay events exchanged over the real-time channel"""

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Type, Union

from .session_state import SessionDescriptor


class FanOut(Enum):
    """Who receives a relayed event"""
    ALL = "all"
    ALL_EXCEPT_SENDER = "all_except_sender"
    NONE = "none"


class EventTypes:
    """Wire tags of the channel protocol"""

    CHAT_MESSAGE = "chat_message"
    MOUSE_POSITION = "mouse_position"
    SESSION_INFO = "session_info"
    SESSION_DESTROYED = "session_destroyed"


class MalformedEventError(ValueError):
    """Raised when a raw payload cannot be turned into a relay event"""


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise MalformedEventError(f"'{key}' must be a string")
    return value


def _require_number(data: Dict[str, Any], key: str) -> float:
    value = data.get(key)
    # bool is an int subclass but never a coordinate
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedEventError(f"'{key}' must be a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise MalformedEventError(f"'{key}' must be a finite number")
    return value


@dataclass(frozen=True)
class ChatMessage:
    """Chat line typed by a participant"""
    type: ClassVar[str] = EventTypes.CHAT_MESSAGE
    fan_out: ClassVar[FanOut] = FanOut.ALL
    from_participant: ClassVar[bool] = True

    sender: str
    message: str

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "ChatMessage":
        return cls(sender=_require_str(data, "sender"), message=_require_str(data, "message"))

    def to_data(self) -> Dict[str, Any]:
        return {"sender": self.sender, "message": self.message}


@dataclass(frozen=True)
class PointerPosition:
    """Pointer coordinates of one participant"""
    type: ClassVar[str] = EventTypes.MOUSE_POSITION
    fan_out: ClassVar[FanOut] = FanOut.ALL_EXCEPT_SENDER
    from_participant: ClassVar[bool] = True

    x: float
    y: float

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "PointerPosition":
        return cls(x=_require_number(data, "x"), y=_require_number(data, "y"))

    def to_data(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class SessionAvailable:
    """A shared session is live and can be embedded"""
    type: ClassVar[str] = EventTypes.SESSION_INFO
    fan_out: ClassVar[FanOut] = FanOut.ALL
    from_participant: ClassVar[bool] = False

    descriptor: SessionDescriptor

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "SessionAvailable":
        return cls(descriptor=SessionDescriptor(
            session_id=_require_str(data, "sessionId"),
            embed_url=_require_str(data, "embedUrl"),
        ))

    def to_data(self) -> Dict[str, Any]:
        return self.descriptor.to_dict()


@dataclass(frozen=True)
class SessionEnded:
    """The shared session was torn down"""
    type: ClassVar[str] = EventTypes.SESSION_DESTROYED
    fan_out: ClassVar[FanOut] = FanOut.ALL
    from_participant: ClassVar[bool] = False

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "SessionEnded":
        return cls()

    def to_data(self) -> Dict[str, Any]:
        return {}


RelayEvent = Union[ChatMessage, PointerPosition, SessionAvailable, SessionEnded]

EVENT_CLASSES: Dict[str, Type[RelayEvent]] = {
    cls.type: cls
    for cls in (ChatMessage, PointerPosition, SessionAvailable, SessionEnded)
}


def _reject_constant(name: str) -> Any:
    raise MalformedEventError(f"Non-standard JSON constant: {name}")


def parse_event(raw: Union[str, bytes]) -> RelayEvent:
    """Parse a JSON envelope ``{type, data}`` into a relay event

    Args:
        raw: Text or binary frame received from the channel

    Returns:
        The matching event variant

    Raises:
        MalformedEventError: If the frame is not JSON, not an envelope,
            carries an unknown tag or a payload of the wrong shape
    """
    try:
        envelope = json.loads(raw, parse_constant=_reject_constant)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedEventError(f"Invalid JSON: {e}") from e
    except RecursionError as e:
        raise MalformedEventError("JSON nested too deeply") from e

    if not isinstance(envelope, dict):
        raise MalformedEventError("Envelope must be a JSON object")

    tag = envelope.get("type")
    event_cls = EVENT_CLASSES.get(tag) if isinstance(tag, str) else None
    if event_cls is None:
        raise MalformedEventError(f"Unknown event type: {tag!r}")

    data = envelope.get("data", {})
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedEventError("'data' must be a JSON object")
    return event_cls.from_data(data)


def encode_event(event: RelayEvent) -> str:
    """Serialize an event into its wire envelope"""
    return json.dumps({"type": event.type, "data": event.to_data()}, allow_nan=False)
