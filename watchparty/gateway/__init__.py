"""Real-time synchronization hub"""

from .events import (
    ChatMessage,
    PointerPosition,
    SessionAvailable,
    SessionEnded,
    RelayEvent,
    parse_event,
    encode_event,
)
from .registry import ConnectionRegistry, Participant
from .session_state import SessionDescriptor, SessionStateStore
from .relay import EventRelay
from .lifecycle import SessionLifecycleManager, LifecycleResult
from .server import GatewayServer
from .http_server import HTTPServer

__all__ = [
    "ChatMessage",
    "PointerPosition",
    "SessionAvailable",
    "SessionEnded",
    "RelayEvent",
    "parse_event",
    "encode_event",
    "ConnectionRegistry",
    "Participant",
    "SessionDescriptor",
    "SessionStateStore",
    "EventRelay",
    "SessionLifecycleManager",
    "LifecycleResult",
    "GatewayServer",
    "HTTPServer",
]
