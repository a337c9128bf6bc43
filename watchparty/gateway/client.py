"""Participant-side client for the watch-party channel"""

import logging
from typing import Dict, List, Optional

from websockets.asyncio.client import ClientConnection, connect

from .events import (
    ChatMessage,
    MalformedEventError,
    PointerPosition,
    RelayEvent,
    SessionAvailable,
    SessionEnded,
    encode_event,
    parse_event,
)
from .session_state import SessionDescriptor

logger = logging.getLogger(__name__)


class PartyClient:
    """Connects to the gateway, sends chat/pointer events and tracks what a
    viewer would see: the current session, the chat log and the last remote
    pointer position.
    """

    def __init__(self, url: str):
        self.url = url
        self.websocket: Optional[ClientConnection] = None
        self.session: Optional[SessionDescriptor] = None
        self.chat_log: List[Dict[str, str]] = []
        self.last_pointer: Optional[PointerPosition] = None

    async def connect(self):
        self.websocket = await connect(self.url)
        logger.info(f"Connected to {self.url}")

    async def close(self):
        if self.websocket is not None:
            await self.websocket.close()
            self.websocket = None

    async def __aenter__(self) -> "PartyClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def send(self, event: RelayEvent):
        if self.websocket is None:
            raise RuntimeError("Client is not connected")
        await self.websocket.send(encode_event(event))

    async def send_chat(self, sender: str, message: str):
        await self.send(ChatMessage(sender=sender, message=message))

    async def send_pointer(self, x: float, y: float):
        await self.send(PointerPosition(x=x, y=y))

    async def receive(self) -> RelayEvent:
        """Wait for the next well-formed event and apply it to the local view

        Frames that do not parse are logged and skipped.
        """
        if self.websocket is None:
            raise RuntimeError("Client is not connected")
        while True:
            raw = await self.websocket.recv()
            try:
                event = parse_event(raw)
            except MalformedEventError as e:
                logger.warning(f"Ignoring unreadable frame from gateway: {e}")
                continue
            self.apply(event)
            return event

    def apply(self, event: RelayEvent):
        """Update the local view the way the browser front-end renders it"""
        if isinstance(event, ChatMessage):
            self.chat_log.append(event.to_data())
        elif isinstance(event, PointerPosition):
            self.last_pointer = event
        elif isinstance(event, SessionAvailable):
            self.session = event.descriptor
        elif isinstance(event, SessionEnded):
            self.session = None
        else:
            raise TypeError(f"Unhandled relay event: {event!r}")
