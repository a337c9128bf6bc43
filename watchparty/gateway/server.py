"""WebSocket gateway server - real-time channel for participants"""

import asyncio
import logging
from typing import Optional

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from watchparty.observability.metrics import RelayMetrics, get_metrics
from .lifecycle import SessionLifecycleManager
from .registry import ConnectionRegistry
from .relay import EventRelay

logger = logging.getLogger(__name__)


class GatewayServer:
    """WebSocket server that admits participants and relays their events

    Each connection's frames are handled one at a time in arrival order;
    different connections are handled concurrently.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        relay: EventRelay,
        lifecycle: SessionLifecycleManager,
        host: str = "127.0.0.1",
        port: int = 3002,
        metrics: Optional[RelayMetrics] = None,
    ):
        """Initialize gateway server

        Args:
            registry: Connection registry shared with the relay
            relay: Event relay
            lifecycle: Session lifecycle manager (late-joiner sync)
            host: Host to bind to (default: localhost)
            port: Port to listen on, 0 picks a free one
        """
        self.registry = registry
        self.relay = relay
        self.lifecycle = lifecycle
        self.host = host
        self.port = port
        self.metrics = metrics or get_metrics()
        self.server: Optional[Server] = None

    async def start(self):
        """Start the gateway server"""
        logger.info(f"Starting gateway on ws://{self.host}:{self.port}")
        self.server = await serve(self._handle_client, self.host, self.port)
        # Resolve the bound port when an ephemeral one was requested
        self.port = self.server.sockets[0].getsockname()[1]
        logger.info(f"✓ Gateway started on ws://{self.host}:{self.port}")

    async def stop(self):
        """Stop the gateway server"""
        logger.info("Stopping gateway...")

        participants = self.registry.snapshot()
        if participants:
            await asyncio.gather(
                *[p.transport.close() for p in participants],
                return_exceptions=True
            )

        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None

        logger.info("Gateway stopped")

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"

    async def _handle_client(self, websocket: ServerConnection):
        """Handle one participant connection for its whole lifetime"""
        participant = self.registry.admit(websocket)
        self.metrics.set_connections(len(self.registry))
        logger.info(f"Participant {participant.participant_id} connected from {participant.remote_address}")

        try:
            await self.lifecycle.sync_participant(participant)

            async for message in websocket:
                try:
                    await self.relay.dispatch(message, participant)
                except Exception as e:
                    logger.error(f"Error relaying frame from participant {participant.participant_id}: {e}", exc_info=True)

        except ConnectionClosed:
            logger.info(f"Participant {participant.participant_id} connection closed")
        finally:
            self.registry.remove(participant)
            self.metrics.set_connections(len(self.registry))
            logger.info(f"Participant {participant.participant_id} disconnected")
