"""Watch-party service: wires the hub components and runs both servers"""

import asyncio
import logging
import signal
from typing import Optional

from watchparty.config import Settings
from watchparty.gateway.http_server import HTTPServer
from watchparty.gateway.lifecycle import SessionLifecycleManager
from watchparty.gateway.provisioning import HyperbeamProvisioner, ProvisioningProvider
from watchparty.gateway.registry import ConnectionRegistry
from watchparty.gateway.relay import EventRelay
from watchparty.gateway.server import GatewayServer
from watchparty.gateway.session_state import SessionStateStore
from watchparty.observability.metrics import RelayMetrics, get_metrics

logger = logging.getLogger(__name__)


class PartyService:
    """Owns the hub state and the gateway/HTTP servers for one process"""

    def __init__(
        self,
        settings: Settings,
        provisioner: Optional[ProvisioningProvider] = None,
        metrics: Optional[RelayMetrics] = None,
    ):
        """Initialize the service

        Args:
            settings: Application settings
            provisioner: Provisioning collaborator, defaults to Hyperbeam built
                from settings (requires HYPERBEAM_API_KEY)
            metrics: Metrics collector, defaults to the process collector
        """
        self.settings = settings
        self.metrics = metrics or get_metrics()

        if provisioner is None:
            settings.require_provisioning_credentials()
            provisioner = HyperbeamProvisioner(
                api_key=settings.hyperbeam_api_key,
                base_url=settings.hyperbeam_api_url,
                start_url=settings.hyperbeam_start_url,
                region=settings.hyperbeam_region,
                timeout=settings.provisioning_timeout,
            )

        self.store = SessionStateStore()
        self.registry = ConnectionRegistry()
        self.relay = EventRelay(self.registry, metrics=self.metrics)
        self.lifecycle = SessionLifecycleManager(
            self.store,
            self.relay,
            provisioner,
            timeout=settings.provisioning_timeout,
            metrics=self.metrics,
        )
        self.gateway = GatewayServer(
            self.registry,
            self.relay,
            self.lifecycle,
            host=settings.host,
            port=settings.gateway_port,
            metrics=self.metrics,
        )
        self.http_server = HTTPServer(
            self.lifecycle,
            self.registry,
            host=settings.host,
            port=settings.http_port,
            cors_origin=settings.cors_origin,
            metrics=self.metrics,
        )
        self.running = False

    def _handle_signal(self, signum, frame):
        """Handle shutdown signals gracefully"""
        logger.info(f"Received signal {signum}, shutting down...")
        self.running = False

    async def start(self):
        """Start HTTP and gateway servers"""
        logger.info("Starting watchparty service...")
        await self.http_server.start()
        await self.gateway.start()
        self.running = True
        logger.info("watchparty service started")

    async def stop(self):
        """Stop both servers; an active hosted session is left running"""
        logger.info("Stopping watchparty service...")
        self.running = False
        await self.gateway.stop()
        await self.http_server.stop()
        active = self.store.get()
        if active is not None:
            logger.warning(f"Session {active.session_id} is still active at the provider")
        logger.info("watchparty service stopped")

    async def run(self):
        """Run until SIGINT/SIGTERM"""
        signal.signal(signal.SIGTERM, self._handle_signal)
        signal.signal(signal.SIGINT, self._handle_signal)

        await self.start()
        try:
            while self.running:
                await asyncio.sleep(0.5)
        finally:
            await self.stop()
