"""HTTP server exposing session create/destroy actions"""

import json
import logging
from typing import Optional

from aiohttp import web

from watchparty import __version__
from watchparty.observability.metrics import RelayMetrics, get_metrics
from .lifecycle import (
    LifecycleResult,
    NoActiveSessionError,
    SessionBusyError,
    SessionLifecycleManager,
    SessionMismatchError,
)
from .provisioning import ProvisioningTimeout
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


def _status_for(result: LifecycleResult) -> int:
    """HTTP status matching a lifecycle failure"""
    error = result.error
    if isinstance(error, NoActiveSessionError):
        return 404
    if isinstance(error, (SessionMismatchError, SessionBusyError)):
        return 409
    if isinstance(error, ProvisioningTimeout):
        return 504
    return 502


def cors_middleware(origin: str):
    """Allow the browser front-end to call the API from another origin"""

    def allow(headers):
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        headers["Access-Control-Allow-Headers"] = "Content-Type"

    @web.middleware
    async def middleware(request: web.Request, handler):
        if request.method == "OPTIONS":
            response = web.Response(status=204)
        else:
            try:
                response = await handler(request)
            except web.HTTPException as e:
                allow(e.headers)
                raise
        allow(response.headers)
        return response

    return middleware


class HTTPServer:
    """HTTP API for the session lifecycle"""

    def __init__(
        self,
        lifecycle: SessionLifecycleManager,
        registry: ConnectionRegistry,
        host: str = "127.0.0.1",
        port: int = 3001,
        cors_origin: str = "*",
        metrics: Optional[RelayMetrics] = None,
    ):
        """Initialize HTTP server

        Args:
            lifecycle: Session lifecycle manager the actions call into
            registry: Connection registry (reported by health)
            host: Host to bind to
            port: Port to listen on, 0 picks a free one
            cors_origin: Value of Access-Control-Allow-Origin
        """
        self.lifecycle = lifecycle
        self.registry = registry
        self.host = host
        self.port = port
        self.metrics = metrics or get_metrics()
        self.app = web.Application(middlewares=[cors_middleware(cors_origin)])
        self.runner = None
        self.site = None

        self._setup_routes()

    def _setup_routes(self):
        """Setup HTTP routes"""
        self.app.router.add_post("/api/create-session", self.create_session)
        self.app.router.add_post("/api/destroy-session", self.destroy_session)
        self.app.router.add_get("/api/session", self.current_session)
        self.app.router.add_get("/api/health", self.health_check)
        self.app.router.add_get("/api/metrics", self.metrics_snapshot)

    async def create_session(self, request: web.Request) -> web.Response:
        """Provision a new shared session (replacing any active one)"""
        logger.info("Received request to create a session")
        result = await self.lifecycle.create_session()
        if not result.success:
            return web.json_response(
                {"success": False, "error": result.message},
                status=_status_for(result),
            )
        return web.json_response({"success": True, **result.descriptor.to_dict()})

    async def destroy_session(self, request: web.Request) -> web.Response:
        """Tear down the active session; body must carry its sessionId"""
        logger.info("Received request to destroy a session")
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            body = None
        session_id = body.get("sessionId") if isinstance(body, dict) else None
        if not isinstance(session_id, str) or not session_id:
            return web.json_response(
                {"success": False, "error": "sessionId is required"},
                status=400,
            )

        result = await self.lifecycle.destroy_session(session_id)
        if not result.success:
            return web.json_response(
                {"success": False, "error": result.message},
                status=_status_for(result),
            )
        return web.json_response({"success": True, "message": result.message})

    async def current_session(self, request: web.Request) -> web.Response:
        """Report the active session, if any"""
        descriptor = self.lifecycle.store.get()
        if descriptor is None:
            return web.json_response({"active": False})
        return web.json_response({"active": True, **descriptor.to_dict()})

    async def health_check(self, request: web.Request) -> web.Response:
        """Health check endpoint"""
        return web.json_response({
            "status": "ok",
            "service": "watchparty",
            "version": __version__,
            "participants": len(self.registry),
            "session": self.lifecycle.state.value,
        })

    async def metrics_snapshot(self, request: web.Request) -> web.Response:
        """Relay and provisioning counters"""
        return web.json_response(self.metrics.get_stats())

    async def start(self):
        """Start the HTTP server"""
        logger.info(f"Starting HTTP server on http://{self.host}:{self.port}")

        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        self.site = web.TCPSite(self.runner, self.host, self.port)
        await self.site.start()

        logger.info("✓ HTTP server started")
        logger.info("  Create session: POST http://%s:%s/api/create-session", self.host, self.port)
        logger.info("  Destroy session: POST http://%s:%s/api/destroy-session", self.host, self.port)

    async def stop(self):
        """Stop the HTTP server"""
        if self.runner:
            await self.runner.cleanup()
        logger.info("HTTP server stopped")
