"""Session lifecycle: create/destroy the shared session and announce it"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Optional, TypeVar

from watchparty.observability.metrics import RelayMetrics, get_metrics
from .events import SessionAvailable, SessionEnded
from .provisioning import (
    ProvisioningError,
    ProvisioningNotFound,
    ProvisioningProvider,
    ProvisioningTimeout,
)
from .registry import Participant
from .relay import EventRelay
from .session_state import SessionDescriptor, SessionStateStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LifecycleState(Enum):
    IDLE = "idle"
    ACTIVE = "active"


class LifecycleError(Exception):
    pass


class SessionBusyError(LifecycleError):
    """Another create/destroy is still in flight"""


class NoActiveSessionError(LifecycleError):
    pass


class SessionMismatchError(LifecycleError):
    """Destroy was asked for a session that is not the active one"""


@dataclass
class LifecycleResult:
    """Caller-facing outcome of a lifecycle operation"""
    success: bool
    message: str
    descriptor: Optional[SessionDescriptor] = None
    error: Optional[Exception] = None


class SessionLifecycleManager:
    """Single writer of the session state store

    One create/destroy runs at a time. A request arriving while another is in
    flight is rejected as busy instead of queued, so transitions are never
    reordered.
    """

    def __init__(
        self,
        store: SessionStateStore,
        relay: EventRelay,
        provisioner: ProvisioningProvider,
        timeout: Optional[float] = 30.0,
        metrics: Optional[RelayMetrics] = None,
    ):
        self.store = store
        self.relay = relay
        self.provisioner = provisioner
        self.timeout = timeout
        self.metrics = metrics or get_metrics()
        self._lock = asyncio.Lock()

    @property
    def state(self) -> LifecycleState:
        return LifecycleState.ACTIVE if self.store.is_active else LifecycleState.IDLE

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def _busy_result(self, action: str) -> LifecycleResult:
        logger.warning(f"Rejecting {action}: a session operation is already in progress")
        return LifecycleResult(
            success=False,
            message="Session operation already in progress",
            descriptor=self.store.get(),
            error=SessionBusyError("Session operation already in progress"),
        )

    async def _provision(self, call: Awaitable[T]) -> T:
        """Run one provisioning call under the timeout, recording metrics"""
        started = time.monotonic()
        try:
            if self.timeout:
                result = await asyncio.wait_for(call, self.timeout)
            else:
                result = await call
        except asyncio.TimeoutError as e:
            self.metrics.record_provisioning_call(time.monotonic() - started, error=True)
            raise ProvisioningTimeout(
                f"Provisioning call timed out after {self.timeout}s"
            ) from e
        except ProvisioningError:
            self.metrics.record_provisioning_call(time.monotonic() - started, error=True)
            raise
        self.metrics.record_provisioning_call(time.monotonic() - started)
        return result

    async def create_session(self) -> LifecycleResult:
        """Provision a new shared session, replacing any active one

        The active session, if any, is torn down first on a best-effort
        basis. On success every participant receives ``session_info``.
        """
        if self.busy:
            return self._busy_result("create")

        async with self._lock:
            replaced = self.store.get()
            if replaced is not None:
                logger.info(f"Destroying existing session: {replaced.session_id}")
                try:
                    await self._provision(self.provisioner.destroy_remote_session(replaced.session_id))
                except ProvisioningError as e:
                    logger.warning(f"Could not tear down session {replaced.session_id}: {e}")
                self.store.set(None)

            try:
                descriptor = await self._provision(self.provisioner.create_remote_session())
            except ProvisioningError as e:
                logger.error(f"Failed to create session: {e}", extra={"extra": {"error": type(e).__name__}})
                if replaced is not None:
                    await self.relay.publish(SessionEnded())
                return LifecycleResult(success=False, message="Failed to create session", error=e)

            self.store.set(descriptor)
            logger.info(f"Session created: {descriptor.session_id}",
                        extra={"extra": {"session_id": descriptor.session_id, "replaced": bool(replaced)}})
            await self.relay.publish(SessionAvailable(descriptor=descriptor))
            return LifecycleResult(success=True, message="Session created", descriptor=descriptor)

    async def destroy_session(self, session_id: str) -> LifecycleResult:
        """Tear down the active session

        Args:
            session_id: Identifier the caller believes is active; must match
                the stored descriptor

        Returns:
            LifecycleResult; on success every participant receives
            ``session_destroyed`` exactly once
        """
        if self.busy:
            return self._busy_result("destroy")

        async with self._lock:
            current = self.store.get()
            if current is None:
                return LifecycleResult(
                    success=False,
                    message="No active session",
                    error=NoActiveSessionError("No active session"),
                )
            if current.session_id != session_id:
                logger.warning(f"Refusing to destroy {session_id!r}: active session is {current.session_id}")
                return LifecycleResult(
                    success=False,
                    message=f"Session {session_id} is not the active session",
                    descriptor=current,
                    error=SessionMismatchError(session_id),
                )

            try:
                await self._provision(self.provisioner.destroy_remote_session(session_id))
            except ProvisioningNotFound:
                # Already gone remotely; the store must not keep pointing at it
                logger.warning(f"Session {session_id} was already gone at the provider")
            except ProvisioningError as e:
                logger.error(f"Failed to destroy session {session_id}: {e}")
                return LifecycleResult(
                    success=False,
                    message="Failed to destroy session",
                    descriptor=current,
                    error=e,
                )

            self.store.set(None)
            logger.info(f"Session destroyed: {session_id}", extra={"extra": {"session_id": session_id}})
            await self.relay.publish(SessionEnded())
            return LifecycleResult(success=True, message=f"Session {session_id} destroyed")

    async def sync_participant(self, participant: Participant) -> bool:
        """Tell a newly admitted participant about the active session

        Returns:
            True if a ``session_info`` was sent
        """
        descriptor = self.store.get()
        if descriptor is None:
            return False
        return await self.relay.unicast(SessionAvailable(descriptor=descriptor), participant)
