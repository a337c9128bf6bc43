from __future__ import annotations

import pytest

from tests.fakes import FakeProvisioner
from watchparty.gateway.lifecycle import SessionLifecycleManager
from watchparty.gateway.registry import ConnectionRegistry
from watchparty.gateway.relay import EventRelay
from watchparty.gateway.session_state import SessionStateStore
from watchparty.observability.metrics import RelayMetrics


@pytest.fixture
def anyio_backend() -> str:
    # The hub is built on asyncio primitives; run AnyIO-marked tests on asyncio only
    return "asyncio"


@pytest.fixture
def metrics() -> RelayMetrics:
    return RelayMetrics()


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def relay(registry: ConnectionRegistry, metrics: RelayMetrics) -> EventRelay:
    return EventRelay(registry, metrics=metrics)


@pytest.fixture
def store() -> SessionStateStore:
    return SessionStateStore()


@pytest.fixture
def provisioner() -> FakeProvisioner:
    return FakeProvisioner()


@pytest.fixture
def lifecycle(
    store: SessionStateStore,
    relay: EventRelay,
    provisioner: FakeProvisioner,
    metrics: RelayMetrics,
) -> SessionLifecycleManager:
    return SessionLifecycleManager(store, relay, provisioner, timeout=5.0, metrics=metrics)
