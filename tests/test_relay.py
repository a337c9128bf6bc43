from __future__ import annotations

import json
import logging

import pytest

from tests.fakes import FakeTransport
from watchparty.gateway.events import SessionEnded
from watchparty.gateway.registry import ConnectionRegistry
from watchparty.gateway.relay import EventRelay
from watchparty.observability.logging_config import JsonFormatter
from watchparty.observability.metrics import RelayMetrics

pytestmark = pytest.mark.anyio


def _chat(sender: str, message: str) -> str:
    return json.dumps({"type": "chat_message", "data": {"sender": sender, "message": message}})


def _pointer(x: float, y: float) -> str:
    return json.dumps({"type": "mouse_position", "data": {"x": x, "y": y}})


async def test_chat_reaches_all_participants_including_sender(
    registry: ConnectionRegistry, relay: EventRelay
) -> None:
    transports = [FakeTransport() for _ in range(4)]
    participants = [registry.admit(t) for t in transports]

    result = await relay.dispatch(_chat("Ana", "começou!"), participants[2])

    assert result.relayed
    assert result.report.delivered == 4
    for transport in transports:
        assert transport.messages == [
            {"type": "chat_message", "data": {"sender": "Ana", "message": "começou!"}}
        ]


async def test_pointer_reaches_everyone_but_sender(
    registry: ConnectionRegistry, relay: EventRelay
) -> None:
    transports = [FakeTransport() for _ in range(4)]
    participants = [registry.admit(t) for t in transports]

    result = await relay.dispatch(_pointer(120, 45), participants[0])

    assert result.report.delivered == 3
    assert transports[0].sent == []
    for transport in transports[1:]:
        assert transport.messages == [{"type": "mouse_position", "data": {"x": 120, "y": 45}}]


@pytest.mark.parametrize(
    "raw",
    [
        "{oops",
        '{"type": "seek", "data": {"t": 3}}',
        '{"type": "mouse_position", "data": {"x": 1}}',
        '{"type": "mouse_position", "data": {"x": NaN, "y": Infinity}}',
        '{"type": "mouse_position", "data": {"x": 1e999, "y": 2}}',
        "[" * 200000,
    ],
    ids=["not-json", "unknown-type", "missing-field", "nan-constants", "float-overflow", "deep-nesting"],
)
async def test_malformed_frames_are_dropped(
    registry: ConnectionRegistry, relay: EventRelay, metrics: RelayMetrics, raw: str
) -> None:
    transports = [FakeTransport() for _ in range(2)]
    participants = [registry.admit(t) for t in transports]

    result = await relay.dispatch(raw, participants[0])

    assert not result.relayed
    assert result.error
    assert all(t.sent == [] for t in transports)
    assert len(registry) == 2
    assert metrics.get_stats()["relay"]["malformed_dropped"] == 1


async def test_participants_cannot_originate_session_events(
    registry: ConnectionRegistry, relay: EventRelay
) -> None:
    transports = [FakeTransport() for _ in range(2)]
    sender = registry.admit(transports[0])
    registry.admit(transports[1])

    forged = json.dumps({"type": "session_info", "data": {"sessionId": "x", "embedUrl": "https://evil.test"}})
    result = await relay.dispatch(forged, sender)

    assert not result.relayed
    assert all(t.sent == [] for t in transports)


async def test_per_connection_order_is_preserved(
    registry: ConnectionRegistry, relay: EventRelay
) -> None:
    sender = registry.admit(FakeTransport())
    receiver = FakeTransport()
    registry.admit(receiver)

    for i in range(5):
        await relay.dispatch(_chat("Ana", f"msg {i}"), sender)

    assert [m["data"]["message"] for m in receiver.messages] == [f"msg {i}" for i in range(5)]


async def test_hub_events_go_to_everyone(
    registry: ConnectionRegistry, relay: EventRelay, metrics: RelayMetrics
) -> None:
    transports = [FakeTransport() for _ in range(3)]
    for transport in transports:
        registry.admit(transport)

    report = await relay.publish(SessionEnded())

    assert report.delivered == 3
    assert all(t.types() == ["session_destroyed"] for t in transports)
    assert metrics.get_stats()["relay"]["events"] == {"session_destroyed": 1}


async def test_dropped_frame_log_carries_participant_context(
    registry: ConnectionRegistry, relay: EventRelay, caplog: pytest.LogCaptureFixture
) -> None:
    sender = registry.admit(FakeTransport())

    with caplog.at_level(logging.WARNING, logger="watchparty.gateway.relay"):
        await relay.dispatch("{oops", sender)

    record = caplog.records[-1]
    payload = json.loads(JsonFormatter().format(record))
    assert payload["extra"] == {"participant": sender.participant_id, "reason": "malformed"}
