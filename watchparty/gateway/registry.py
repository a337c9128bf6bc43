"""Connected participant registry and fan-out"""

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from websockets.protocol import State

from .events import RelayEvent, encode_event

logger = logging.getLogger(__name__)

_participant_ids = itertools.count(1)


class Participant:
    """One connected channel endpoint

    Wraps the transport (a websockets connection or anything exposing
    ``state`` and an async ``send``) and serializes writes to it.
    """

    def __init__(self, transport: Any):
        self.transport = transport
        self.participant_id = next(_participant_ids)
        self.connected_at = time.time()
        self._send_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self.transport.state is State.OPEN

    @property
    def remote_address(self) -> Optional[Any]:
        return getattr(self.transport, "remote_address", None)

    async def send(self, payload: str) -> bool:
        """Write one frame to the transport

        Returns:
            True if the frame was handed to the transport, False on failure
        """
        if not self.is_open:
            return False
        async with self._send_lock:
            try:
                await self.transport.send(payload)
                return True
            except Exception as e:
                logger.warning(f"Failed to send to participant {self.participant_id}: {e}")
                return False

    def __repr__(self) -> str:
        return f"Participant(id={self.participant_id})"


@dataclass
class DeliveryReport:
    """Outcome of one fan-out pass"""
    delivered: int = 0
    failed: int = 0

    @property
    def attempted(self) -> int:
        return self.delivered + self.failed


class ConnectionRegistry:
    """Set of currently connected participants"""

    def __init__(self):
        self._participants: Dict[int, Participant] = {}

    def admit(self, transport: Any) -> Participant:
        """Register a live connection as a fan-out target

        Args:
            transport: Connection to wrap

        Returns:
            The new participant
        """
        participant = Participant(transport)
        self._participants[participant.participant_id] = participant
        logger.info(
            f"Participant {participant.participant_id} admitted "
            f"({len(self._participants)} connected)"
        )
        return participant

    def remove(self, participant: Participant) -> bool:
        """Unregister a participant; removing an absent one is a no-op

        Returns:
            True if the participant was registered
        """
        removed = self._participants.pop(participant.participant_id, None)
        if removed is not None:
            logger.info(
                f"Participant {participant.participant_id} removed "
                f"({len(self._participants)} connected)"
            )
        return removed is not None

    def snapshot(self) -> List[Participant]:
        """Membership copy taken at call time"""
        return list(self._participants.values())

    def __len__(self) -> int:
        return len(self._participants)

    def __contains__(self, participant: object) -> bool:
        return (
            isinstance(participant, Participant)
            and self._participants.get(participant.participant_id) is participant
        )

    async def send(self, participant: Participant, event: RelayEvent) -> bool:
        """Unicast one event to a single participant"""
        return await participant.send(encode_event(event))

    async def broadcast(
        self, event: RelayEvent, exclude: Optional[Participant] = None
    ) -> DeliveryReport:
        """Deliver an event to every open participant except ``exclude``

        A failing participant only counts as a failed delivery; the others
        still receive the event.
        """
        payload = encode_event(event)
        targets = [p for p in self.snapshot() if p is not exclude]
        report = DeliveryReport()
        if not targets:
            return report

        results = await asyncio.gather(
            *[p.send(payload) for p in targets],
            return_exceptions=True,
        )
        for result in results:
            if result is True:
                report.delivered += 1
            else:
                report.failed += 1
        return report
