"""Event relay: parse inbound frames and fan them out by policy"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from watchparty.observability.metrics import RelayMetrics, get_metrics
from .events import FanOut, MalformedEventError, RelayEvent, parse_event
from .registry import ConnectionRegistry, DeliveryReport, Participant

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Outcome of dispatching one inbound frame"""
    event: Optional[RelayEvent] = None
    report: Optional[DeliveryReport] = None
    error: Optional[str] = None

    @property
    def relayed(self) -> bool:
        return self.error is None and self.report is not None


class EventRelay:
    """Routes relay events to the registry's membership"""

    def __init__(self, registry: ConnectionRegistry, metrics: Optional[RelayMetrics] = None):
        self.registry = registry
        self.metrics = metrics or get_metrics()

    async def dispatch(self, raw: Union[str, bytes], sender: Participant) -> DispatchResult:
        """Handle one frame received from a participant

        Malformed frames and events participants may not originate are
        dropped with a diagnostic; nothing is sent to anyone.

        Args:
            raw: Frame as received from the channel
            sender: Participant the frame came from

        Returns:
            DispatchResult describing what was relayed or why it was dropped
        """
        try:
            event = parse_event(raw)
        except MalformedEventError as e:
            logger.warning(f"Dropping malformed frame from participant {sender.participant_id}: {e}",
                           extra={"extra": {"participant": sender.participant_id, "reason": "malformed"}})
            self.metrics.record_malformed()
            return DispatchResult(error=str(e))

        if not event.from_participant:
            logger.warning(
                f"Dropping '{event.type}' from participant {sender.participant_id}: "
                "only the session lifecycle may originate it",
                extra={"extra": {"participant": sender.participant_id, "event_type": event.type}},
            )
            self.metrics.record_malformed()
            return DispatchResult(event=event, error=f"'{event.type}' is not accepted from participants")

        report = await self.publish(event, sender=sender)
        return DispatchResult(event=event, report=report)

    async def publish(self, event: RelayEvent, sender: Optional[Participant] = None) -> DeliveryReport:
        """Fan an event out according to its policy

        Args:
            event: Event to deliver
            sender: Originating participant, None for hub-originated events
        """
        policy = event.fan_out
        if policy is FanOut.ALL:
            report = await self.registry.broadcast(event)
        elif policy is FanOut.ALL_EXCEPT_SENDER:
            report = await self.registry.broadcast(event, exclude=sender)
        elif policy is FanOut.NONE:
            report = DeliveryReport()
        else:
            raise ValueError(f"Unhandled fan-out policy: {policy}")

        self.metrics.record_event(event.type, delivered=report.delivered, failed=report.failed)
        if report.failed:
            logger.warning(f"'{event.type}' failed to reach {report.failed} participant(s)",
                           extra={"extra": {"event_type": event.type, "failed": report.failed}})
        logger.debug(f"Relayed '{event.type}' to {report.delivered} participant(s)")
        return report

    async def unicast(self, event: RelayEvent, participant: Participant) -> bool:
        """Send an event to exactly one participant"""
        delivered = await self.registry.send(participant, event)
        self.metrics.record_event(event.type, delivered=int(delivered), failed=int(not delivered))
        return delivered
