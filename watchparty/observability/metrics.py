"""Simple in-memory metrics for relay traffic and provisioning calls."""

from collections import Counter
from typing import Dict, List, Optional


class RelayMetrics:
    """Collector for fan-out and provisioning metrics."""

    def __init__(self):
        self._events: Counter = Counter()
        self._deliveries: int = 0
        self._delivery_failures: int = 0
        self._malformed: int = 0
        self._provisioning_calls: int = 0
        self._provisioning_errors: int = 0
        self._provisioning_latencies: List[float] = []
        self._connections: int = 0
        self._max_samples = 1000

    def record_event(self, event_type: str, delivered: int = 0, failed: int = 0) -> None:
        self._events[event_type] += 1
        self._deliveries += delivered
        self._delivery_failures += failed

    def record_malformed(self) -> None:
        self._malformed += 1

    def record_provisioning_call(self, latency_sec: float, error: bool = False) -> None:
        self._provisioning_calls += 1
        if error:
            self._provisioning_errors += 1
        else:
            self._provisioning_latencies.append(latency_sec)
            if len(self._provisioning_latencies) > self._max_samples:
                self._provisioning_latencies.pop(0)

    def set_connections(self, count: int) -> None:
        self._connections = count

    def get_stats(self) -> Dict:
        """Return current metrics snapshot."""
        latencies = self._provisioning_latencies[-100:]
        calls = self._provisioning_calls
        return {
            "relay": {
                "events": dict(self._events),
                "deliveries": self._deliveries,
                "delivery_failures": self._delivery_failures,
                "malformed_dropped": self._malformed,
                "connections": self._connections,
            },
            "provisioning": {
                "calls": calls,
                "errors": self._provisioning_errors,
                "error_rate": self._provisioning_errors / calls if calls else 0,
                "latency_mean_sec": sum(latencies) / len(latencies) if latencies else 0,
            },
        }

    def reset(self) -> None:
        self._events.clear()
        self._deliveries = 0
        self._delivery_failures = 0
        self._malformed = 0
        self._provisioning_calls = 0
        self._provisioning_errors = 0
        self._provisioning_latencies.clear()
        self._connections = 0


_metrics: Optional[RelayMetrics] = None


def get_metrics() -> RelayMetrics:
    global _metrics
    if _metrics is None:
        _metrics = RelayMetrics()
    return _metrics
