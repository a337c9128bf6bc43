"""Observability: structured logging and relay metrics."""

from .logging_config import setup_logging, JsonFormatter
from .metrics import RelayMetrics, get_metrics

__all__ = [
    "setup_logging",
    "JsonFormatter",
    "RelayMetrics",
    "get_metrics",
]
