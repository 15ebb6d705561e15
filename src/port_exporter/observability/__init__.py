"""Observability module -- metric state, scrape endpoint and probe events."""

from .events import LoggingProbeObserver, ProbeObserver
from .metrics import MetricState, PortStatusCollector
from .prometheus_server import MetricsServer

__all__ = [
    "LoggingProbeObserver",
    "MetricState",
    "MetricsServer",
    "PortStatusCollector",
    "ProbeObserver",
]
