"""Per-target liveness state and its Prometheus view.

:class:`MetricState` is the only shared mutable object in the exporter. It
is written by probe tasks and read on every scrape. Entries are created by
the first completed probe of a target and afterwards hold that target's most
recent result.
"""

import threading

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)
from prometheus_client.core import GaugeMetricFamily

from port_exporter.core.types import Target

PORT_STATUS_METRIC = "port_status"
PORT_STATUS_HELP = "Shows whether the port is up (1) or down (0)"
PORT_STATUS_LABELS = ("host", "port", "label", "describe")

TargetKey = tuple[str, str, str, str]


class MetricState:
    """Last known up/down value per target identity.

    Writes replace a single dict slot under a lock and reads copy the dict
    under the same lock, so a scrape never sees a half-applied update and
    two writers to the same target resolve as last-write-wins.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, include_process_metrics: bool = False) -> None:
        self._values: dict[TargetKey, int] = {}
        self._lock = threading.Lock()

        self.registry = CollectorRegistry(auto_describe=False)
        self.registry.register(PortStatusCollector(self))
        if include_process_metrics:
            ProcessCollector(registry=self.registry)
            PlatformCollector(registry=self.registry)

    def update(self, target: Target, up: bool) -> None:
        """Record the result of a completed probe."""
        value = 1 if up else 0
        with self._lock:
            self._values[target.key] = value

    def get(self, target: Target) -> int | None:
        with self._lock:
            return self._values.get(target.key)

    def snapshot(self) -> dict[TargetKey, int]:
        """Copy of every entry, consistent as of a single instant."""
        with self._lock:
            return dict(self._values)

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def render(self) -> bytes:
        """Registry contents in the Prometheus text exposition format."""
        return generate_latest(self.registry)


class PortStatusCollector:
    """Custom collector building the ``port_status`` gauge from a snapshot."""

    def __init__(self, state: MetricState) -> None:
        self._state = state

    def collect(self):
        family = GaugeMetricFamily(
            PORT_STATUS_METRIC,
            PORT_STATUS_HELP,
            labels=PORT_STATUS_LABELS,
        )
        for key, value in sorted(self._state.snapshot().items()):
            family.add_metric(list(key), value)
        yield family
