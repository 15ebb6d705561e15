"""Probe event observers.

The prober reports every completed probe to an observer instead of logging
itself, so the same results can be routed to logs, tests or anything else
that implements :class:`ProbeObserver`.
"""

import logging
from typing import Protocol

from port_exporter.core.types import ProbeResult
from port_exporter.logging import bind_target, clear_target, get_logger

logger = get_logger(__name__)


class ProbeObserver(Protocol):
    """Receives one event per completed probe."""

    def probe_completed(self, result: ProbeResult) -> None: ...


class LoggingProbeObserver:
    """Logs ``Port is up`` at INFO and ``Port is down`` at ERROR.

    The target is bound into the logging context, so every field of the
    target shows up on the record in both text and JSON output.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._logger = log or logger

    def probe_completed(self, result: ProbeResult) -> None:
        target = result.target
        bind_target(target.host, target.port, target.label, target.describe)
        try:
            if result.up:
                self._logger.info("Port is up")
            else:
                self._logger.error("Port is down", extra={"error": result.error_message})
        finally:
            clear_target()
