"""Structured logging setup with per-probe target context.

Two output formats are supported, selected by ``log_format`` in the
configuration document (or ``PORT_EXPORTER_LOG_FORMAT``):

- ``text`` (default): human-readable console output.
  Format: ``2024-01-01 12:00:00 | ERROR    | port_exporter.observability.events
           [host=10.0.0.1] [port=22] [label=ssh] | Port is down | error=...``

- ``json``: one JSON object per line with fields ``timestamp``, ``level``,
  ``logger``, ``message``, ``host``, ``port``, ``label``, ``describe``,
  ``service`` and, when present, ``error`` and ``exc_*``.

Verbosity follows the four levels of the ``log_level`` setting:
``debug``, ``info``, ``error`` and ``off``. ``off`` still lets critical
messages through so fatal startup errors are reported.

Context propagation:
  The target ContextVars are asyncio-native. Each probe runs in its own task,
  which receives a copy of the context on creation, so binding a target inside
  a probe task never leaks into sibling probes. Use ``bind_target()`` rather
  than setting the vars directly.
"""

import json
import logging
import sys
import traceback
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import IO, Any

# ---------------------------------------------------------------------------
# Context variables
# ---------------------------------------------------------------------------

host_var: ContextVar[str | None] = ContextVar("probe_host", default=None)
port_var: ContextVar[str | None] = ContextVar("probe_port", default=None)
label_var: ContextVar[str | None] = ContextVar("probe_label", default=None)
describe_var: ContextVar[str | None] = ContextVar("probe_describe", default=None)

_SERVICE_NAME = "port_exporter"

_CONTEXT_FIELDS = ("host", "port", "label", "describe")

LOG_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "error": logging.ERROR,
    "off": logging.CRITICAL,
}


def level_for(name: str | None) -> int:
    """Map a configured verbosity name to a stdlib level (unknown -> INFO)."""
    return LOG_LEVELS.get((name or "").strip().lower(), logging.INFO)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

class ProbeContextFilter(logging.Filter):
    """Inject the bound probe target into every log record.

    Fields set on each ``LogRecord`` (empty string when not bound):
    ``host``, ``port``, ``label``, ``describe``. Values passed explicitly via
    ``extra=`` are left untouched.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        values = {
            "host": host_var.get(),
            "port": port_var.get(),
            "label": label_var.get(),
            "describe": describe_var.get(),
        }
        for name, value in values.items():
            if not hasattr(record, name):
                setattr(record, name, value or "")
        return True


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------

class JSONFormatter(logging.Formatter):
    """Emit one JSON object per log line.

    Non-serialisable values are coerced to ``str``. ``error`` is only present
    on records that carry one (failed probes).
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=UTC).isoformat()

        payload: dict[str, Any] = {
            "timestamp": ts,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _CONTEXT_FIELDS:
            payload[name] = getattr(record, name, "")
        payload["service"] = _SERVICE_NAME

        error = getattr(record, "error", None)
        if error:
            payload["error"] = error

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            payload["exc_type"] = exc_type.__name__ if exc_type else None
            payload["exc_value"] = str(exc_value)
            payload["exc_trace"] = traceback.format_exception(exc_type, exc_value, exc_tb)

        return json.dumps(payload, default=str)


class _ProbeTextFormatter(logging.Formatter):
    """Human-readable formatter that appends probe context when bound.

    Empty context fields are omitted so non-probe lines stay short::

        2024-01-01 12:00:00 | INFO     | port_exporter.main | Serving metrics on :9100
    """

    _BASE_FMT = "%(asctime)s | %(levelname)-8s | %(name)s"
    _DATE_FMT = "%Y-%m-%d %H:%M:%S"

    def __init__(self) -> None:
        super().__init__(fmt=self._BASE_FMT, datefmt=self._DATE_FMT)

    def format(self, record: logging.LogRecord) -> str:
        record.asctime = self.formatTime(record, self.datefmt)
        base = self.formatMessage(record)

        tokens = [
            f"[{name}={getattr(record, name)}]"
            for name in _CONTEXT_FIELDS
            if getattr(record, name, "")
        ]
        context_part = (" " + " ".join(tokens)) if tokens else ""

        line = f"{base}{context_part} | {record.getMessage()}"
        error = getattr(record, "error", None)
        if error:
            line = f"{line} | error={error}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


# ---------------------------------------------------------------------------
# Public setup function
# ---------------------------------------------------------------------------

def setup_logging(
    log_level: str = "info",
    log_format: str = "text",
    stream: IO[str] | None = None,
) -> None:
    """Configure root logging.

    Call once at process startup, after the configuration is loaded. Calling
    it again only updates the level; handlers are added once.
    """
    level = level_for(log_level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if root_logger.handlers:
        for handler in root_logger.handlers:
            handler.setLevel(level)
        return

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(level)
    console_handler.addFilter(ProbeContextFilter())

    if (log_format or "").lower() == "json":
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(_ProbeTextFormatter())

    root_logger.addHandler(console_handler)

    # Suppress per-scrape access lines and other aiohttp chatter
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging initialised (level=%s, format=%s)", log_level, log_format
    )


# ---------------------------------------------------------------------------
# Context helpers
# ---------------------------------------------------------------------------

def bind_target(host: str, port: str, label: str = "", describe: str = "") -> None:
    """Bind a probe target into the current async context."""
    host_var.set(host)
    port_var.set(port)
    label_var.set(label)
    describe_var.set(describe)


def clear_target() -> None:
    """Clear the probe target from the current async context."""
    host_var.set(None)
    port_var.set(None)
    label_var.set(None)
    describe_var.set(None)


def get_logger(name: str) -> logging.Logger:
    """Return a standard ``logging.Logger`` for the given module name."""
    return logging.getLogger(name)


def log_exception(
    logger: logging.Logger,
    exc: BaseException,
    context: dict[str, Any] | None = None,
) -> None:
    """Log an exception with optional structured context and its traceback."""
    context_str = f" | context={context}" if context else ""
    logger.error("Exception: %s%s", exc, context_str, exc_info=exc)
