"""Shared test fixtures."""

import socket
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
import yaml

from port_exporter.core.types import ProbeResult


class RecordingProbeObserver:
    """Keeps every probe result in completion order."""

    def __init__(self) -> None:
        self.results: list[ProbeResult] = []

    def probe_completed(self, result: ProbeResult) -> None:
        self.results.append(result)


@pytest.fixture
def observer() -> RecordingProbeObserver:
    return RecordingProbeObserver()


@pytest.fixture
def listening_port() -> Iterator[int]:
    """A local port with a listener bound.

    The kernel completes the handshake from the backlog, so no accept loop is
    needed for connect probes to succeed.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(64)
    try:
        yield sock.getsockname()[1]
    finally:
        sock.close()


@pytest.fixture
def closed_port() -> int:
    """A local port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture
def write_yaml(tmp_path: Path) -> Callable[[str, object], Path]:
    """Write a YAML document under tmp_path and return its path."""

    def _write(name: str, data: object) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return path

    return _write
