"""Tests for the TCP connect prober."""

import asyncio

import pytest

from port_exporter.core.prober import Prober
from port_exporter.core.types import Target


@pytest.mark.asyncio
async def test_probe_listening_port_is_up(listening_port, observer) -> None:
    prober = Prober(timeout=1.0, observer=observer)
    target = Target("127.0.0.1", str(listening_port), "open", "local")

    result = await prober.probe(target)

    assert result.up is True
    assert result.error is None
    assert result.target == target
    assert result.duration >= 0
    assert observer.results == [result]


@pytest.mark.asyncio
async def test_probe_closed_port_is_down(closed_port, observer) -> None:
    prober = Prober(timeout=1.0, observer=observer)

    result = await prober.probe(Target("127.0.0.1", str(closed_port), "closed"))

    assert result.up is False
    assert isinstance(result.error, OSError)
    assert result.error_message
    assert len(observer.results) == 1


@pytest.mark.asyncio
async def test_probe_timeout_is_down(monkeypatch, observer) -> None:
    """A connect attempt that outlasts the timeout marks the target down."""

    async def never_connects(host, port):
        await asyncio.sleep(10)

    monkeypatch.setattr(asyncio, "open_connection", never_connects)
    prober = Prober(timeout=0.05, observer=observer)

    result = await asyncio.wait_for(prober.probe(Target("10.255.255.1", "22")), timeout=2)

    assert result.up is False
    assert isinstance(result.error, asyncio.TimeoutError)
    assert result.error_message == "TimeoutError"


@pytest.mark.asyncio
async def test_probe_unresolvable_host_is_down(observer) -> None:
    prober = Prober(timeout=1.0, observer=observer)

    result = await prober.probe(Target("host.invalid", "22"))

    assert result.up is False
    assert result.error is not None


@pytest.mark.asyncio
async def test_probe_invalid_port_is_down(observer) -> None:
    prober = Prober(timeout=1.0, observer=observer)

    result = await prober.probe(Target("127.0.0.1", "not-a-port"))

    assert result.up is False
    assert observer.results[0].up is False


@pytest.mark.asyncio
async def test_probe_out_of_range_port_is_down(observer) -> None:
    """Ports above 65535 are reported as down instead of raising."""
    prober = Prober(timeout=1.0, observer=observer)

    result = await prober.probe(Target("127.0.0.1", "99999"))

    assert result.up is False
    assert isinstance(result.error, OverflowError)
    assert len(observer.results) == 1


@pytest.mark.asyncio
async def test_probe_does_not_retry(monkeypatch, observer) -> None:
    calls = []

    async def refuse(host, port):
        calls.append((host, port))
        raise ConnectionRefusedError(111, "Connection refused")

    monkeypatch.setattr(asyncio, "open_connection", refuse)
    prober = Prober(timeout=1.0, observer=observer)

    result = await prober.probe(Target("10.0.0.1", "22"))

    assert result.up is False
    assert calls == [("10.0.0.1", "22")]


@pytest.mark.asyncio
async def test_max_concurrency_caps_simultaneous_connects(monkeypatch, observer) -> None:
    active = 0
    peak = 0

    async def slow_refuse(host, port):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        try:
            await asyncio.sleep(0.02)
        finally:
            active -= 1
        raise ConnectionRefusedError(111, "Connection refused")

    monkeypatch.setattr(asyncio, "open_connection", slow_refuse)
    prober = Prober(timeout=1.0, observer=observer, max_concurrency=2)

    targets = [Target("10.0.0.1", str(p)) for p in range(1, 9)]
    results = await asyncio.gather(*(prober.probe(t) for t in targets))

    assert peak == 2
    assert len(results) == 8
    assert len(observer.results) == 8


def test_timeout_must_be_positive() -> None:
    with pytest.raises(ValueError):
        Prober(timeout=0)
