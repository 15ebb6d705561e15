"""Single TCP connect probe."""

import asyncio
import time

from port_exporter.core.types import ProbeResult, Target
from port_exporter.logging import get_logger
from port_exporter.observability.events import LoggingProbeObserver, ProbeObserver

logger = get_logger(__name__)

DEFAULT_PROBE_TIMEOUT = 1.0


class Prober:
    """Checks whether a target accepts TCP connections.

    A probe is one connect attempt bounded by ``timeout``. The connection is
    closed as soon as it is established. Any failure (timeout, refusal,
    unreachable network, name resolution) marks the target down for this
    attempt; there are no retries.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        observer: ProbeObserver | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        """Initialize the prober.

        Args:
            timeout: Connect timeout in seconds
            observer: Receives one event per completed probe (defaults to logging)
            max_concurrency: Cap on simultaneous connect attempts, None for no cap
        """
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self._timeout = timeout
        self._observer = observer or LoggingProbeObserver()
        self._semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    @property
    def timeout(self) -> float:
        return self._timeout

    async def probe(self, target: Target) -> ProbeResult:
        """Probe one target. Never raises for network errors."""
        if self._semaphore is None:
            result = await self._connect(target)
        else:
            async with self._semaphore:
                result = await self._connect(target)
        self._observer.probe_completed(result)
        return result

    async def _connect(self, target: Target) -> ProbeResult:
        started = time.perf_counter()
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(target.host, target.port),
                timeout=self._timeout,
            )
        except (OSError, asyncio.TimeoutError, ValueError, OverflowError) as e:
            # ValueError/UnicodeError come from unusable host or port strings,
            # OverflowError from ports outside 0-65535
            return ProbeResult(
                target=target,
                up=False,
                error=e,
                duration=time.perf_counter() - started,
            )

        duration = time.perf_counter() - started
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug("Error closing probe connection to %s: %s", target.address, e)
        return ProbeResult(target=target, up=True, duration=duration)
