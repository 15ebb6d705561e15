"""Repeating probe cycles feeding the metric state."""

import asyncio
from collections.abc import Sequence

from port_exporter.core.prober import Prober
from port_exporter.core.types import ProbeResult, Target
from port_exporter.logging import get_logger, log_exception
from port_exporter.observability.metrics import MetricState

logger = get_logger(__name__)

DEFAULT_PROBE_INTERVAL = 10.0


class Scheduler:
    """Dispatches one probe per target every ``interval`` seconds.

    A cycle spawns a task per target and returns immediately; the interval
    is measured from dispatch, not from completion. Each task writes its own
    result to the metric state when it finishes. Cycles are not joined, so a
    slow probe may still be running when the next cycle starts.
    """

    def __init__(
        self,
        targets: Sequence[Target],
        prober: Prober,
        state: MetricState,
        interval: float = DEFAULT_PROBE_INTERVAL,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._targets = tuple(targets)
        self._prober = prober
        self._state = state
        self._interval = interval
        self._running = False
        self._task: asyncio.Task[None] | None = None
        # Strong references so in-flight probes are not garbage collected
        self._in_flight: set[asyncio.Task[ProbeResult | None]] = set()
        self.cycles = 0

    @property
    def targets(self) -> tuple[Target, ...]:
        return self._targets

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._running

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def start(self) -> None:
        """Start the probe loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "Scheduler started (targets=%d, interval=%.1fs, timeout=%.1fs)",
            len(self._targets),
            self._interval,
            self._prober.timeout,
        )

    async def stop(self) -> None:
        """Stop the probe loop and cancel probes still in flight."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        pending = list(self._in_flight)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Scheduler stopped after %d cycle(s)", self.cycles)

    def run_cycle(self) -> list[asyncio.Task[ProbeResult | None]]:
        """Dispatch one probe task per target without waiting for them."""
        self.cycles += 1
        logger.debug("Dispatching cycle %d (%d targets)", self.cycles, len(self._targets))

        tasks = []
        for target in self._targets:
            task = asyncio.create_task(self._probe_and_record(target))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
            tasks.append(task)
        return tasks

    async def probe_all(self) -> list[ProbeResult]:
        """Run one full cycle and wait until every probe has been recorded."""
        results = await asyncio.gather(*self.run_cycle())
        return [r for r in results if r is not None]

    async def _probe_and_record(self, target: Target) -> ProbeResult | None:
        try:
            result = await self._prober.probe(target)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_exception(logger, e, context={"target": target.address})
            self._state.update(target, False)
            return None
        self._state.update(target, result.up)
        return result

    async def _loop(self) -> None:
        while self._running:
            try:
                self.run_cycle()
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break
