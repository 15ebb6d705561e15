"""Main entrypoint for the port exporter."""

import argparse
import asyncio
import signal
import sys

from port_exporter import __version__
from port_exporter.config import DEFAULT_CONFIG_PATH, ConfigError, ExporterConfig, load_config
from port_exporter.core.prober import Prober
from port_exporter.core.scheduler import Scheduler
from port_exporter.logging import get_logger, setup_logging
from port_exporter.observability.events import LoggingProbeObserver
from port_exporter.observability.metrics import MetricState
from port_exporter.observability.prometheus_server import MetricsServer

logger = get_logger(__name__)


class PortExporter:
    """Wires the scheduler and the metrics server around one metric state."""

    def __init__(self, config: ExporterConfig) -> None:
        self.config = config
        self.state = MetricState(include_process_metrics=config.include_process_metrics)
        self.prober = Prober(
            timeout=config.probe_timeout,
            observer=LoggingProbeObserver(),
            max_concurrency=config.max_concurrency,
        )
        self.scheduler = Scheduler(
            config.targets(),
            self.prober,
            self.state,
            interval=config.probe_interval,
        )
        self.server = MetricsServer(
            self.state,
            port=config.listen_port,
            host=config.listen_address,
        )
        self._stop_event: asyncio.Event | None = None

    async def start(self) -> None:
        """Bind the metrics endpoint, then start probing.

        Raises ``OSError`` if the endpoint cannot be bound; probing is not
        started in that case.
        """
        await self.server.start()
        await self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.server.stop()

    def request_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def run(self) -> int:
        """Run until a stop is requested. Returns the process exit code."""
        self._stop_event = asyncio.Event()

        try:
            await self.start()
        except OSError as e:
            logger.critical("Error starting HTTP server: %s", e)
            return 1

        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform or outside the main thread
                continue
            installed.append(sig)

        try:
            await self._stop_event.wait()
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
            await self.stop()
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="port-exporter",
        description=(
            "Monitor the status of the configured TCP ports and expose them "
            "as the port_status metric for Prometheus."
        ),
    )
    parser.add_argument(
        "-c",
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the config file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entrypoint."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error loading config file: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.log_level, config.log_format)

    targets = config.targets()
    logger.info(
        "Loaded %d target(s) across %d host(s) from %s",
        len(targets),
        len(config.hosts),
        args.config,
    )

    exporter = PortExporter(config)
    try:
        exit_code = asyncio.run(exporter.run())
    except KeyboardInterrupt:
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
