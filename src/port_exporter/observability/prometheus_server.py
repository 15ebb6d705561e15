"""Prometheus metrics endpoint server."""

from aiohttp import web

from port_exporter.logging import get_logger
from port_exporter.observability.metrics import MetricState

logger = get_logger(__name__)


class MetricsServer:
    """HTTP server exposing a :class:`MetricState` for Prometheus scraping."""

    def __init__(self, state: MetricState, port: int = 9100, host: str = "0.0.0.0") -> None:
        """Initialize the metrics server.

        Args:
            state: Metric state rendered on every scrape
            port: Port to listen on (0 picks a free port)
            host: Address to bind
        """
        self.state = state
        self.host = host
        self.port = port
        self.app = web.Application()
        self.app.router.add_get("/metrics", self.handle_metrics)
        self.app.router.add_get("/health", self.handle_health)
        self.runner: web.AppRunner | None = None
        self.site: web.TCPSite | None = None

    async def handle_metrics(self, request: web.Request) -> web.Response:
        """Handle /metrics endpoint for Prometheus scraping."""
        return web.Response(
            body=self.state.render(),
            headers={"Content-Type": self.state.content_type},
        )

    async def handle_health(self, request: web.Request) -> web.Response:
        """Handle /health endpoint."""
        return web.Response(text="OK", content_type="text/plain")

    async def start(self) -> None:
        """Start the server. Raises ``OSError`` when the address cannot be bound."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, self.host, self.port)
        try:
            await self.site.start()
        except OSError:
            await self.runner.cleanup()
            self.runner = None
            self.site = None
            raise

        # Resolve the real port when binding port 0
        addresses = self.runner.addresses
        if addresses:
            self.port = addresses[0][1]
        logger.info("Serving metrics on %s:%d/metrics", self.host, self.port)

    async def stop(self) -> None:
        """Stop the server."""
        if self.site:
            await self.site.stop()
        if self.runner:
            await self.runner.cleanup()
        self.site = None
        self.runner = None
        logger.info("Metrics server stopped")
