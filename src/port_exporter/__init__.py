"""port_exporter -- TCP port liveness exporter for Prometheus."""

__all__ = ["ExporterConfig", "MetricState", "Target", "__version__"]
__version__ = "0.1.0"


def __getattr__(name: str):
    if name == "ExporterConfig":
        from .config import ExporterConfig

        return ExporterConfig
    if name == "MetricState":
        from .observability.metrics import MetricState

        return MetricState
    if name == "Target":
        from .core.types import Target

        return Target
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
