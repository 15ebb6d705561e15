"""Probe targets and probe results."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Target:
    """One host+port+label+description probe unit.

    Identity is the full 4-tuple; two targets with the same values are the
    same metric series.
    """

    host: str
    port: str
    label: str = ""
    describe: str = ""

    @property
    def key(self) -> tuple[str, str, str, str]:
        """Label values in ``port_status`` label order."""
        return (self.host, self.port, self.label, self.describe)

    @property
    def address(self) -> str:
        """``host:port`` with IPv6 literals bracketed."""
        if ":" in self.host and not self.host.startswith("["):
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass
class ProbeResult:
    """Outcome of a single connect attempt."""

    target: Target
    up: bool
    error: BaseException | None = None
    duration: float = field(default=0.0, compare=False)

    @property
    def error_message(self) -> str:
        if self.error is None:
            return ""
        # TimeoutError and friends carry no text
        return str(self.error) or type(self.error).__name__
