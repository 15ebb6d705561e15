"""Core probing: targets, the prober and the cycle scheduler."""

from .prober import Prober
from .scheduler import Scheduler
from .types import ProbeResult, Target

__all__ = [
    "ProbeResult",
    "Prober",
    "Scheduler",
    "Target",
]
