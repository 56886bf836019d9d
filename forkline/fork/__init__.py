"""Fork-specific capabilities, variants and hook handlers.

Everything in this package may import default (upstream) modules; nothing
outside it may import from here. ``bootstrap``, ``cli`` and ``server`` are the
composition roots that put both sides together.
"""

from .bootstrap import ForkRuntime, build_runtime, start_runtime, stop_runtime
from .catalog import DELIVERY_HOOKS, FORK_CATALOG

__all__ = [
    "DELIVERY_HOOKS",
    "FORK_CATALOG",
    "ForkRuntime",
    "build_runtime",
    "start_runtime",
    "stop_runtime",
]
