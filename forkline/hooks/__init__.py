"""Extension hook dispatch.

Hook points are declared by default (upstream) code; fork modules attach
handlers to them during startup. Each point states how results combine and
what a handler failure means, so two fork handlers on the same point never
interact in an undocumented way.
"""

from .dispatch import HookDispatcher, is_empty
from .models import Composition, FailureMode, HookOutcome, HookPoint, HookRegistration

__all__ = [
    "Composition",
    "FailureMode",
    "HookDispatcher",
    "HookOutcome",
    "HookPoint",
    "HookRegistration",
    "is_empty",
]
