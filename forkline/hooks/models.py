from __future__ import annotations

"""Hook point declarations and dispatch results.

Every hook point states two things up front:

- how handler results are combined (``Composition``), and
- what a handler failure does to the rest of the dispatch (``FailureMode``).

Handlers are ordered by an explicit integer key given at registration, never
by the order in which ``register`` happened to be called.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Tuple

from forkline.core.errors import HookFailure


class Composition(str, Enum):
    first_non_empty = "first_non_empty"
    concatenate = "concatenate"
    override = "override"


class FailureMode(str, Enum):
    abort = "abort"
    continue_ = "continue"
    fallback = "fallback"


@dataclass(frozen=True)
class HookPoint:
    """A named extension point.

    Attributes:
        name: Unique dotted name, e.g. ``delivery.inspect``.
        composition: How handler results are combined.
        failure_mode: What happens when a handler raises.
        description: Inputs offered and outputs accepted, for diagnostics.
    """

    name: str
    composition: Composition
    failure_mode: FailureMode = FailureMode.abort
    description: str = ""


@dataclass(frozen=True)
class HookRegistration:
    """Binding of one handler to one hook point."""

    point: str
    name: str
    order: int
    handler: Callable[[Any], Any]

    @property
    def sort_key(self) -> Tuple[int, str]:
        return (self.order, self.name)


@dataclass(frozen=True)
class HookOutcome:
    """Result of one dispatch.

    Attributes:
        point: Hook point name.
        value: Combined value according to the point's composition rule.
            A tuple for ``concatenate`` points.
        failures: Failures recorded under ``FailureMode.continue_`` or the
            failure that triggered a fallback.
        handled_by: Names of the handlers whose results contributed to
            ``value``.
        used_default: Whether the default behavior produced (part of) the value.
    """

    point: str
    value: Any
    failures: Tuple[HookFailure, ...] = ()
    handled_by: Tuple[str, ...] = ()
    used_default: bool = False

    @property
    def ok(self) -> bool:
        return not self.failures
