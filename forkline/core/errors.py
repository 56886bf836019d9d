"""Error taxonomy for backend selection and hook dispatch.

``ConfigurationConflict`` and ``UnboundCapability`` are startup errors: they are
raised while the feature set is resolved or the registry is wired, and the
process is expected to stop. ``HookFailure`` is raised during dispatch, and
whether it reaches the caller depends on the failure mode declared by the hook
point.
"""

from __future__ import annotations

from typing import Optional


class ForklineError(Exception):
    """Base class for all forkline errors."""


class ConfigurationConflict(ForklineError):
    """Requested flags cannot be satisfied together.

    Attributes:
        first: The flag that triggered the violation.
        second: The other side of the offending pair (a flag, module or
            ``None`` when the flag itself is invalid).
        reason: Short human readable explanation.
    """

    def __init__(self, first: str, second: Optional[str], reason: str) -> None:
        self.first = str(first)
        self.second = None if second is None else str(second)
        self.reason = reason
        if self.second is None:
            message = f"'{self.first}': {reason}"
        else:
            message = f"'{self.first}' and '{self.second}': {reason}"
        super().__init__(message)

    @property
    def flags(self) -> tuple[str, ...]:
        """Return the names involved in the conflict."""
        if self.second is None:
            return (self.first,)
        return (self.first, self.second)


class UnboundCapability(ForklineError):
    """A capability was referenced that has no bound variant."""

    def __init__(self, capability: str, reason: str = "no variant is bound") -> None:
        self.capability = str(capability)
        self.reason = reason
        super().__init__(f"Capability '{self.capability}': {reason}")


class HookFailure(ForklineError):
    """A registered hook handler raised during dispatch.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, hook_point: str, handler: str, detail: str = "") -> None:
        self.hook_point = hook_point
        self.handler = handler
        self.detail = detail
        message = f"Handler '{handler}' failed at hook point '{hook_point}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
