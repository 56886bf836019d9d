"""Feature set resolution.

``resolve_feature_set`` is a pure function of the catalog, the requested
build flags and an optional runtime selection. It either returns a validated
``FeatureSet`` or raises; it never picks one side of a conflict on its own.

Resolution algorithm:

1. Parse every requested flag against the catalog.
2. Reject two different variants requested for the same capability.
3. Bind each capability to its requested variant, else to its default.
   Opt-in capabilities (no default) stay unbound unless requested.
4. Apply runtime selections. A selected variant must be compiled in, which
   means it was requested as a build flag or is the capability default.
5. Check ``requires`` and ``conflicts`` of every active variant.

Availability of the Python modules a variant depends on is checked separately
by ``check_availability`` because it touches the import system.
"""

from __future__ import annotations

import importlib.util
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

from forkline.core.errors import ConfigurationConflict, UnboundCapability
from forkline.core.logging_config import get_logger

from .models import Catalog, FeatureSet, Flag

logger = get_logger(__name__)


def resolve_feature_set(
    catalog: Catalog,
    requested: Iterable[Union[str, Flag]] = (),
    selection: Optional[Mapping[str, str]] = None,
) -> FeatureSet:
    """Resolve requested flags into a validated feature set.

    Args:
        catalog: The capabilities known to this build.
        requested: Build flags (``variant`` or ``capability=variant``).
        selection: Runtime choice of variant per capability.

    Returns:
        FeatureSet binding every capability that has a default, plus every
        requested opt-in capability.

    Raises:
        ConfigurationConflict: Unknown, ambiguous, mutually exclusive or
            unsatisfied flags, or a runtime selection that is not compiled in.
        UnboundCapability: A runtime selection names an undeclared capability.
    """
    explicit: Dict[str, Flag] = {}
    for item in requested:
        flag = catalog.lookup_flag(item)
        previous = explicit.get(flag.capability)
        if previous is not None and previous != flag:
            first, second = sorted((previous, flag))
            raise ConfigurationConflict(
                str(first),
                str(second),
                f"only one variant of '{flag.capability}' may be requested",
            )
        explicit[flag.capability] = flag

    bindings: Dict[str, str] = catalog.defaults()
    for capability, flag in explicit.items():
        bindings[capability] = flag.variant

    compiled = frozenset(explicit.values()) | frozenset(Flag(cap, var) for cap, var in catalog.defaults().items())

    for capability, variant in sorted((selection or {}).items()):
        catalog.capability(capability)
        chosen = Flag(capability, variant)
        catalog.variant(chosen)
        if chosen not in compiled:
            raise ConfigurationConflict(
                str(chosen),
                None,
                "selected at runtime but not compiled into this build",
            )
        bindings[capability] = variant

    _validate(catalog, bindings)

    feature_set = FeatureSet(
        bindings=bindings,
        compiled=compiled,
        requested=tuple(sorted(explicit.values())),
    )
    logger.debug(f"Resolved feature set: {feature_set.as_dict()}")
    return feature_set


def _validate(catalog: Catalog, bindings: Mapping[str, str]) -> None:
    for capability in sorted(bindings):
        flag = Flag(capability, bindings[capability])
        variant = catalog.variant(flag)
        for required in sorted(variant.requires):
            if bindings.get(required.capability) != required.variant:
                raise ConfigurationConflict(str(flag), str(required), "required flag is not active")
        for conflicting in sorted(variant.conflicts):
            if bindings.get(conflicting.capability) == conflicting.variant:
                raise ConfigurationConflict(str(flag), str(conflicting), "flags are mutually exclusive")


def check_availability(
    catalog: Catalog,
    feature_set: FeatureSet,
    find_spec: Callable[[str], Any] = importlib.util.find_spec,
) -> None:
    """Fail when an active variant's modules are not installed.

    Args:
        catalog: Catalog used to resolve ``feature_set``.
        feature_set: The resolved feature set.
        find_spec: Module lookup, ``importlib.util.find_spec`` by default.

    Raises:
        ConfigurationConflict: Naming the variant flag and the missing module.
    """
    for flag in feature_set.flags():
        for module in catalog.variant(flag).modules:
            try:
                spec = find_spec(module)
            except (ImportError, ValueError):
                spec = None
            if spec is None:
                raise ConfigurationConflict(
                    str(flag),
                    module,
                    "required module is not installed (install the matching extra)",
                )
