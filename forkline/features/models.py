from __future__ import annotations

"""Capability, variant and feature set declarations.

A *capability* is a named axis of pluggable behavior (for example
``storage-backend``). Each capability owns a closed set of *variants*, one of
which may be the default. The full set of capabilities known to a build lives
in a ``Catalog``; catalogs are immutable and the fork extends the upstream one
by building a new catalog rather than mutating it.

A ``FeatureSet`` is the outcome of resolution: at most one bound variant per
capability plus the set of variants compiled into the build. It never changes
after it is produced.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Dict, FrozenSet, Iterable, Iterator, Mapping, Optional, Tuple

from forkline.core.errors import ConfigurationConflict, UnboundCapability

if TYPE_CHECKING:
    from forkline.hooks.dispatch import HookDispatcher
    from forkline.registry.backend_registry import BackendContext, BackendHandle


@dataclass(frozen=True, order=True)
class Flag:
    """A ``capability=variant`` pair."""

    capability: str
    variant: str

    def __str__(self) -> str:
        return f"{self.capability}={self.variant}"

    @classmethod
    def parse(cls, text: str) -> "Flag":
        """Parse the ``capability=variant`` form.

        Raises:
            ConfigurationConflict: If the text is not a qualified flag.
        """
        capability, sep, variant = text.partition("=")
        capability, variant = capability.strip(), variant.strip()
        if not sep or not capability or not variant:
            raise ConfigurationConflict(text, None, "expected 'capability=variant'")
        return cls(capability, variant)


@dataclass(frozen=True)
class Variant:
    """One implementation of a capability.

    Attributes:
        id: Identifier unique within its capability (e.g. ``postgres``).
        factory: Builds the implementation handed out by the registry.
            ``None`` for variants that only switch wiring on or off.
        requires: Flags that must be active whenever this variant is.
        conflicts: Flags that must not be active together with this variant.
        modules: Importable modules the variant needs to be compiled in.
        install_hooks: Attaches fork handlers to the dispatcher once the
            variant is bound.
        description: Free text shown by diagnostics.
    """

    id: str
    factory: Optional[Callable[["BackendContext"], Any]] = field(default=None, compare=False)
    requires: FrozenSet[Flag] = frozenset()
    conflicts: FrozenSet[Flag] = frozenset()
    modules: Tuple[str, ...] = ()
    install_hooks: Optional[Callable[["HookDispatcher", "BackendHandle"], None]] = field(
        default=None, compare=False
    )
    description: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "requires", frozenset(self.requires))
        object.__setattr__(self, "conflicts", frozenset(self.conflicts))
        object.__setattr__(self, "modules", tuple(self.modules))


@dataclass(frozen=True, eq=False)
class Capability:
    """A named axis of pluggable behavior with a closed set of variants."""

    name: str
    variants: Mapping[str, Variant]
    default: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.variants:
            raise ValueError(f"Capability '{self.name}' declares no variants")
        if self.default is not None and self.default not in self.variants:
            raise ValueError(f"Default variant '{self.default}' is not declared for capability '{self.name}'")
        object.__setattr__(self, "variants", MappingProxyType(dict(self.variants)))

    @classmethod
    def declare(cls, name: str, *variants: Variant, default: Optional[str] = None) -> "Capability":
        """Declare a capability from its variants.

        Raises:
            ValueError: If a variant id is declared twice.
        """
        mapping: Dict[str, Variant] = {}
        for variant in variants:
            if variant.id in mapping:
                raise ValueError(f"Variant '{variant.id}' is declared twice for capability '{name}'")
            mapping[variant.id] = variant
        return cls(name=name, variants=mapping, default=default)

    @property
    def is_opt_in(self) -> bool:
        """True when the capability has no default and is bound only on request."""
        return self.default is None

    def flag(self, variant: str) -> Flag:
        return Flag(self.name, variant)


class Catalog:
    """Immutable, closed set of capabilities known to a build.

    Cross references (``requires``/``conflicts``) are checked when the catalog
    is built, so a typo in a declaration fails at import time instead of when a
    particular flag combination is requested.
    """

    def __init__(self, capabilities: Iterable[Capability]) -> None:
        caps: Dict[str, Capability] = {}
        for cap in capabilities:
            if cap.name in caps:
                raise ValueError(f"Capability '{cap.name}' is declared twice")
            caps[cap.name] = cap
        self._capabilities: Mapping[str, Capability] = MappingProxyType(caps)
        self._check_references()

    @classmethod
    def declare(cls, *capabilities: Capability) -> "Catalog":
        return cls(capabilities)

    def _check_references(self) -> None:
        for cap in self._capabilities.values():
            for variant in cap.variants.values():
                for ref in sorted(variant.requires | variant.conflicts):
                    target = self._capabilities.get(ref.capability)
                    if target is None:
                        raise UnboundCapability(
                            ref.capability,
                            f"referenced by variant '{cap.name}={variant.id}' but not declared",
                        )
                    if ref.variant not in target.variants:
                        raise ValueError(
                            f"Variant '{cap.name}={variant.id}' references unknown variant '{ref}'"
                        )

    def extend(
        self,
        *,
        variants: Optional[Mapping[str, Iterable[Variant]]] = None,
        capabilities: Iterable[Capability] = (),
    ) -> "Catalog":
        """Return a new catalog with extra variants and capabilities.

        Args:
            variants: Additional variants keyed by an existing capability name.
            capabilities: Capabilities not present in this catalog.

        Raises:
            UnboundCapability: If ``variants`` names an unknown capability.
            ValueError: If a variant or capability is already declared.
        """
        merged: Dict[str, Capability] = dict(self._capabilities)
        for name, extra in (variants or {}).items():
            base = merged.get(name)
            if base is None:
                raise UnboundCapability(name, "cannot add variants to an undeclared capability")
            merged[name] = Capability.declare(name, *base.variants.values(), *extra, default=base.default)
        for cap in capabilities:
            if cap.name in merged:
                raise ValueError(f"Capability '{cap.name}' is declared twice")
            merged[cap.name] = cap
        return Catalog(merged.values())

    def __contains__(self, name: object) -> bool:
        return name in self._capabilities

    def __iter__(self) -> Iterator[Capability]:
        for name in sorted(self._capabilities):
            yield self._capabilities[name]

    def __len__(self) -> int:
        return len(self._capabilities)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(sorted(self._capabilities))

    def capability(self, name: str) -> Capability:
        """Look up a capability.

        Raises:
            UnboundCapability: If the capability is not declared.
        """
        try:
            return self._capabilities[name]
        except KeyError:
            raise UnboundCapability(name, "not declared in the catalog") from None

    def variant(self, flag: Flag) -> Variant:
        cap = self.capability(flag.capability)
        try:
            return cap.variants[flag.variant]
        except KeyError:
            raise ConfigurationConflict(str(flag), None, "unknown variant") from None

    def lookup_flag(self, text: str | Flag) -> Flag:
        """Turn a flag identifier into a ``Flag``.

        Accepts ``capability=variant`` or a bare variant id that is unique
        across the catalog.

        Raises:
            ConfigurationConflict: If the identifier is unknown or ambiguous.
        """
        if isinstance(text, Flag):
            self.variant(text)
            return text
        text = text.strip()
        if "=" in text:
            flag = Flag.parse(text)
            if flag.capability not in self._capabilities:
                raise ConfigurationConflict(text, None, f"unknown capability '{flag.capability}'")
            self.variant(flag)
            return flag
        matches = sorted(
            Flag(cap.name, text) for cap in self._capabilities.values() if text in cap.variants
        )
        if not matches:
            raise ConfigurationConflict(text, None, "unknown feature flag")
        if len(matches) > 1:
            raise ConfigurationConflict(
                text,
                None,
                "ambiguous feature flag, qualify it as one of " + ", ".join(str(m) for m in matches),
            )
        return matches[0]

    def defaults(self) -> Dict[str, str]:
        """Return capability -> default variant for capabilities that have one."""
        return {cap.name: cap.default for cap in self if cap.default is not None}


@dataclass(frozen=True)
class FeatureSet:
    """Resolved, immutable mapping of capability to bound variant.

    Attributes:
        bindings: Capability name -> bound variant id.
        compiled: Every variant compiled into the build (requested flags plus
            capability defaults).
        requested: Explicitly requested flags in canonical order.
    """

    bindings: Mapping[str, str]
    compiled: FrozenSet[Flag] = frozenset()
    requested: Tuple[Flag, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "bindings", MappingProxyType(dict(sorted(self.bindings.items()))))

    def __contains__(self, item: object) -> bool:
        if isinstance(item, Flag):
            return self.bindings.get(item.capability) == item.variant
        return item in self.bindings

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeatureSet):
            return NotImplemented
        return (
            dict(self.bindings) == dict(other.bindings)
            and self.compiled == other.compiled
            and self.requested == other.requested
        )

    def __hash__(self) -> int:
        return hash((tuple(self.bindings.items()), self.compiled, self.requested))

    def variant_for(self, capability: str) -> Optional[str]:
        return self.bindings.get(capability)

    def flags(self) -> Tuple[Flag, ...]:
        """Active flags in canonical (capability name) order."""
        return tuple(Flag(cap, variant) for cap, variant in self.bindings.items())

    def is_compiled(self, flag: Flag) -> bool:
        return flag in self.compiled

    def as_dict(self) -> Dict[str, Any]:
        return {
            "bindings": dict(self.bindings),
            "compiled": sorted(str(flag) for flag in self.compiled),
            "requested": [str(flag) for flag in self.requested],
        }
