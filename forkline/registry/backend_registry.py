from __future__ import annotations

"""Backend registry.

The registry maps a capability name to the implementation of the variant bound
for this process. Callers depend on the capability's behavioral contract and
address it by name; they never see which variant was chosen unless they ask
for the handle's ``variant`` attribute.

Binding happens once, during startup. Afterwards the registry is read-only and
may be shared by any number of concurrent tasks without synchronization.
"""

import inspect
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, Optional, Tuple

from forkline.core.errors import UnboundCapability
from forkline.core.logging_config import get_logger
from forkline.features.models import Catalog, FeatureSet, Flag

logger = get_logger(__name__)


@dataclass(frozen=True)
class BackendContext:
    """Inputs handed to variant factories.

    Attributes
    ----------
    settings:
        The ``Settings`` instance the process was started with.
    feature_set:
        The resolved feature set being bound.
    """

    settings: Any
    feature_set: FeatureSet


@dataclass(frozen=True, eq=False)
class BackendHandle:
    """The bound variant of one capability."""

    capability: str
    variant: str
    implementation: Any

    @property
    def flag(self) -> Flag:
        return Flag(self.capability, self.variant)


class BackendRegistry:
    """
    Capability name to bound implementation mapping.

    Notes:
        - ``bind`` may be called exactly once; the registry never re-resolves
          and never swaps an implementation.
        - ``resolve`` raises ``UnboundCapability`` before ``bind``, for names
          the catalog does not declare, and for opt-in capabilities that were
          not enabled.
    """

    def __init__(self, catalog: Catalog) -> None:
        self._catalog = catalog
        self._feature_set: Optional[FeatureSet] = None
        self._handles: Dict[str, BackendHandle] = {}
        self._lock = Lock()

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def feature_set(self) -> Optional[FeatureSet]:
        return self._feature_set

    @property
    def is_bound(self) -> bool:
        return self._feature_set is not None

    def bind(self, feature_set: FeatureSet, context: Optional[BackendContext] = None) -> None:
        """
        Instantiate and bind the variant of every capability in ``feature_set``.

        Factories run eagerly so that a broken backend stops startup instead
        of failing on first use.

        Args:
            feature_set: Output of ``resolve_feature_set`` for this catalog.
            context: Passed to every factory; defaults to a context without
                settings.

        Raises:
            RuntimeError: If the registry is already bound.
            UnboundCapability: If the feature set names an undeclared capability.
        """
        with self._lock:
            if self._feature_set is not None:
                raise RuntimeError("Backend registry is already bound")

            ctx = context or BackendContext(settings=None, feature_set=feature_set)
            handles: Dict[str, BackendHandle] = {}
            for flag in feature_set.flags():
                variant = self._catalog.variant(flag)
                implementation = variant.factory(ctx) if variant.factory is not None else None
                handles[flag.capability] = BackendHandle(
                    capability=flag.capability,
                    variant=flag.variant,
                    implementation=implementation,
                )
                logger.debug(f"Bound capability {flag}")

            self._handles = handles
            self._feature_set = feature_set

        logger.info(f"Backend registry bound: {dict(feature_set.bindings)}")

    def resolve(self, capability: str) -> BackendHandle:
        """
        Return the handle bound for ``capability``.

        Args:
            capability: Capability name.

        Returns:
            The same ``BackendHandle`` object on every call.

        Raises:
            UnboundCapability: Before ``bind``, for unknown names, or for
                opt-in capabilities that were not enabled.
        """
        if self._feature_set is None:
            raise UnboundCapability(capability, "the feature set has not been resolved and bound yet")
        handle = self._handles.get(capability)
        if handle is not None:
            return handle
        if capability not in self._catalog:
            raise UnboundCapability(capability, "not declared in the catalog")
        raise UnboundCapability(capability, "opt-in capability was not enabled for this build")

    def get(self, capability: str) -> Any:
        """Shortcut for ``resolve(capability).implementation``."""
        return self.resolve(capability).implementation

    def handles(self) -> Tuple[BackendHandle, ...]:
        return tuple(self._handles[name] for name in sorted(self._handles))

    async def initialize(self) -> None:
        """Await ``initialize()`` on every implementation that defines it."""
        for handle in self.handles():
            init = getattr(handle.implementation, "initialize", None)
            if init is None:
                continue
            result = init()
            if inspect.isawaitable(result):
                await result
            logger.debug(f"Initialized backend {handle.flag}")

    async def aclose(self) -> None:
        """Await ``aclose()`` on every implementation that defines it."""
        for handle in reversed(self.handles()):
            close = getattr(handle.implementation, "aclose", None)
            if close is None:
                continue
            result = close()
            if inspect.isawaitable(result):
                await result

    def __repr__(self) -> str:
        bindings = dict(self._feature_set.bindings) if self._feature_set is not None else None
        return f"BackendRegistry(bindings={bindings})"
