from __future__ import annotations

"""Process composition root.

``build_runtime`` turns settings into a wired runtime:

1. Resolve the feature set from ``FORKLINE_FEATURES`` and ``FORKLINE_BACKENDS``
   against the fork catalog, then check that every active variant's modules
   are importable.
2. Bind the backend registry (variant factories run here).
3. Declare the upstream hook points and let every bound variant install its
   handlers, then seal the dispatcher.

``start_runtime`` initializes the backends and installs the registry
process-wide; ``stop_runtime`` undoes it.

Any configuration problem raises before a single backend is used.
"""

import importlib.util
from dataclasses import dataclass
from typing import Any, Callable, Optional

from forkline.core.config import Settings
from forkline.core.logging_config import get_logger
from forkline.features.models import Catalog, FeatureSet
from forkline.features.resolver import check_availability, resolve_feature_set
from forkline.hooks.dispatch import HookDispatcher
from forkline.registry.backend_registry import BackendContext, BackendRegistry
from forkline.registry.provider import reset_backend_registry, set_backend_registry
from forkline.upstream.delivery import HOOK_POINTS, DeliveryPipeline

from .catalog import FORK_CATALOG

logger = get_logger(__name__)


@dataclass
class ForkRuntime:
    settings: Settings
    feature_set: FeatureSet
    registry: BackendRegistry
    dispatcher: HookDispatcher
    pipeline: DeliveryPipeline


def build_runtime(
    settings: Optional[Settings] = None,
    *,
    catalog: Catalog = FORK_CATALOG,
    find_spec: Callable[[str], Any] = importlib.util.find_spec,
) -> ForkRuntime:
    """
    Resolve, bind and wire everything the process needs.

    Args:
        settings: Settings to use; read from the environment when omitted.
        catalog: Capability catalog to resolve against.
        find_spec: Module lookup used by the availability check.

    Returns:
        ForkRuntime with a bound registry and a sealed dispatcher.

    Raises:
        ConfigurationConflict: Conflicting, unsatisfied or unavailable flags.
        UnboundCapability: A runtime selection names an undeclared capability.
    """
    settings = settings or Settings()
    feature_set = resolve_feature_set(catalog, settings.feature_flags, settings.backend_selection)
    check_availability(catalog, feature_set, find_spec=find_spec)

    registry = BackendRegistry(catalog)
    registry.bind(feature_set, BackendContext(settings=settings, feature_set=feature_set))

    dispatcher = HookDispatcher()
    for point in HOOK_POINTS:
        dispatcher.declare(point)
    for handle in registry.handles():
        variant = catalog.variant(handle.flag)
        if variant.install_hooks is not None:
            variant.install_hooks(dispatcher, handle)
            logger.debug(f"Installed hooks of {handle.flag}")
    dispatcher.seal()

    logger.info(f"Runtime built with features {', '.join(str(flag) for flag in feature_set.flags())}")
    return ForkRuntime(
        settings=settings,
        feature_set=feature_set,
        registry=registry,
        dispatcher=dispatcher,
        pipeline=DeliveryPipeline(registry, dispatcher),
    )


async def start_runtime(runtime: ForkRuntime) -> None:
    """Initialize backends and install the registry for ``resolve_backend``."""
    await runtime.registry.initialize()
    set_backend_registry(runtime.registry)


async def stop_runtime(runtime: ForkRuntime) -> None:
    reset_backend_registry()
    await runtime.registry.aclose()
