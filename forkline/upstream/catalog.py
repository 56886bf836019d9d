"""Capabilities declared by the default (upstream) code."""

from forkline.features.models import Capability, Catalog, Variant
from forkline.registry.backend_registry import BackendContext

from .storage.memory import InMemoryMailStore

STORAGE_BACKEND = "storage-backend"


def _builtin_store(context: BackendContext) -> InMemoryMailStore:
    return InMemoryMailStore()


UPSTREAM_CATALOG = Catalog.declare(
    Capability.declare(
        STORAGE_BACKEND,
        Variant(
            "builtin",
            factory=_builtin_store,
            description="In-process mail store, no durability",
        ),
        default="builtin",
    ),
)
