"""Fork capability catalog.

Extends the upstream catalog with:

- ``storage-backend=postgres``: SQL mail store (needs ``sqlalchemy`` and ``asyncpg``).
- ``delivery-hooks``: a fork-only capability; ``disabled`` by default,
  ``webhook`` calls the configured HTTP endpoints on every delivery.
"""

from forkline.features.models import Capability, Variant
from forkline.registry.backend_registry import BackendContext
from forkline.upstream.catalog import STORAGE_BACKEND, UPSTREAM_CATALOG

from .delivery_hooks import DeliveryHooks, install_delivery_hooks
from .storage import SqlMailStore

DELIVERY_HOOKS = "delivery-hooks"


def _postgres_store(context: BackendContext) -> SqlMailStore:
    return SqlMailStore.from_url(context.settings.database_url)


FORK_CATALOG = UPSTREAM_CATALOG.extend(
    variants={
        STORAGE_BACKEND: [
            Variant(
                "postgres",
                factory=_postgres_store,
                modules=("sqlalchemy", "asyncpg"),
                description="Durable SQL mail store on Postgres",
            ),
        ],
    },
    capabilities=[
        Capability.declare(
            DELIVERY_HOOKS,
            Variant("disabled", description="No delivery hooks"),
            Variant(
                "webhook",
                factory=DeliveryHooks.from_context,
                modules=("httpx",),
                install_hooks=install_delivery_hooks,
                description="Call HTTP delivery hooks before storing each message",
            ),
            default="disabled",
        ),
    ],
)
