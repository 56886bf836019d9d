"""Shared fixtures for fork integration tests."""

from typing import Callable, List

import httpx
import pytest

from forkline.features import Capability, Catalog, Variant
from forkline.fork.catalog import DELIVERY_HOOKS
from forkline.fork.delivery_hooks import DeliveryHookConfig, DeliveryHooks, install_delivery_hooks
from forkline.upstream import UPSTREAM_CATALOG

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def database_url() -> str:
    return TEST_DATABASE_URL


@pytest.fixture
def webhook_catalog() -> Callable[..., Catalog]:
    """Build the upstream catalog plus a ``delivery-hooks`` capability whose webhook uses a mock transport."""

    def build(hooks: List[DeliveryHookConfig], answer: Callable[[httpx.Request], httpx.Response]) -> Catalog:
        transport = httpx.MockTransport(answer)
        return UPSTREAM_CATALOG.extend(
            capabilities=[
                Capability.declare(
                    DELIVERY_HOOKS,
                    Variant("disabled"),
                    Variant(
                        "webhook",
                        factory=lambda ctx: DeliveryHooks(hooks, transport=transport),
                        install_hooks=install_delivery_hooks,
                    ),
                    default="disabled",
                )
            ]
        )

    return build
