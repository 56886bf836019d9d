"""Default (upstream) behavior.

Modules in this package must never import ``forkline.fork``; the boundary
check in the test suite enforces it.
"""

from .catalog import STORAGE_BACKEND, UPSTREAM_CATALOG
from .delivery import (
    DELIVERY_INSPECT,
    HOOK_POINTS,
    DeliveryContext,
    DeliveryPipeline,
    DeliveryReceipt,
    DeliveryRejected,
    DeliveryRequest,
    DeliveryVerdict,
    Envelope,
    VerdictAction,
)

__all__ = [
    "DELIVERY_INSPECT",
    "HOOK_POINTS",
    "STORAGE_BACKEND",
    "UPSTREAM_CATALOG",
    "DeliveryContext",
    "DeliveryPipeline",
    "DeliveryReceipt",
    "DeliveryRejected",
    "DeliveryRequest",
    "DeliveryVerdict",
    "Envelope",
    "VerdictAction",
]
