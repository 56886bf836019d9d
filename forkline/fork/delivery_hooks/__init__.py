"""Webhook delivery hooks (``delivery-hooks=webhook``)."""

from .client import DeliveryHookClient, DeliveryHookError, send_delivery_hook_request
from .config import DeliveryHookConfig, DeliveryHookSettings
from .handler import DeliveryHooks, DeliveryWebhookHandler, install_delivery_hooks, resolve_file_into
from .wire import AddHeader, FileInto, HookRequest, HookResponse

__all__ = [
    "AddHeader",
    "DeliveryHookClient",
    "DeliveryHookConfig",
    "DeliveryHookError",
    "DeliveryHookSettings",
    "DeliveryHooks",
    "DeliveryWebhookHandler",
    "FileInto",
    "HookRequest",
    "HookResponse",
    "install_delivery_hooks",
    "resolve_file_into",
    "send_delivery_hook_request",
]
