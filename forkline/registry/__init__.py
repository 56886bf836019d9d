"""Backend registry and its process-wide accessor."""

from .backend_registry import BackendContext, BackendHandle, BackendRegistry
from .provider import (
    get_backend_registry,
    reset_backend_registry,
    resolve_backend,
    set_backend_registry,
)

__all__ = [
    "BackendContext",
    "BackendHandle",
    "BackendRegistry",
    "get_backend_registry",
    "reset_backend_registry",
    "resolve_backend",
    "set_backend_registry",
]
