"""Process-wide access to the bound backend registry.

Startup code installs the registry once with ``set_backend_registry``; request
handlers and background tasks read it through ``get_backend_registry`` or
``resolve_backend``. There is no writer after startup.
"""

from typing import Optional

from forkline.core.errors import UnboundCapability

from .backend_registry import BackendHandle, BackendRegistry

# Global registry instance
_global_registry: Optional[BackendRegistry] = None


def get_backend_registry() -> BackendRegistry:
    """Get the global backend registry.

    Returns:
        Global BackendRegistry instance

    Raises:
        RuntimeError: If no registry has been installed
    """
    if _global_registry is None:
        raise RuntimeError("Backend registry not initialized. Call start_runtime() first.")
    return _global_registry


def set_backend_registry(registry: BackendRegistry) -> None:
    """Install the global backend registry.

    Args:
        registry: A bound BackendRegistry

    Raises:
        RuntimeError: If the registry has not been bound
    """
    global _global_registry
    if not registry.is_bound:
        raise RuntimeError("Only a bound backend registry can be installed")
    _global_registry = registry


def resolve_backend(capability: str) -> BackendHandle:
    """Resolve a capability through the global registry.

    Raises:
        UnboundCapability: If no registry is installed or the capability is unbound
    """
    if _global_registry is None:
        raise UnboundCapability(capability, "no backend registry has been installed")
    return _global_registry.resolve(capability)


def reset_backend_registry() -> None:
    """Reset the global backend registry.

    This is mainly useful for testing.
    """
    global _global_registry
    _global_registry = None
