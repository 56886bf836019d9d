"""
Core utilities and configuration for forkline.

This package provides the settings model, logging configuration and the error
taxonomy shared by every other subpackage.
"""

from forkline.core.errors import (
    ConfigurationConflict,
    ForklineError,
    HookFailure,
    UnboundCapability,
)
from forkline.core.logging_config import get_logger, setup_logging

__all__ = [
    "ConfigurationConflict",
    "ForklineError",
    "HookFailure",
    "UnboundCapability",
    "get_logger",
    "setup_logging",
]
