"""Fork storage variants."""

from .postgres import SqlMailStore, create_engine

__all__ = ["SqlMailStore", "create_engine"]
