"""
Storage Layer.

This package handles all data persistence: the configuration file and the
durable key/value store that holds cached catalog data and the status map.
"""

from .config_manager import ConfigManager
from .store import DurableStore

__all__ = ["ConfigManager", "DurableStore"]
