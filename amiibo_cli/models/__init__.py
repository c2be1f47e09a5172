"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the application, such as the catalog and configuration.
"""

from .catalog import CatalogItem, CollectionItem, ItemDetail, ItemStatus
from .config import AppConfig

__all__ = ["AppConfig", "CatalogItem", "CollectionItem", "ItemDetail", "ItemStatus"]
