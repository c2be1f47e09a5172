"""
Core Logic.

This package contains the collection engine: cache freshness, status merging,
share-token encoding and import/export.
"""

from .collection_manager import CollectionManager

__all__ = ["CollectionManager"]
