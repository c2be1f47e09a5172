"""
Amiibo API Layer.

This package handles all communication with the remote amiibo catalog API.
"""

from .client import AmiiboAPIClient

__all__ = ["AmiiboAPIClient"]
