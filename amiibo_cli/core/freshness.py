"""
Decides whether a cached namespace must be refetched from the remote API.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from amiibo_cli.exceptions import NetworkError, ParseError, SchemaMismatchError

log = logging.getLogger(__name__)

CATALOG_DATA_KEY = "catalog-data"
CATALOG_VERSION_KEY = "catalog-version"
DETAIL_DATA_PREFIX = "detail-data:"
DETAIL_VERSION_KEY = "detail-version"


@dataclass(frozen=True)
class CacheNamespace:
    """A cached payload and the key holding the version token it was fetched at."""

    name: str
    data_key: str
    version_key: str


CATALOG_NAMESPACE = CacheNamespace("catalog", CATALOG_DATA_KEY, CATALOG_VERSION_KEY)


def detail_namespace(display_name: str) -> CacheNamespace:
    """Detail payloads are cached per display name and share one version key."""
    return CacheNamespace(
        f"detail:{display_name}",
        f"{DETAIL_DATA_PREFIX}{display_name}",
        DETAIL_VERSION_KEY,
    )


@dataclass(frozen=True)
class FreshnessDecision:
    refetch: bool
    remote_token: Optional[str] = None


class FreshnessReconciler:
    """
    Compares the stored version token of a namespace with the remote oracle.

    Availability wins over freshness: when the oracle cannot be reached and any
    cached payload exists, the cache is declared fresh. This class never writes.
    """

    def __init__(self, store, gateway):
        self._store = store
        self._gateway = gateway

    async def check(self, namespace: CacheNamespace) -> FreshnessDecision:
        """Returns the decision along with the remote token observed, if any."""
        if self._store.get(namespace.data_key) is None:
            log.debug(f"No cached payload for {namespace.name}, refetch required.")
            return FreshnessDecision(refetch=True)

        try:
            remote_token = await self._gateway.fetch_version_token()
        except (NetworkError, ParseError, SchemaMismatchError) as e:
            log.debug(f"Freshness oracle unavailable ({e}); using cached {namespace.name}.")
            return FreshnessDecision(refetch=False)

        stored_token = self._store.get(namespace.version_key)
        if stored_token is None:
            log.debug(f"Cached {namespace.name} has no version token, refetching.")
            return FreshnessDecision(refetch=True, remote_token=remote_token)
        if stored_token != remote_token:
            log.debug(
                f"Cached {namespace.name} is outdated "
                f"({stored_token} != {remote_token})."
            )
            return FreshnessDecision(refetch=True, remote_token=remote_token)

        log.debug(f"Cached {namespace.name} is up to date.")
        return FreshnessDecision(refetch=False, remote_token=remote_token)

    async def should_refetch(self, namespace: CacheNamespace) -> bool:
        return (await self.check(namespace)).refetch
