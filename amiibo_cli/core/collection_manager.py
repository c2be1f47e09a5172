"""
The collection controller: loads the catalog through the freshness check,
merges it with the user's status map and exposes every collection operation.
"""

import json
import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Optional, TypeVar

from pydantic import ValidationError

from amiibo_cli.api.client import parse_catalog
from amiibo_cli.exceptions import (
    AmiiboCliError,
    CatalogUnavailableError,
    DecodeError,
    NetworkError,
    NothingToShareError,
    ParseError,
    ReadOnlyCollectionError,
    SchemaMismatchError,
    StorageQuotaError,
    UnknownItemError,
)
from amiibo_cli.models.catalog import CatalogItem, CollectionItem, ItemDetail, ItemStatus

from . import codec
from .freshness import (
    CATALOG_NAMESPACE,
    CacheNamespace,
    FreshnessReconciler,
    detail_namespace,
)
from .merge import StatusBook, merge_status
from .transfer import read_import, write_export

log = logging.getLogger(__name__)

T = TypeVar("T")

REMOTE_ERRORS = (NetworkError, ParseError, SchemaMismatchError)


def _parse_catalog_payload(raw: str) -> list[CatalogItem]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"Cached catalog is not valid JSON: {e}") from e
    return parse_catalog(data, source="cache")


def _parse_detail_payload(raw: str) -> ItemDetail:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"Cached detail is not valid JSON: {e}") from e
    try:
        return ItemDetail.model_validate(data)
    except ValidationError as e:
        raise SchemaMismatchError(f"Cached detail has an unexpected shape: {e}") from e


class CollectionManager:
    """
    Owns the live collection for one session.

    Lifecycle: `initialize()` loads the status map and the catalog, the toggle
    and import methods mutate it, and `flush()` persists anything still
    pending. Used as an async context manager it runs `initialize()` on entry,
    and `flush()` plus closing the gateway on exit.

    When constructed with a share token that decodes, the manager is
    read-only and treats every shared identifier as owned.
    """

    def __init__(
        self,
        store,
        gateway,
        shared_token: Optional[str] = None,
        refresh: bool = False,
    ):
        self.store = store
        self.gateway = gateway
        self.reconciler = FreshnessReconciler(store, gateway)
        self.status_book = StatusBook(store)
        self.catalog: list[CatalogItem] = []
        self.collection: list[CollectionItem] = []
        self.catalog_source: Optional[str] = None
        self._shared_token = shared_token
        self._shared_statuses: Optional[dict[str, ItemStatus]] = None
        self._refresh = refresh
        self._index: dict[str, CollectionItem] = {}
        self._focused: Optional[str] = None

    async def __aenter__(self) -> "CollectionManager":
        try:
            await self.initialize(force_refresh=self._refresh)
        except BaseException:
            await self.gateway.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            self.flush()
        finally:
            await self.gateway.close()

    # Lifecycle
    async def initialize(self, force_refresh: bool = False) -> None:
        self.load_statuses()
        if self._shared_token:
            self._enter_shared_mode(self._shared_token)
        await self.load_catalog(force=force_refresh)

    def load_statuses(self) -> None:
        """Loads only the status map; enough for import and export."""
        self.status_book.load()
        self._recompute()

    def flush(self) -> bool:
        if self.shared_mode:
            return True
        return self.status_book.flush()

    def _enter_shared_mode(self, url_or_token: str) -> None:
        try:
            identifiers = codec.decode(codec.extract_token(url_or_token))
        except DecodeError as e:
            log.warning(
                f"[yellow]Ignoring shared collection link, showing your own "
                f"collection instead: {e}[/yellow]"
            )
            return
        self._shared_statuses = {
            identifier: ItemStatus(owned=True) for identifier in identifiers
        }
        log.debug(f"Viewing shared collection of {len(identifiers)} items.")

    @property
    def shared_mode(self) -> bool:
        return self._shared_statuses is not None

    @property
    def statuses(self) -> Mapping[str, ItemStatus]:
        if self._shared_statuses is not None:
            return self._shared_statuses
        return self.status_book.statuses

    @property
    def storage_degraded(self) -> bool:
        """True while the latest status change lives in memory only."""
        return not self.status_book.persisted

    def _recompute(self) -> None:
        self.collection = merge_status(self.catalog, self.statuses)
        self._index = {item.identifier: item for item in self.collection}

    def _ensure_mutable(self) -> None:
        if self.shared_mode:
            raise ReadOnlyCollectionError(
                "This is a shared collection and cannot be changed."
            )

    # Cache plumbing
    def _read_cached(
        self, namespace: CacheNamespace, parser: Callable[[str], T]
    ) -> Optional[T]:
        """Returns the parsed cached payload; a corrupt payload is discarded."""
        raw = self.store.get(namespace.data_key)
        if raw is None:
            return None
        try:
            return parser(raw)
        except (ParseError, SchemaMismatchError) as e:
            log.warning(f"[yellow]Discarding corrupt cache for {namespace.name}: {e}[/yellow]")
            self.store.remove(namespace.data_key)
            return None

    async def _write_cached(
        self, namespace: CacheNamespace, payload: str, token: Optional[str]
    ) -> bool:
        """
        Writes a payload together with its version token. Without a token the
        payload is not cached at all; if the token cannot be stored the payload
        is removed again.
        """
        if token is None:
            try:
                token = await self.gateway.fetch_version_token()
            except REMOTE_ERRORS as e:
                log.warning(
                    f"[yellow]No version token for {namespace.name}, "
                    f"not caching it: {e}[/yellow]"
                )
                return False

        try:
            self.store.set(namespace.data_key, payload)
        except StorageQuotaError as e:
            log.warning(f"[yellow]Could not cache {namespace.name}: {e}[/yellow]")
            return False

        try:
            self.store.set(namespace.version_key, token)
        except StorageQuotaError as e:
            log.warning(f"[yellow]Could not cache {namespace.name}: {e}[/yellow]")
            self.store.remove(namespace.data_key)
            return False
        return True

    # Catalog
    async def load_catalog(self, force: bool = False) -> list[CollectionItem]:
        """
        Loads the catalog from cache when it is fresh, from the API otherwise.

        Raises:
            CatalogUnavailableError: If the API fails and no cache exists.
        """
        if force:
            decision_token = None
            refetch = True
        else:
            decision = await self.reconciler.check(CATALOG_NAMESPACE)
            decision_token = decision.remote_token
            refetch = decision.refetch

        if not refetch:
            cached = self._read_cached(CATALOG_NAMESPACE, _parse_catalog_payload)
            if cached is not None:
                log.debug(f"Loaded {len(cached)} catalog items from cache.")
                self._set_catalog(cached, "cache")
                return self.collection

        log.debug("Fetching catalog from the API...")
        try:
            items = await self.gateway.fetch_catalog()
        except REMOTE_ERRORS as e:
            cached = self._read_cached(CATALOG_NAMESPACE, _parse_catalog_payload)
            if cached is None:
                raise CatalogUnavailableError(
                    f"Failed to load the amiibo catalog: {e}"
                ) from e
            log.warning(f"[yellow]API unavailable, using cached catalog: {e}[/yellow]")
            self._set_catalog(cached, "cache")
            return self.collection

        payload = json.dumps(
            [item.model_dump(by_alias=True) for item in items],
            separators=(",", ":"),
        )
        await self._write_cached(CATALOG_NAMESPACE, payload, decision_token)
        self._set_catalog(items, "remote")
        return self.collection

    def _set_catalog(self, items: list[CatalogItem], source: str) -> None:
        self.catalog = list(items)
        self.catalog_source = source
        self._recompute()

    def find(self, identifier: str) -> Optional[CollectionItem]:
        return self._index.get(identifier)

    def require(self, identifier: str) -> CollectionItem:
        item = self.find(identifier)
        if item is None:
            raise UnknownItemError(f"No amiibo with identifier '{identifier}'.")
        return item

    # Details
    async def load_detail(self, item: CatalogItem) -> Optional[ItemDetail]:
        """
        Loads an item's detail, cached per display name. Returns None when the
        API has no record for that name.
        """
        namespace = detail_namespace(item.display_name)
        decision = await self.reconciler.check(namespace)

        if not decision.refetch:
            cached = self._read_cached(namespace, _parse_detail_payload)
            if cached is not None:
                log.debug(f"Loaded details for {item.display_name} from cache.")
                return cached

        try:
            detail = await self.gateway.fetch_detail(item.display_name)
        except REMOTE_ERRORS as e:
            cached = self._read_cached(namespace, _parse_detail_payload)
            if cached is None:
                raise
            log.warning(f"[yellow]API unavailable, using cached details: {e}[/yellow]")
            return cached

        if detail is None:
            return None
        await self._write_cached(namespace, detail.model_dump_json(), decision.remote_token)
        return detail

    async def open_detail(self, identifier: str) -> Optional[ItemDetail]:
        """
        Loads details for the item the user is looking at. If another item was
        opened while this one was loading, the result is dropped (None).
        """
        item = self.require(identifier)
        self._focused = identifier
        detail = await self.load_detail(item)
        if self._focused != identifier:
            log.debug(f"Discarding stale detail result for {identifier}.")
            return None
        return detail

    async def preload_detail(self, item: CatalogItem) -> bool:
        """Warms the detail cache; failures are logged and ignored."""
        try:
            return await self.load_detail(item) is not None
        except AmiiboCliError as e:
            log.warning(f"[yellow]Could not preload details for {item.display_name}: {e}[/yellow]")
            return False

    # Mutations
    def toggle_owned(self, identifier: str) -> ItemStatus:
        self._ensure_mutable()
        status = self.status_book.toggle_owned(identifier)
        self._recompute()
        return status

    def toggle_favorite(self, identifier: str) -> ItemStatus:
        self._ensure_mutable()
        status = self.status_book.toggle_favorite(identifier)
        self._recompute()
        return status

    def import_file(self, path: Path) -> int:
        """
        Replaces the status map with the file's contents. The file is fully
        validated first, so a bad file leaves the collection untouched.
        """
        self._ensure_mutable()
        imported = read_import(path)
        self.status_book.replace(imported)
        self._recompute()
        return len(imported)

    def export_file(self, path: Path) -> int:
        return write_export(path, self.statuses)

    # Sharing
    def share_token(self) -> str:
        owned = [item.identifier for item in self.collection if item.owned]
        if not owned:
            raise NothingToShareError("You don't have any owned amiibo to share.")
        return codec.encode(owned)

    def share_url(self, base_url: str = "") -> str:
        return codec.build_share_url(base_url, self.share_token())
