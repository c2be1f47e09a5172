"""
Merges the catalog with the user's persisted status flags, and owns the
status map itself.
"""

import json
import logging
from collections.abc import Mapping
from types import MappingProxyType

from pydantic import ValidationError

from amiibo_cli.exceptions import ParseError, SchemaMismatchError, StorageQuotaError
from amiibo_cli.models.catalog import CatalogItem, CollectionItem, ItemStatus

log = logging.getLogger(__name__)

STATUS_MAP_KEY = "status-map"
CORRUPT_STATUS_MAP_KEY = "status-map.corrupt"

DEFAULT_STATUS = ItemStatus()


def merge_status(
    catalog: list[CatalogItem], statuses: Mapping[str, ItemStatus]
) -> list[CollectionItem]:
    """
    Joins every catalog item with its status, defaulting to not owned and not
    favorite. Statuses for identifiers missing from the catalog are left out of
    the result but are not touched in `statuses`. Neither input is mutated.
    """
    return [
        CollectionItem.join(item, statuses.get(item.identifier, DEFAULT_STATUS))
        for item in catalog
    ]


def serialize_statuses(statuses: Mapping[str, ItemStatus]) -> str:
    return json.dumps(
        {identifier: status.model_dump() for identifier, status in statuses.items()},
        separators=(",", ":"),
    )


def deserialize_statuses(raw: str) -> dict[str, ItemStatus]:
    """
    Raises:
        ParseError: If `raw` is not JSON.
        SchemaMismatchError: If it is not an object of status records.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"Status map is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SchemaMismatchError("Status map must be a JSON object.")
    try:
        return {
            str(identifier): ItemStatus.model_validate(record)
            for identifier, record in data.items()
        }
    except ValidationError as e:
        raise SchemaMismatchError(f"Invalid status record: {e}") from e


class StatusBook:
    """
    The persisted map of identifier -> ItemStatus.

    Every mutation is written to the store before it becomes visible in memory.
    A rejected write is logged and the change is kept in memory only.
    """

    def __init__(self, store):
        self._store = store
        self._statuses: dict[str, ItemStatus] = {}
        self.persisted = True

    @property
    def statuses(self) -> Mapping[str, ItemStatus]:
        return MappingProxyType(self._statuses)

    def get(self, identifier: str) -> ItemStatus:
        return self._statuses.get(identifier, DEFAULT_STATUS)

    def load(self) -> None:
        """Reads the status map from the store; a corrupt map is set aside."""
        raw = self._store.get(STATUS_MAP_KEY)
        if raw is None:
            self._statuses = {}
            return
        try:
            self._statuses = deserialize_statuses(raw)
        except (ParseError, SchemaMismatchError) as e:
            log.error(f"[red]Stored collection is corrupt and was reset: {e}[/red]")
            try:
                self._store.set(CORRUPT_STATUS_MAP_KEY, raw)
            except StorageQuotaError as backup_error:
                # The original stays under its own key until the next save
                log.warning(f"Could not keep a copy of the corrupt map: {backup_error}")
            else:
                self._store.remove(STATUS_MAP_KEY)
            self._statuses = {}
        log.debug(f"Loaded {len(self._statuses)} status records.")

    def _persist(self, statuses: Mapping[str, ItemStatus]) -> bool:
        try:
            self._store.set(STATUS_MAP_KEY, serialize_statuses(statuses))
        except StorageQuotaError as e:
            log.warning(
                f"[yellow]Could not save collection, keeping changes in memory: "
                f"{e}[/yellow]"
            )
            self.persisted = False
            return False
        self.persisted = True
        return True

    def _toggle(self, identifier: str, field: str) -> ItemStatus:
        current = self.get(identifier)
        updated = current.model_copy(update={field: not getattr(current, field)})
        new_statuses = {**self._statuses, identifier: updated}
        self._persist(new_statuses)
        self._statuses = new_statuses
        return updated

    def toggle_owned(self, identifier: str) -> ItemStatus:
        return self._toggle(identifier, "owned")

    def toggle_favorite(self, identifier: str) -> ItemStatus:
        return self._toggle(identifier, "favorite")

    def replace(self, statuses: Mapping[str, ItemStatus]) -> None:
        """Swaps in a whole new map, e.g. after an import."""
        new_statuses = dict(statuses)
        self._persist(new_statuses)
        self._statuses = new_statuses

    def flush(self) -> bool:
        """Retries the last write if it was rejected; otherwise nothing to do."""
        if self.persisted:
            return True
        return self._persist(self._statuses)
