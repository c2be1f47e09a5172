import copy
import json

import pytest
from conftest import make_item

from amiibo_cli.core.merge import (
    CORRUPT_STATUS_MAP_KEY,
    STATUS_MAP_KEY,
    StatusBook,
    merge_status,
)
from amiibo_cli.exceptions import StorageQuotaError
from amiibo_cli.models.catalog import ItemStatus


def test_merge_defaults_missing_statuses(catalog):
    merged = merge_status(catalog, {"2b": ItemStatus(owned=True, favorite=True)})

    assert [item.identifier for item in merged] == ["1a", "2b", "3c"]
    assert (merged[0].owned, merged[0].favorite) == (False, False)
    assert (merged[1].owned, merged[1].favorite) == (True, True)


def test_merge_drops_orphans_without_touching_input(catalog):
    statuses = {
        "1a": ItemStatus(owned=True),
        "9z": ItemStatus(favorite=True),
    }
    catalog_before = list(catalog)
    statuses_before = copy.deepcopy(statuses)

    merged = merge_status(catalog, statuses)

    assert "9z" not in {item.identifier for item in merged}
    assert statuses == statuses_before
    assert catalog == catalog_before


def test_merge_is_repeatable(catalog):
    statuses = {"1a": ItemStatus(owned=True)}
    assert merge_status(catalog, statuses) == merge_status(catalog, statuses)


def test_merge_keeps_catalog_fields(catalog):
    merged = merge_status(catalog, {})
    assert merged[1].display_name == "Link"
    assert merged[1].game_series == "The Legend of Zelda"


def test_merge_keeps_duplicate_identifiers():
    catalog = [make_item("1", "a", "First"), make_item("1", "a", "Second")]
    merged = merge_status(catalog, {"1a": ItemStatus(owned=True)})
    assert [item.display_name for item in merged] == ["First", "Second"]
    assert all(item.owned for item in merged)


def test_toggle_creates_default_record_and_flips_one_field(store):
    book = StatusBook(store)
    book.load()

    status = book.toggle_owned("1a")

    assert status == ItemStatus(owned=True, favorite=False)
    assert json.loads(store.get(STATUS_MAP_KEY)) == {
        "1a": {"owned": True, "favorite": False}
    }


def test_toggle_twice_restores_value(store):
    book = StatusBook(store)
    book.load()
    book.toggle_favorite("1a")
    book.toggle_favorite("1a")
    assert book.get("1a") == ItemStatus()


def test_statuses_survive_reload(store):
    book = StatusBook(store)
    book.load()
    book.toggle_owned("1a")
    book.toggle_favorite("2b")

    reloaded = StatusBook(store)
    reloaded.load()

    assert dict(reloaded.statuses) == {
        "1a": ItemStatus(owned=True),
        "2b": ItemStatus(favorite=True),
    }


def test_statuses_view_is_read_only(store):
    book = StatusBook(store)
    book.load()
    with pytest.raises(TypeError):
        book.statuses["1a"] = ItemStatus(owned=True)


def test_corrupt_map_is_set_aside(store):
    store.set(STATUS_MAP_KEY, "{broken")
    book = StatusBook(store)

    book.load()

    assert dict(book.statuses) == {}
    assert store.get(STATUS_MAP_KEY) is None
    assert store.get(CORRUPT_STATUS_MAP_KEY) == "{broken"


def test_map_with_wrong_shape_is_set_aside(store):
    store.set(STATUS_MAP_KEY, json.dumps({"1a": {"owned": "yes"}}))
    book = StatusBook(store)

    book.load()

    assert dict(book.statuses) == {}


class RejectingStore:
    def __init__(self, inner):
        self.inner = inner
        self.reject = True

    def get(self, key):
        return self.inner.get(key)

    def set(self, key, value):
        if self.reject:
            raise StorageQuotaError("quota exceeded")
        self.inner.set(key, value)

    def remove(self, key):
        self.inner.remove(key)


def test_corrupt_map_is_kept_when_backup_fails(store):
    store.set(STATUS_MAP_KEY, "{broken")
    book = StatusBook(RejectingStore(store))

    book.load()

    assert dict(book.statuses) == {}
    assert store.get(STATUS_MAP_KEY) == "{broken"
    assert store.get(CORRUPT_STATUS_MAP_KEY) is None


def test_rejected_write_keeps_change_in_memory(store):
    book = StatusBook(RejectingStore(store))
    book.load()

    status = book.toggle_owned("1a")

    assert status.owned is True
    assert book.get("1a").owned is True
    assert book.persisted is False
    assert store.get(STATUS_MAP_KEY) is None


def test_flush_retries_rejected_write(store):
    rejecting = RejectingStore(store)
    book = StatusBook(rejecting)
    book.load()
    book.toggle_owned("1a")

    rejecting.reject = False
    assert book.flush() is True

    assert json.loads(store.get(STATUS_MAP_KEY))["1a"]["owned"] is True
