import pytest

from amiibo_cli.core.merge import merge_status
from amiibo_cli.core.query import (
    collection_stats,
    filter_collection,
    unique_series,
    unique_types,
)
from amiibo_cli.models.catalog import ItemStatus
from amiibo_cli.utils.formatting import format_release_date, format_size


@pytest.fixture
def collection(catalog):
    return merge_status(
        catalog,
        {
            "1a": ItemStatus(owned=True, favorite=True),
            "3c": ItemStatus(owned=True),
        },
    )


def names(items):
    return [item.display_name for item in items]


def test_no_filters_keeps_everything(collection):
    assert names(filter_collection(collection)) == ["Mario", "Link", "Isabelle"]


def test_search_matches_name_or_character_case_insensitively(catalog):
    items = merge_status(catalog, {})
    assert names(filter_collection(items, search="LINK")) == ["Link"]
    assert names(filter_collection(items, search="isa")) == ["Isabelle"]


def test_owned_and_favorite_filters(collection):
    assert names(filter_collection(collection, owned=True)) == ["Mario", "Isabelle"]
    assert names(filter_collection(collection, owned=False)) == ["Link"]
    assert names(filter_collection(collection, favorite_only=True)) == ["Mario"]


def test_series_and_type_filters(collection):
    assert names(filter_collection(collection, series="Animal Crossing")) == ["Isabelle"]
    assert names(filter_collection(collection, item_type="Figure")) == ["Mario", "Link"]
    assert filter_collection(collection, series="Animal Crossing", item_type="Figure") == []


def test_facets_are_sorted_and_unique(collection):
    assert unique_series(collection) == [
        "Animal Crossing",
        "Super Mario",
        "The Legend of Zelda",
    ]
    assert unique_types(collection) == ["Card", "Figure"]


def test_stats(collection):
    stats = collection_stats(collection)
    assert (stats.total, stats.owned, stats.favorites) == (3, 2, 1)
    assert stats.completion == pytest.approx(66.666, rel=1e-3)
    assert collection_stats([]).completion == 0.0


def test_release_date_formatting():
    assert format_release_date("2014-11-21") == "November 21, 2014"
    assert format_release_date(None) == "Not released"
    assert format_release_date("") == "Not released"
    assert format_release_date("soon") == "soon"


def test_size_formatting():
    assert format_size(0) == "0 B"
    assert format_size(2048) == "2.0 KB"
