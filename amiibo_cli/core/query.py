"""
Filtering, facets and counts over the merged collection.
"""

from dataclasses import dataclass
from typing import Optional

from amiibo_cli.models.catalog import CollectionItem


@dataclass(frozen=True)
class CollectionStats:
    total: int
    owned: int
    favorites: int

    @property
    def completion(self) -> float:
        return (self.owned / self.total * 100) if self.total else 0.0


def filter_collection(
    items: list[CollectionItem],
    search: str = "",
    owned: Optional[bool] = None,
    favorite_only: bool = False,
    series: str = "",
    item_type: str = "",
) -> list[CollectionItem]:
    """
    Applies every given filter. `search` matches display name or character,
    case-insensitively; `owned=None` keeps both owned and missing items.
    """
    needle = search.lower()
    return [
        item
        for item in items
        if (
            not needle
            or needle in item.display_name.lower()
            or needle in item.character.lower()
        )
        and (owned is None or item.owned == owned)
        and (not favorite_only or item.favorite)
        and (not series or item.game_series == series)
        and (not item_type or item.type == item_type)
    ]


def unique_series(items: list[CollectionItem]) -> list[str]:
    return sorted({item.game_series for item in items})


def unique_types(items: list[CollectionItem]) -> list[str]:
    return sorted({item.type for item in items})


def collection_stats(items: list[CollectionItem]) -> CollectionStats:
    return CollectionStats(
        total=len(items),
        owned=sum(1 for item in items if item.owned),
        favorites=sum(1 for item in items if item.favorite),
    )
