"""
Pydantic models for the amiibo catalog, per-item details and the user's
collection status.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, StrictBool, model_validator


class Region(str, Enum):
    """Release regions reported by the remote API."""

    AU = "au"
    EU = "eu"
    JP = "jp"
    NA = "na"


class Platform(str, Enum):
    """Platforms with per-game usage lists, keyed by their API field name."""

    NINTENDO_3DS = "games3DS"
    SWITCH = "gamesSwitch"
    WII_U = "gamesWiiU"


PLATFORM_LABELS = {
    Platform.NINTENDO_3DS: "Nintendo 3DS",
    Platform.SWITCH: "Nintendo Switch",
    Platform.WII_U: "Wii U",
}


class CatalogItem(BaseModel):
    """An immutable catalog record as served by the remote API."""

    head: str
    tail: str
    display_name: str = Field(alias="name")
    image_url: str = Field(default="", alias="image")
    character: str = ""
    game_series: str = Field(default="", alias="gameSeries")
    amiibo_series: str = Field(default="", alias="amiiboSeries")
    type: str = ""

    class Config:
        """Pydantic model configuration."""

        frozen = True
        populate_by_name = True

    @property
    def identifier(self) -> str:
        """The stable key for this item: the concatenation of head and tail."""
        return f"{self.head}{self.tail}"


class ItemStatus(BaseModel):
    """The user's flags for a single identifier."""

    owned: StrictBool = False
    favorite: StrictBool = False

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @property
    def is_default(self) -> bool:
        return not (self.owned or self.favorite)


class CollectionItem(CatalogItem):
    """A catalog item joined with the user's status for it."""

    owned: bool = False
    favorite: bool = False

    @classmethod
    def join(cls, item: CatalogItem, status: ItemStatus) -> "CollectionItem":
        fields = item.model_dump(include=set(CatalogItem.model_fields))
        return cls(**fields, owned=status.owned, favorite=status.favorite)

    @property
    def status(self) -> ItemStatus:
        return ItemStatus(owned=self.owned, favorite=self.favorite)


class GameUsage(BaseModel):
    """How a single game makes use of the figure."""

    game_name: str = Field(alias="gameName")
    usage_notes: list[str] = Field(default_factory=list)
    writes_data: bool = False

    class Config:
        """Pydantic model configuration."""

        frozen = True
        populate_by_name = True

    @model_validator(mode="before")
    @classmethod
    def collect_usage(cls, data: Any) -> Any:
        """Flattens the API's 'amiiboUsage' list into notes and a write flag."""
        if not isinstance(data, dict) or "amiiboUsage" not in data:
            return data
        usage = data.get("amiiboUsage") or []
        if not isinstance(usage, list):
            raise ValueError("'amiiboUsage' must be a list.")
        reshaped = {k: v for k, v in data.items() if k != "amiiboUsage"}
        reshaped["usage_notes"] = [
            entry.get("Usage", "") for entry in usage if isinstance(entry, dict)
        ]
        reshaped["writes_data"] = any(
            isinstance(entry, dict) and entry.get("write") is True for entry in usage
        )
        return reshaped


class ItemDetail(BaseModel):
    """
    Release dates and game compatibility for one figure.

    Both mappings only contain the keys the remote payload actually carried:
    a region reported as ``null`` maps to ``None``, and a platform reported
    with an empty list maps to ``[]``, while an unreported key is absent.
    """

    release_dates: dict[Region, Optional[str]] = Field(default_factory=dict)
    compatible_games: dict[Platform, list[GameUsage]] = Field(default_factory=dict)

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @model_validator(mode="before")
    @classmethod
    def reshape_api_payload(cls, data: Any) -> Any:
        """Accepts the raw API record ('release', 'games3DS', ...) as input."""
        if not isinstance(data, dict):
            raise ValueError("Detail payload must be an object.")
        if "release_dates" in data or "compatible_games" in data:
            return data

        release = data.get("release") or {}
        if not isinstance(release, dict):
            raise ValueError("'release' must be an object.")
        known_regions = {r.value for r in Region}
        release_dates = {k: v for k, v in release.items() if k in known_regions}

        compatible_games = {}
        for platform in Platform:
            if platform.value in data:
                games = data[platform.value]
                compatible_games[platform.value] = [] if games is None else games

        return {
            "release_dates": release_dates,
            "compatible_games": compatible_games,
        }
