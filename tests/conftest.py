import asyncio
from collections import Counter

import pytest

from amiibo_cli.exceptions import NetworkError
from amiibo_cli.models.catalog import CatalogItem, ItemDetail
from amiibo_cli.storage.store import DurableStore


def make_item(head: str, tail: str, name: str = "", **fields) -> CatalogItem:
    return CatalogItem(
        head=head,
        tail=tail,
        name=name or f"Figure {head}{tail}",
        image=f"https://example.com/{head}{tail}.png",
        character=fields.pop("character", name or "Someone"),
        gameSeries=fields.pop("game_series", "Super Mario"),
        amiiboSeries=fields.pop("amiibo_series", "Super Smash Bros."),
        type=fields.pop("type", "Figure"),
    )


def make_detail(date: str = "2014-11-21") -> ItemDetail:
    return ItemDetail.model_validate(
        {
            "release": {"na": date, "jp": None},
            "gamesSwitch": [
                {
                    "gameName": "Super Smash Bros. Ultimate",
                    "amiiboUsage": [{"Usage": "Train a figure player", "write": True}],
                }
            ],
        }
    )


class FakeGateway:
    """In-memory stand-in for AmiiboAPIClient."""

    def __init__(self, catalog=None, token="2024-01-01", details=None):
        self.catalog = list(catalog or [])
        self.token = token
        self.details = dict(details or {})
        self.gates: dict[str, asyncio.Event] = {}
        self.fail_token = False
        self.fail_catalog = False
        self.fail_detail = False
        self.calls = Counter()
        self.closed = False

    async def fetch_version_token(self):
        self.calls["token"] += 1
        if self.fail_token:
            raise NetworkError("oracle unreachable")
        return self.token

    async def fetch_catalog(self):
        self.calls["catalog"] += 1
        if self.fail_catalog:
            raise NetworkError("catalog unreachable")
        return list(self.catalog)

    async def fetch_detail(self, display_name):
        self.calls["detail"] += 1
        if display_name in self.gates:
            await self.gates[display_name].wait()
        if self.fail_detail:
            raise NetworkError("detail unreachable")
        return self.details.get(display_name)

    async def close(self):
        self.closed = True


@pytest.fixture
def store(tmp_path):
    return DurableStore(tmp_path)


@pytest.fixture
def catalog():
    return [
        make_item("1", "a", "Mario", character="Mario"),
        make_item("2", "b", "Link", character="Link", game_series="The Legend of Zelda"),
        make_item("3", "c", "Isabelle", character="Isabelle", game_series="Animal Crossing", type="Card"),
    ]


@pytest.fixture
def gateway(catalog):
    return FakeGateway(catalog=catalog, details={"Mario": make_detail()})
