import asyncio
import json

import aiohttp
import pytest

from amiibo_cli.api.client import AmiiboAPIClient, parse_catalog
from amiibo_cli.core.freshness import (
    CATALOG_DATA_KEY,
    CATALOG_NAMESPACE,
    CATALOG_VERSION_KEY,
    FreshnessReconciler,
)
from amiibo_cli.exceptions import NetworkError, ParseError, SchemaMismatchError
from amiibo_cli.models.catalog import Platform, Region


class FakeResponse:
    def __init__(self, status=200, body=""):
        self.status = status
        self._body = body

    async def read(self):
        if isinstance(self._body, bytes):
            return self._body
        return self._body.encode("utf-8")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """Replays canned responses keyed by endpoint path."""

    closed = False

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def get(self, url, params=None):
        self.requests.append((url, params))
        response = self.routes[url.rsplit("/api/", 1)[1]]
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self):
        self.closed = True


def make_client(routes) -> tuple[AmiiboAPIClient, FakeSession]:
    client = AmiiboAPIClient("https://api.test/api")
    session = FakeSession(routes)
    client._session = session
    return client, session


RAW_ITEM = {
    "head": "00000000",
    "tail": "00000002",
    "name": "Mario",
    "image": "https://api.test/mario.png",
    "character": "Mario",
    "gameSeries": "Super Mario",
    "amiiboSeries": "Super Smash Bros.",
    "type": "Figure",
    "release": {"na": "2014-11-21"},
}


def test_base_url_gets_trailing_slash():
    assert AmiiboAPIClient("https://api.test/api").base_url == "https://api.test/api/"


@pytest.mark.asyncio
async def test_fetch_catalog_parses_items():
    client, _ = make_client(
        {"amiibo/": FakeResponse(body=json.dumps({"amiibo": [RAW_ITEM]}))}
    )

    items = await client.fetch_catalog()

    assert len(items) == 1
    assert items[0].identifier == "0000000000000002"
    assert items[0].display_name == "Mario"
    assert items[0].game_series == "Super Mario"


@pytest.mark.asyncio
async def test_fetch_catalog_without_list_is_schema_mismatch():
    client, _ = make_client({"amiibo/": FakeResponse(body=json.dumps({"error": "x"}))})

    with pytest.raises(SchemaMismatchError):
        await client.fetch_catalog()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response, expected",
    [
        (FakeResponse(status=500, body="oops"), NetworkError),
        (aiohttp.ClientConnectionError("refused"), NetworkError),
        (asyncio.TimeoutError(), NetworkError),
        (FakeResponse(body="<html>"), ParseError),
        (FakeResponse(body="[1, 2]"), SchemaMismatchError),
    ],
)
async def test_failures_map_to_gateway_errors(response, expected):
    client, _ = make_client({"amiibo/": response})

    with pytest.raises(expected):
        await client.fetch_catalog()


@pytest.mark.asyncio
async def test_fetch_version_token():
    client, _ = make_client(
        {"lastupdated/": FakeResponse(body=json.dumps({"lastUpdated": "2024-05-01T10:00"}))}
    )
    assert await client.fetch_version_token() == "2024-05-01T10:00"


@pytest.mark.asyncio
async def test_fetch_version_token_requires_string():
    client, _ = make_client({"lastupdated/": FakeResponse(body=json.dumps({}))})
    with pytest.raises(SchemaMismatchError):
        await client.fetch_version_token()


@pytest.mark.asyncio
async def test_fetch_detail_sends_name_and_usage_flags():
    record = dict(RAW_ITEM, gamesSwitch=[], games3DS=None)
    client, session = make_client(
        {"amiibo/": FakeResponse(body=json.dumps({"amiibo": [record]}))}
    )

    detail = await client.fetch_detail("Mario")

    _, params = session.requests[0]
    assert params == {"name": "Mario", "showusage": "", "showgames": ""}
    assert detail.release_dates == {Region.NA: "2014-11-21"}
    assert detail.compatible_games == {Platform.SWITCH: [], Platform.NINTENDO_3DS: []}


@pytest.mark.asyncio
async def test_fetch_detail_not_found_is_none():
    client, _ = make_client({"amiibo/": FakeResponse(status=404, body="{}")})
    assert await client.fetch_detail("Nobody") is None


@pytest.mark.asyncio
async def test_fetch_detail_empty_list_is_none():
    client, _ = make_client({"amiibo/": FakeResponse(body=json.dumps({"amiibo": []}))})
    assert await client.fetch_detail("Nobody") is None


@pytest.mark.asyncio
async def test_close_closes_session():
    client, session = make_client({})
    async with client:
        pass
    assert session.closed is True


def test_parse_catalog_rejects_bad_records():
    with pytest.raises(SchemaMismatchError):
        parse_catalog([{"head": "1"}])
    with pytest.raises(SchemaMismatchError):
        parse_catalog({"amiibo": []})


@pytest.mark.asyncio
async def test_non_utf8_body_is_parse_error():
    client, _ = make_client(
        {"lastupdated/": FakeResponse(body=b'{"lastUpdated": "\xff\xfe"}')}
    )
    with pytest.raises(ParseError):
        await client.fetch_version_token()


@pytest.mark.asyncio
async def test_deeply_nested_body_is_parse_error():
    client, _ = make_client({"amiibo/": FakeResponse(body="[" * 100000 + "]" * 100000)})
    with pytest.raises(ParseError):
        await client.fetch_catalog()


@pytest.mark.asyncio
async def test_undecodable_version_token_keeps_cached_catalog(store):
    store.set(CATALOG_DATA_KEY, "[]")
    store.set(CATALOG_VERSION_KEY, "2024-01-01")
    client, _ = make_client(
        {"lastupdated/": FakeResponse(body=b'{"lastUpdated": "\xff\xfe"}')}
    )

    assert await FreshnessReconciler(store, client).should_refetch(CATALOG_NAMESPACE) is False
