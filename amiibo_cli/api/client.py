"""
Async client for the read-only amiibo catalog API.
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import ValidationError

from amiibo_cli.exceptions import NetworkError, ParseError, SchemaMismatchError
from amiibo_cli.models.catalog import CatalogItem, ItemDetail
from amiibo_cli.models.config import DEFAULT_API_BASE_URL

log = logging.getLogger(__name__)


class AmiiboAPIClient:
    """
    Async client for the amiibo API.

    Wraps the three remote operations the collection engine needs: the full
    catalog, a per-item detail lookup (keyed by display name) and the
    freshness oracle that reports one version token for the whole dataset.
    Every failure surfaces as NetworkError, ParseError or SchemaMismatchError.
    """

    def __init__(self, base_url: str = DEFAULT_API_BASE_URL):
        """
        Initializes the API client.

        Args:
            base_url: Root of the API, e.g. 'https://www.amiiboapi.com/api/'.
        """
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self._session: Optional[aiohttp.ClientSession] = None

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "User-Agent": "amiibo-cli",
                    "Accept": "application/json",
                    "Accept-Encoding": "gzip, deflate",
                },
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "AmiiboAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def api_call(
        self, endpoint: str, allow_not_found: bool = False, **params: Any
    ) -> Optional[Dict[str, Any]]:
        """
        Performs a GET request and returns the decoded JSON object.

        Args:
            endpoint: Path relative to the base URL.
            allow_not_found: Return None on HTTP 404 instead of raising.
            **params: Query-string parameters.

        Raises:
            NetworkError: On connection failures, timeouts and non-2xx statuses.
            ParseError: If the body is not valid JSON.
            SchemaMismatchError: If the body is JSON but not an object.
        """
        await self._initialize_session()
        url = self.base_url + endpoint
        start_time = time.monotonic()

        try:
            async with self._session.get(url, params=params) as r:
                duration_ms = (time.monotonic() - start_time) * 1000
                log.debug(f"GET {endpoint} -> {r.status} in {duration_ms:.0f} ms")

                if r.status == 404 and allow_not_found:
                    return None
                if r.status >= 400:
                    raise NetworkError(
                        f"API call to {endpoint} failed with HTTP {r.status}."
                    )
                body = await r.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"API call to {endpoint} failed: {e}")
            raise NetworkError(f"Could not reach the amiibo API ({endpoint}): {e}") from e

        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as e:
            raise ParseError(f"Malformed JSON from {endpoint}: {e}") from e

        if not isinstance(data, dict):
            raise SchemaMismatchError(
                f"Expected a JSON object from {endpoint}, got {type(data).__name__}."
            )
        return data

    # Public API Methods
    async def fetch_catalog(self) -> List[CatalogItem]:
        """Fetches every catalog item."""
        data = await self.api_call("amiibo/")
        return parse_catalog(data.get("amiibo"), source="amiibo/")

    async def fetch_detail(self, display_name: str) -> Optional[ItemDetail]:
        """
        Fetches release dates and game usage for the item named `display_name`.
        Returns None if the API knows no item by that name.
        """
        data = await self.api_call(
            "amiibo/",
            allow_not_found=True,
            name=display_name,
            showusage="",
            showgames="",
        )
        if data is None:
            return None

        items = data.get("amiibo")
        if isinstance(items, dict):
            items = [items]
        if not isinstance(items, list):
            raise SchemaMismatchError("Detail response is missing the 'amiibo' list.")
        if not items:
            return None

        try:
            return ItemDetail.model_validate(items[0])
        except ValidationError as e:
            raise SchemaMismatchError(f"Unexpected detail shape: {e}") from e

    async def fetch_version_token(self) -> str:
        """Asks the freshness oracle for the dataset's current version token."""
        data = await self.api_call("lastupdated/")
        token = data.get("lastUpdated")
        if not isinstance(token, str) or not token:
            raise SchemaMismatchError("Freshness response has no 'lastUpdated' string.")
        return token


def parse_catalog(items: Any, source: str = "cache") -> List[CatalogItem]:
    """
    Validates a list of raw catalog records.

    Raises:
        SchemaMismatchError: If `items` is not a list of valid catalog records.
    """
    if not isinstance(items, list):
        raise SchemaMismatchError(f"Catalog from {source} is not a list.")
    try:
        return [CatalogItem.model_validate(item) for item in items]
    except ValidationError as e:
        raise SchemaMismatchError(f"Unexpected catalog shape from {source}: {e}") from e
