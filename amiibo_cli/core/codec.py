"""
Share tokens: a set of owned identifiers packed into a compact, URL-safe string.

The identifiers are written as a JSON array, compressed with zlib and encoded
with the URL-safe base64 alphabet without padding, so the token can be used
as a query-string value as-is.
"""

import base64
import binascii
import json
import zlib
from collections.abc import Iterable
from urllib.parse import parse_qs, urlencode, urlparse

from amiibo_cli.exceptions import CorruptTokenError, TokenSchemaError

SHARE_QUERY_PARAM = "collection"

# Upper bound on the decompressed JSON; a real collection is far smaller
MAX_TOKEN_BYTES = 256 * 1024


def encode(identifiers: Iterable[str]) -> str:
    """Encodes identifiers (in iteration order, duplicates dropped) as a token."""
    ordered = list(dict.fromkeys(identifiers))
    raw = json.dumps(ordered, separators=(",", ":")).encode("utf-8")
    compressed = zlib.compress(raw, 9)
    return base64.urlsafe_b64encode(compressed).rstrip(b"=").decode("ascii")


def decode(token: str) -> set[str]:
    """
    Decodes a token produced by `encode`.

    Raises:
        CorruptTokenError: If the token is not valid base64/zlib/UTF-8 JSON.
        TokenSchemaError: If the JSON is not an array of strings.
    """
    token = token.strip()
    if not token:
        raise CorruptTokenError("Share token is empty.")

    try:
        padded = token + "=" * (-len(token) % 4)
        compressed = base64.b64decode(padded, altchars=b"-_", validate=True)
        inflater = zlib.decompressobj()
        raw = inflater.decompress(compressed, MAX_TOKEN_BYTES)
        if inflater.unconsumed_tail:
            raise CorruptTokenError(
                f"Share token expands beyond {MAX_TOKEN_BYTES // 1024} KB."
            )
        if not inflater.eof:
            raise CorruptTokenError("Share token is truncated.")
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, ValueError, zlib.error, RecursionError) as e:
        raise CorruptTokenError(f"Share token is corrupt: {e}") from e

    if not isinstance(data, list) or not all(isinstance(x, str) for x in data):
        raise TokenSchemaError("Share token does not contain a list of identifiers.")
    return set(data)


def build_share_url(base_url: str, token: str, param: str = SHARE_QUERY_PARAM) -> str:
    """Appends the token as a query parameter; an empty base yields just the query."""
    return f"{base_url}?{urlencode({param: token})}"


def extract_token(url_or_token: str, param: str = SHARE_QUERY_PARAM) -> str:
    """Accepts either a full share URL or a bare token and returns the token."""
    value = url_or_token.strip()
    if "?" not in value and "=" not in value:
        return value
    query = urlparse(value).query if "?" in value else value
    values = parse_qs(query).get(param)
    if not values:
        raise CorruptTokenError(f"No '{param}' parameter found in share link.")
    return values[0]
