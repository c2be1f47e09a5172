"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class AmiiboCliError(Exception):
    """Base exception for all application-specific errors."""


class NetworkError(AmiiboCliError):
    """Raised when the remote API is unreachable or answers with a non-2xx status."""


class ParseError(AmiiboCliError):
    """Raised when a remote response or a cached payload is not valid JSON."""


class SchemaMismatchError(AmiiboCliError):
    """Raised when well-formed JSON does not have the expected shape."""


class StorageQuotaError(AmiiboCliError):
    """Raised when the local store rejects a write (size limit, quota or disk error)."""


class DecodeError(AmiiboCliError):
    """Raised when a share token cannot be turned back into a set of identifiers."""


class CorruptTokenError(DecodeError):
    """Raised when a share token is not a valid compressed, URL-safe payload."""


class TokenSchemaError(DecodeError):
    """Raised when a share token decodes to JSON that is not an array of strings."""


class CatalogUnavailableError(AmiiboCliError):
    """Raised when the catalog can neither be fetched nor read from the cache."""


class ImportFormatError(AmiiboCliError):
    """Raised when an import file is unreadable or has the wrong structure."""


class UnknownItemError(AmiiboCliError):
    """Raised when an identifier does not match any catalog item."""


class ReadOnlyCollectionError(AmiiboCliError):
    """Raised when a mutation is attempted while viewing a shared collection."""


class NothingToShareError(AmiiboCliError):
    """Raised when a share link is requested but no item is owned."""


class ConfigurationError(AmiiboCliError):
    """Raised for issues related to configuration loading or validation."""
