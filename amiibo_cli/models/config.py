"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_API_BASE_URL = "https://www.amiiboapi.com/api/"


class AppConfig(BaseModel):
    """A validated configuration model for the application."""

    # Remote API
    api_base_url: str = DEFAULT_API_BASE_URL

    # Sharing
    share_base_url: str = ""

    # Local store limits
    max_value_kb: int = 2048
    quota_kb: int = 5120

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)
    data_dir: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        """Requires an absolute http(s) URL and normalizes the trailing slash."""
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"API base URL must be an http(s) URL, got: {v!r}")
        return v if v.endswith("/") else f"{v}/"

    @field_validator("share_base_url")
    @classmethod
    def validate_share_base_url(cls, v: str) -> str:
        """An empty share URL is allowed; share links then carry only the query."""
        if not v:
            return v
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Share base URL must be an http(s) URL, got: {v!r}")
        if parsed.query:
            raise ValueError("Share base URL must not contain a query string.")
        return v

    @field_validator("max_value_kb", "quota_kb")
    @classmethod
    def validate_limits(cls, v: int) -> int:
        """Ensures store limits are positive."""
        if v < 1:
            raise ValueError("Store limits must be at least 1 KB.")
        return v

    @model_validator(mode="after")
    def validate_limit_conflicts(self) -> "AppConfig":
        """Checks that a single value can fit inside the total quota."""
        if self.max_value_kb > self.quota_kb:
            raise ValueError("max_value_kb cannot exceed quota_kb.")
        return self

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "data_dir"}
        return {key for key in cls.model_fields if key not in internal_fields}
