"""
Helper functions for formatting data into human-readable strings.
"""

from datetime import date


def format_size(bytes_size: int) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 KB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    return f"{bytes_size:.1f} {units[i]}"


def format_release_date(value: str | None) -> str:
    """Formats an ISO date (e.g. '2014-11-21') as 'November 21, 2014'."""
    if not value:
        return "Not released"
    try:
        parsed = date.fromisoformat(value[:10])
    except ValueError:
        return value
    return f"{parsed:%B} {parsed.day}, {parsed.year}"
