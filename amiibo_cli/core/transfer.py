"""
Import and export of the status map as a portable JSON file.
"""

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from amiibo_cli.exceptions import ImportFormatError
from amiibo_cli.models.catalog import ItemStatus

log = logging.getLogger(__name__)

DEFAULT_EXPORT_FILENAME = "amiibo-collection.json"


def export_statuses(statuses: Mapping[str, ItemStatus]) -> dict[str, dict[str, bool]]:
    """Keeps only identifiers with at least one flag set."""
    return {
        identifier: status.model_dump()
        for identifier, status in statuses.items()
        if not status.is_default
    }


def write_export(path: Path, statuses: Mapping[str, ItemStatus]) -> int:
    """
    Writes the export document to `path`.

    Returns:
        The number of identifiers written.
    """
    exported = export_statuses(statuses)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(exported, f, indent=2)
        f.write("\n")
    log.debug(f"Exported {len(exported)} records to {path}")
    return len(exported)


def parse_import(text: str) -> dict[str, ItemStatus]:
    """
    Parses and validates a whole export document before anything is applied.
    Flags missing from a record default to false.

    Raises:
        ImportFormatError: If the document is not JSON, its top level is not an
        object, or any record is not an object of boolean flags.
    """
    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportFormatError(f"File is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ImportFormatError(
            f"Expected a JSON object of identifiers, got {type(data).__name__}."
        )

    imported: dict[str, ItemStatus] = {}
    for identifier, record in data.items():
        if not isinstance(record, dict):
            raise ImportFormatError(f"Record for '{identifier}' is not an object.")
        try:
            imported[identifier] = ItemStatus.model_validate(record)
        except ValidationError as e:
            raise ImportFormatError(f"Invalid record for '{identifier}': {e}") from e
    return imported


def read_import(path: Path) -> dict[str, ItemStatus]:
    """Reads and parses an export file. See `parse_import`."""
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ImportFormatError(f"Could not read '{path}': {e}") from e
    return parse_import(text)
