"""
A simple, file-based string key/value store that survives restarts.
Holds the catalog snapshot, version tokens, detail snapshots and the status map.
"""

import hashlib
import json
import logging
import os
import tempfile
import time
from collections.abc import Iterable
from pathlib import Path

from amiibo_cli.exceptions import StorageQuotaError

log = logging.getLogger(__name__)


class DurableStore:
    """
    Manages a directory of JSON files, one per key, with a per-value size limit
    and a total quota. Writes are atomic per key; there are no transactions and
    the last writer wins.
    """

    def __init__(
        self,
        data_dir_path: Path,
        max_value_kb: int = 2048,
        quota_kb: int = 5120,
    ):
        """
        Initializes the store.

        Args:
            data_dir_path: The directory under which the store directory is created.
            max_value_kb: The largest serialized entry accepted by `set`.
            quota_kb: The total size all entries together may occupy.
        """
        self.store_dir = data_dir_path / "store"
        self.store_dir.mkdir(parents=True, exist_ok=True)
        self.max_value_bytes = max_value_kb * 1024
        self.quota_bytes = quota_kb * 1024

    def _get_entry_path(self, key: str) -> Path:
        """Generates a safe filename for a given key."""
        hashed_key = hashlib.md5(key.encode("utf-8")).hexdigest()  # noqa: S324
        return self.store_dir / f"{hashed_key}.json"

    def _read_entry(self, path: Path) -> dict | None:
        try:
            with open(path, encoding="utf-8") as f:
                entry = json.load(f)
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            log.warning(f"Discarding unreadable store entry {path.name}: {e}")
            self._unlink(path)
            return None

        if not isinstance(entry, dict) or not isinstance(entry.get("value"), str):
            log.warning(f"Discarding malformed store entry {path.name}.")
            self._unlink(path)
            return None
        return entry

    def _unlink(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            log.warning(f"Failed to remove store entry {path.name}: {e}")

    def get(self, key: str) -> str | None:
        """Returns the stored string for `key`, or None if there is none."""
        entry = self._read_entry(self._get_entry_path(key))
        if entry is None or entry.get("key") != key:
            return None
        return entry["value"]

    def set(self, key: str, value: str) -> None:
        """
        Stores `value` under `key`.

        Raises:
            StorageQuotaError: If the entry is too large, the quota would be
            exceeded, or the file cannot be written.
        """
        if not isinstance(value, str):
            raise TypeError(f"Store values must be strings, got {type(value).__name__}.")

        path = self._get_entry_path(key)
        serialized = json.dumps({"key": key, "timestamp": time.time(), "value": value})
        size = len(serialized.encode("utf-8"))

        if size > self.max_value_bytes:
            raise StorageQuotaError(
                f"Value for '{key}' is too large ({size / 1024:.1f} KB)."
            )

        current_size = path.stat().st_size if path.is_file() else 0
        projected = self.usage_bytes() - current_size + size
        if projected > self.quota_bytes:
            raise StorageQuotaError(
                f"Writing '{key}' would exceed the store quota "
                f"({projected / 1024:.1f} KB of {self.quota_bytes / 1024:.0f} KB)."
            )

        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.store_dir, suffix=".tmp", delete=False
            ) as f:
                tmp_name = f.name
                f.write(serialized)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name:
                self._unlink(Path(tmp_name))
            raise StorageQuotaError(f"Store write failed for '{key}': {e}") from e

    def remove(self, key: str) -> None:
        """Deletes `key`; removing a missing key is not an error."""
        self._unlink(self._get_entry_path(key))

    def usage_bytes(self) -> int:
        """The total size of all entries on disk."""
        total = 0
        for entry_file in self.store_dir.glob("*.json"):
            try:
                total += entry_file.stat().st_size
            except OSError:
                continue
        return total

    def clear(self, keep: Iterable[str] = ()) -> int:
        """
        Removes every entry except those whose keys are listed in `keep`.

        Returns:
            The number of entries removed.
        """
        log.info("Clearing cached entries...")
        keep_paths = {self._get_entry_path(key) for key in keep}
        removed = 0
        for entry_file in self.store_dir.glob("*.json"):
            if entry_file in keep_paths:
                continue
            self._unlink(entry_file)
            removed += 1
        return removed
