"""
Key-value stores holding JSON text.

A store is created once at startup and handed to HistoryStore,
ProgressStore, CacheLayer and TrainingPlanSync.  Values are strings
(JSON documents) so that corrupt data surfaces as a parse error in the
consumer, exactly as it would with browser local storage.
"""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path


class StorageError(Exception):
    """Raised when the underlying storage cannot be read or written."""

    pass


class StorageQuotaError(StorageError):
    """Raised when a write would exceed the store's capacity."""

    pass


class KeyValueStore(ABC):
    """Minimal string → string store."""

    @abstractmethod
    def get_item(self, key: str) -> str | None:
        """Return the stored value or None if absent."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Delete key; missing keys are ignored."""

    @abstractmethod
    def keys(self) -> list[str]:
        """All stored keys."""

    def clear(self) -> None:
        """Delete every key."""
        for key in self.keys():
            self.remove_item(key)


class MemoryStore(KeyValueStore):
    """
    In-process store.

    Args:
        quota_chars: Optional capacity in characters (keys + values);
            writes beyond it raise StorageQuotaError
    """

    def __init__(self, quota_chars: int | None = None):
        self._data: dict[str, str] = {}
        self.quota_chars = quota_chars

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota_chars is not None:
            used = sum(len(k) + len(v) for k, v in self._data.items() if k != key)
            if used + len(key) + len(value) > self.quota_chars:
                raise StorageQuotaError(
                    f"Writing {key!r} would exceed quota of {self.quota_chars} characters"
                )
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore(KeyValueStore):
    """
    Store backed by a single JSON file mapping key → value string.

    Every write rewrites the whole file through a temporary file and an
    atomic rename, so readers never observe a half-written document.
    """

    def __init__(self, path: str | Path):
        """
        Initialize the file store.

        Args:
            path: Path to the JSON file (created on first write)
        """
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Cannot read store {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Store {self.path} does not contain a JSON object")
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".store-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Cannot write store {self.path}: {e}") from e

    def get_item(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)

    def keys(self) -> list[str]:
        return list(self._read_all())

    def clear(self) -> None:
        self._write_all({})


def get_default_storage_path() -> Path:
    """Default location of the file store: ~/.trainerly/storage.json."""
    return Path.home() / ".trainerly" / "storage.json"
