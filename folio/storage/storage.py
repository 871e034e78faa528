"""Storage service interfaces and implementations.

Provides abstract key-value storage interface plus JSON file-based and
in-memory implementations for persisting application state.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class IStorageService(ABC):
    """Abstract base class for storage services.

    Defines the interface for saving, loading, and deleting data
    with string keys.
    """

    @abstractmethod
    def save(self, key: str, data: Any) -> None:
        """Save data with the given key.

        Args:
            key: Unique identifier for the data
            data: JSON-serializable data to store
        """
        ...

    @abstractmethod
    def load(self, key: str) -> Optional[Any]:
        """Load data for the given key.

        Args:
            key: Unique identifier for the data

        Returns:
            The stored data, or None if not found
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete data for the given key.

        Args:
            key: Unique identifier for the data to delete
        """
        ...


class JsonFileStorage(IStorageService):
    """JSON file-based storage implementation.

    Stores each key as a separate JSON file in the specified base directory.
    Writes go to a temporary file first and are moved into place, so a crash
    mid-write never leaves a half-written list behind.
    """

    def __init__(self, base_path: str | Path) -> None:
        """Initialize the JSON file storage.

        Args:
            base_path: Directory path where JSON files will be stored
        """
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base_path

    def _get_file_path(self, key: str) -> Path:
        """Map a storage key such as ``holdings`` to ``holdings.json``.

        Path separators in the key are replaced so every key stays inside
        the data directory.
        """
        safe_key = key.replace("/", "_").replace("\\", "_")
        return self._base_path / f"{safe_key}.json"

    def save(self, key: str, data: Any) -> None:
        """Save data to a JSON file.

        Args:
            key: Unique identifier for the data
            data: JSON-serializable data to store

        Raises:
            TypeError: If data is not JSON-serializable
            OSError: If file cannot be written
        """
        file_path = self._get_file_path(key)
        tmp_path = file_path.with_suffix(".json.tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            tmp_path.replace(file_path)
        except (TypeError, OSError) as e:
            logger.error(f"Failed to save data for key '{key}': {e}")
            raise

    def load(self, key: str) -> Optional[Any]:
        """Load data from a JSON file.

        Args:
            key: Unique identifier for the data

        Returns:
            The stored data, or None if file doesn't exist or is corrupted
        """
        file_path = self._get_file_path(key)
        if not file_path.exists():
            return None

        try:
            with file_path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupted data for key '{key}': {e}")
            return None
        except OSError as e:
            logger.error(f"Failed to load data for key '{key}': {e}")
            return None

    def delete(self, key: str) -> None:
        """Remove the file behind a key, used when a whole list is cleared.

        A missing file is not an error; an unreadable one is logged.
        """
        file_path = self._get_file_path(key)
        try:
            if file_path.exists():
                file_path.unlink()
        except OSError as e:
            logger.error(f"Failed to delete data for key '{key}': {e}")

    def keys(self) -> list[str]:
        """Keys that currently have a file, sorted."""
        return sorted(p.stem for p in self._base_path.glob("*.json"))


class MemoryStorage(IStorageService):
    """In-memory storage, used by tests and throwaway sessions.

    Values are deep-copied on the way in and out so callers can never
    mutate stored state by accident.
    """

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def save(self, key: str, data: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(data)

    def load(self, key: str) -> Optional[Any]:
        with self._lock:
            if key not in self._data:
                return None
            return copy.deepcopy(self._data[key])

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)
