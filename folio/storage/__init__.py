# Storage module
"""Persistence services for holdings, ledgers and settings."""

from folio.storage.storage import IStorageService, JsonFileStorage, MemoryStorage

__all__ = ["IStorageService", "JsonFileStorage", "MemoryStorage"]
