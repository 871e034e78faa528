"""Application settings.

Settings are persisted through the storage service under ``app_settings`` and
can be overridden from the environment.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from folio.storage.storage import IStorageService

SETTINGS_STORAGE_KEY = "app_settings"

ENV_DATA_DIR = "FOLIO_DATA_DIR"
ENV_PRICE_API_URL = "FOLIO_PRICE_API_URL"
ENV_LOG_LEVEL = "FOLIO_LOG_LEVEL"


def default_data_dir() -> str:
    return str(Path.home() / ".folio" / "data")


@dataclass
class AppSettings:
    """Application settings model."""
    data_dir: str = field(default_factory=default_data_dir)
    price_api_url: str = "http://localhost:5000"
    price_timeout_s: float = 10.0
    remove_closed_holdings: bool = True  # delete a holding once a sell takes it to zero
    strict_seed: bool = False  # raise instead of clamping when the ledger outgrows the seed
    currency: str = "EGP"
    log_level: str = "INFO"

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AppSettings":
        """Create from dictionary, ignoring unknown keys."""
        defaults = cls()
        return cls(
            data_dir=data.get("data_dir", defaults.data_dir),
            price_api_url=data.get("price_api_url", defaults.price_api_url),
            price_timeout_s=float(data.get("price_timeout_s", defaults.price_timeout_s)),
            remove_closed_holdings=bool(data.get("remove_closed_holdings", defaults.remove_closed_holdings)),
            strict_seed=bool(data.get("strict_seed", defaults.strict_seed)),
            currency=data.get("currency", defaults.currency),
            log_level=data.get("log_level", defaults.log_level),
        )

    def with_env(self, environ: Optional[Mapping[str, str]] = None) -> "AppSettings":
        """Return a copy with environment overrides applied."""
        env = os.environ if environ is None else environ
        data = self.to_dict()
        if env.get(ENV_DATA_DIR):
            data["data_dir"] = env[ENV_DATA_DIR]
        if env.get(ENV_PRICE_API_URL):
            data["price_api_url"] = env[ENV_PRICE_API_URL]
        if env.get(ENV_LOG_LEVEL):
            data["log_level"] = env[ENV_LOG_LEVEL].upper()
        return AppSettings.from_dict(data)


def load_settings(storage: Optional[IStorageService] = None) -> AppSettings:
    """Load settings from storage, falling back to defaults."""
    settings = AppSettings()
    if storage is not None:
        data = storage.load(SETTINGS_STORAGE_KEY)
        if isinstance(data, dict):
            settings = AppSettings.from_dict(data)
    return settings.with_env()


def save_settings(storage: IStorageService, settings: AppSettings) -> None:
    storage.save(SETTINGS_STORAGE_KEY, settings.to_dict())
