from __future__ import annotations

from folio.config import (
    ENV_DATA_DIR,
    ENV_LOG_LEVEL,
    ENV_PRICE_API_URL,
    SETTINGS_STORAGE_KEY,
    AppSettings,
    load_settings,
    save_settings,
)
from folio.storage import MemoryStorage


def test_defaults():
    s = AppSettings()

    assert s.remove_closed_holdings is True
    assert s.strict_seed is False
    assert s.data_dir.endswith("data")


def test_from_dict_ignores_unknown_keys():
    s = AppSettings.from_dict({"currency": "USD", "strict_seed": True, "theme": "dark"})

    assert s.currency == "USD"
    assert s.strict_seed is True
    assert s.price_api_url == AppSettings().price_api_url


def test_env_overrides():
    s = AppSettings().with_env({
        ENV_DATA_DIR: "/tmp/folio",
        ENV_PRICE_API_URL: "http://prices.local",
        ENV_LOG_LEVEL: "debug",
    })

    assert s.data_dir == "/tmp/folio"
    assert s.price_api_url == "http://prices.local"
    assert s.log_level == "DEBUG"


def test_settings_persist_through_storage(monkeypatch):
    for key in (ENV_DATA_DIR, ENV_PRICE_API_URL, ENV_LOG_LEVEL):
        monkeypatch.delenv(key, raising=False)
    storage = MemoryStorage()
    save_settings(storage, AppSettings(data_dir="/data", remove_closed_holdings=False, currency="USD"))

    loaded = load_settings(storage)

    assert storage.keys() == [SETTINGS_STORAGE_KEY]
    assert loaded.data_dir == "/data"
    assert loaded.remove_closed_holdings is False
    assert loaded.currency == "USD"


def test_load_settings_without_storage_uses_env(monkeypatch):
    monkeypatch.setenv(ENV_PRICE_API_URL, "http://env.local")

    assert load_settings().price_api_url == "http://env.local"
