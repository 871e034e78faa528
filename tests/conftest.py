from __future__ import annotations

import os

import pytest
from PySide6.QtWidgets import QApplication

from folio.config import AppSettings
from folio.storage import MemoryStorage
from folio.trading.portfolio import PortfolioService


@pytest.fixture(scope="session", autouse=True)
def _qt_app():
    # Use offscreen to avoid GUI requirement in CI
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def service(storage: MemoryStorage) -> PortfolioService:
    return PortfolioService(storage, AppSettings(data_dir="unused"))
