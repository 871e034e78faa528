from __future__ import annotations

import logging
import sys
from typing import List, Optional

import httpx
from PySide6.QtWidgets import (
    QApplication,
    QComboBox,
    QLabel,
    QMainWindow,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from folio.config import AppSettings, load_settings
from folio.data.providers import IPriceProvider, PriceApiProvider
from folio.storage import JsonFileStorage
from folio.trading.analytics import format_money, summarize_portfolio, summarize_realized_gains
from folio.trading.models import Holding
from folio.trading.portfolio import PortfolioService
from folio.widgets.sparkline import BUY_COLOR, SELL_COLOR, CostHistorySparkline

logger = logging.getLogger(__name__)


class HoldingsWindow(QMainWindow):
    """Holding picker with its cost-history sparkline and portfolio totals."""

    def __init__(
        self,
        service: PortfolioService,
        provider: Optional[IPriceProvider] = None,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self.setWindowTitle("Folio")
        self.resize(520, 320)
        self._service = service
        self._provider = provider
        self._holdings: List[Holding] = []

        central = QWidget(self)
        layout = QVBoxLayout(central)
        self.summary_label = QLabel(central)
        self.realized_label = QLabel(central)
        self.picker = QComboBox(central)
        self.position_label = QLabel(central)
        self.sparkline = CostHistorySparkline(parent=central)
        self.refresh_button = QPushButton("Refresh prices", central)
        self.refresh_button.setEnabled(provider is not None)
        for w in (self.summary_label, self.realized_label, self.picker, self.position_label, self.sparkline,
                  self.refresh_button):
            layout.addWidget(w)
        self.setCentralWidget(central)

        self.picker.currentIndexChanged.connect(self._on_holding_selected)
        self.refresh_button.clicked.connect(self.refresh_prices)
        self.refresh()

    def refresh(self) -> None:
        currency = self._service.settings.currency
        self._holdings = self._service.get_holdings()
        summary = summarize_portfolio(self._holdings)
        realized = summarize_realized_gains(self._service.get_realized_gains())
        self.summary_label.setText(
            f"Value {format_money(summary.total_value, currency)}  "
            f"Cost {format_money(summary.total_cost, currency)}  "
            f"P/L {format_money(summary.total_pl, currency)}"
        )
        self.realized_label.setText(
            f"Realized {format_money(realized.total_profit, currency)} over {realized.total_trades} trades"
        )
        self.picker.blockSignals(True)
        self.picker.clear()
        for h in self._holdings:
            self.picker.addItem(h.symbol, h.id)
        self.picker.blockSignals(False)
        self._on_holding_selected(self.picker.currentIndex())

    def refresh_prices(self) -> None:
        if self._provider is None:
            return
        try:
            self._service.refresh_prices(self._provider)
        except httpx.HTTPError as e:
            logger.warning(f"Price refresh failed: {e}")
            return
        self.refresh()

    def _on_holding_selected(self, index: int) -> None:
        if index < 0 or index >= len(self._holdings):
            self.position_label.setText("No holdings")
            self.sparkline.update_history([])
            return
        holding = self._holdings[index]
        currency = self._service.settings.currency
        realized = summarize_realized_gains(self._service.get_realized_gains(holding.symbol))
        self.position_label.setText(
            f"{holding.shares} shares @ {format_money(holding.average_cost, currency)}  "
            f"realized {format_money(realized.total_profit, currency)}"
        )
        # green while the market price covers the cost basis
        self.sparkline.update_color(BUY_COLOR if holding.unrealized_pnl >= 0 else SELL_COLOR)
        self.sparkline.update_history(self._service.cost_history(holding.id))


def build_service() -> PortfolioService:
    bootstrap = AppSettings().with_env()
    storage = JsonFileStorage(bootstrap.data_dir)
    return PortfolioService(storage, load_settings(storage))


def main() -> int:
    service = build_service()
    settings = service.settings
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(f"Using data directory {settings.data_dir}")
    provider = PriceApiProvider(settings.price_api_url, timeout_s=settings.price_timeout_s)
    app = QApplication(sys.argv)
    w = HoldingsWindow(service, provider)
    w.show()
    try:
        return app.exec()
    finally:
        provider.close()


if __name__ == "__main__":
    raise SystemExit(main())
