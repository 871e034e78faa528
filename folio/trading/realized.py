"""Realized gain derivation and the append-only realized gains ledger."""

from __future__ import annotations

from typing import TYPE_CHECKING, List

from .models import Holding, RealizedGain, SellTransaction

if TYPE_CHECKING:
    from folio.storage.repositories import RealizedGainsRepository


def on_sell(holding_before_sale: Holding, sell: SellTransaction) -> RealizedGain:
    """Build the realized gain record for a sell.

    The buy price is the holding's average cost immediately before the sale.
    Sale fees reduce the profit; they never touch the average cost.

    Args:
        holding_before_sale: Holding state just prior to folding the sell
        sell: The sell transaction being processed

    Returns:
        RealizedGain snapshot for this sale
    """
    buy_price = holding_before_sale.average_cost
    profit = (sell.price_per_share - buy_price) * sell.shares - sell.fees
    return RealizedGain(
        symbol=sell.symbol,
        shares=sell.shares,
        buy_price=buy_price,
        sell_price=sell.price_per_share,
        buy_date=holding_before_sale.created_at,
        sell_date=sell.date,
        profit=profit,
        transaction_id=sell.id,
    )


class RealizedGainsLedger:
    """Append-only record of completed sales.

    Records are snapshots: editing or deleting the originating sell does not
    revise them.
    """

    def __init__(self, repository: "RealizedGainsRepository") -> None:
        self._repository = repository

    def append(self, gain: RealizedGain) -> RealizedGain:
        self._repository.add(gain)
        return gain

    def all(self) -> List[RealizedGain]:
        return self._repository.get_all()

    def for_symbol(self, symbol: str) -> List[RealizedGain]:
        symbol = symbol.upper()
        return [g for g in self._repository.get_all() if g.symbol == symbol]

    def delete(self, gain_id: str) -> None:
        """Remove a record at the user's request."""
        self._repository.delete(gain_id)
