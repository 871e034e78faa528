"""Summaries over realized gains and holdings."""

import csv
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Sequence

from .models import ZERO, Holding, RealizedGain

HUNDRED = Decimal("100")
CENT = Decimal("0.01")


@dataclass
class RealizedGainsSummary:
    """Totals shown at the top of the realized gains screen.

    Attributes:
        total_profit: Sum of profit over all records
        profitable_count: Records with positive profit
        loss_count: Records with negative profit
        total_trades: Number of records
        win_rate: Percentage of profitable records (0-100)
    """
    total_profit: Decimal
    profitable_count: int
    loss_count: int
    total_trades: int
    win_rate: Decimal


@dataclass
class PortfolioSummary:
    """Market value versus cost basis across holdings."""
    total_value: Decimal
    total_cost: Decimal
    total_pl: Decimal
    total_pl_percent: Decimal
    holdings_count: int


def summarize_realized_gains(gains: Sequence[RealizedGain]) -> RealizedGainsSummary:
    total_profit = sum((g.profit for g in gains), ZERO)
    profitable = sum(1 for g in gains if g.profit > ZERO)
    losses = sum(1 for g in gains if g.profit < ZERO)
    total = len(gains)
    win_rate = Decimal(profitable) / Decimal(total) * HUNDRED if total else ZERO
    return RealizedGainsSummary(
        total_profit=total_profit,
        profitable_count=profitable,
        loss_count=losses,
        total_trades=total,
        win_rate=win_rate,
    )


def gain_percent(gain: RealizedGain) -> Decimal:
    """Price change of a sale relative to its cost basis, in percent."""
    if gain.buy_price <= ZERO:
        return ZERO
    return (gain.sell_price - gain.buy_price) / gain.buy_price * HUNDRED


def sort_by_sell_date(gains: Sequence[RealizedGain], descending: bool = True) -> List[RealizedGain]:
    return sorted(gains, key=lambda g: g.sell_date, reverse=descending)


def summarize_portfolio(holdings: Sequence[Holding]) -> PortfolioSummary:
    """Calculate value, cost and unrealized P/L over open holdings."""
    open_holdings = [h for h in holdings if not h.is_closed]
    total_value = sum((h.market_value for h in open_holdings), ZERO)
    total_cost = sum((h.total_cost for h in open_holdings), ZERO)
    total_pl = total_value - total_cost
    total_pl_percent = total_pl / total_cost * HUNDRED if total_cost > ZERO else ZERO
    return PortfolioSummary(
        total_value=total_value,
        total_cost=total_cost,
        total_pl=total_pl,
        total_pl_percent=total_pl_percent,
        holdings_count=len(open_holdings),
    )


def allocation_by_sector(holdings: Sequence[Holding]) -> Dict[str, Decimal]:
    """Market value per sector, largest first."""
    totals: Dict[str, Decimal] = {}
    for h in holdings:
        if h.is_closed:
            continue
        sector = h.sector or "Other"
        totals[sector] = totals.get(sector, ZERO) + h.market_value
    return dict(sorted(totals.items(), key=lambda kv: kv[1], reverse=True))


def format_money(value: Decimal, currency: str = "") -> str:
    """Two-decimal display string with thousands separators."""
    text = f"{value.quantize(CENT):,}"
    return f"{currency} {text}" if currency else text


def export_realized_gains_csv(gains: Sequence[RealizedGain], filepath: str) -> None:
    """Export realized gains to a CSV file.

    Args:
        gains: Records to export
        filepath: Path to output CSV file
    """
    fieldnames = [
        "id", "symbol", "shares", "buy_price", "sell_price",
        "buy_date", "sell_date", "profit", "transaction_id",
    ]

    with open(filepath, "w", newline="", encoding="utf-8") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=fieldnames)
        writer.writeheader()

        for gain in gains:
            writer.writerow({
                "id": gain.id,
                "symbol": gain.symbol,
                "shares": str(gain.shares),
                "buy_price": str(gain.buy_price),
                "sell_price": str(gain.sell_price),
                "buy_date": gain.buy_date.date().isoformat(),
                "sell_date": gain.sell_date.date().isoformat(),
                "profit": str(gain.profit),
                "transaction_id": gain.transaction_id or "",
            })
