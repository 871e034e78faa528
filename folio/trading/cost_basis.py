"""Cost-basis engine using the weighted average cost method.

Pure functions over in-memory ledgers. Nothing here reads storage or keeps
state between calls; every input is passed explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Sequence

from .errors import InconsistentSeedError, TransactionNotFoundError, ValidationError, ValidationReason
from .models import ZERO, BuyTransaction, CostHistoryPoint, PointType, Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpeningPosition:
    """Position that predates the ledger.

    Attributes:
        shares: Shares held before the first ledger transaction
        average_cost: Average cost per share of those shares
    """
    shares: Decimal
    average_cost: Decimal


EMPTY_POSITION = OpeningPosition(ZERO, ZERO)


def sort_ledger(transactions: Iterable[Transaction]) -> List[Transaction]:
    """Return transactions in chronological order (stable for equal dates)."""
    return sorted(transactions, key=lambda t: t.date)


def derive_opening_position(
    initial_shares: Decimal,
    initial_average_cost: Decimal,
    transactions: Sequence[Transaction],
    strict: bool = False,
) -> OpeningPosition:
    """Reconstruct the part of a seeded position not explained by its ledger.

    A holding may be seeded with a share count that already includes some of
    its transactions. The shares the ledger does not account for are the
    pre-existing shares, and their implied average cost is whatever is left of
    the seeded total cost after removing the ledger's purchases.

    Args:
        initial_shares: Seeded share count (may include the ledger)
        initial_average_cost: Seeded average cost per share
        transactions: Full ledger for the holding, in any order
        strict: Raise InconsistentSeedError instead of clamping

    Returns:
        OpeningPosition with pre-existing shares and their average cost

    Raises:
        InconsistentSeedError: If strict and the ledger implies more shares
            than were seeded
    """
    bought = ZERO
    sold = ZERO
    total_buy_cost = ZERO
    for txn in transactions:
        if isinstance(txn, BuyTransaction):
            bought += txn.shares
            total_buy_cost += txn.gross_value
        else:
            sold += txn.shares

    ledger_shares = bought - sold
    pre_existing = initial_shares - ledger_shares

    if pre_existing < ZERO:
        if strict:
            raise InconsistentSeedError(initial_shares, ledger_shares)
        logger.warning(
            f"Seeded position of {initial_shares} shares is smaller than the "
            f"{ledger_shares} shares implied by the ledger; ignoring pre-existing shares"
        )
        return EMPTY_POSITION
    if pre_existing == ZERO:
        return EMPTY_POSITION

    pre_avg_cost = (initial_average_cost * initial_shares - total_buy_cost) / pre_existing
    if pre_avg_cost < ZERO:
        pre_avg_cost = ZERO
    return OpeningPosition(pre_existing, pre_avg_cost)


def fold_ledger(
    opening_shares: Decimal,
    opening_average_cost: Decimal,
    transactions: Sequence[Transaction],
) -> List[CostHistoryPoint]:
    """Fold a ledger over an opening position.

    Buys add their gross value (fees excluded) to the running cost. Sells
    reduce the running cost in proportion to the shares removed, which keeps
    the average cost of the remaining shares unchanged.

    Args:
        opening_shares: Shares held before the first transaction
        opening_average_cost: Average cost of the opening shares
        transactions: Ledger for one holding, in any order

    Returns:
        One point per transaction in chronological order, preceded by an
        initial point when the opening position holds shares or the ledger
        is empty

    Raises:
        ValidationError: If a sell exceeds the shares held at its position
    """
    ordered = sort_ledger(transactions)
    points: List[CostHistoryPoint] = []

    running_shares = opening_shares
    running_cost = opening_shares * opening_average_cost

    if opening_shares > ZERO or not ordered:
        points.append(CostHistoryPoint(
            date=None,
            shares=opening_shares,
            average_cost=opening_average_cost,
            type=PointType.INITIAL,
        ))

    for txn in ordered:
        if isinstance(txn, BuyTransaction):
            running_cost += txn.gross_value
            running_shares += txn.shares
            point_type = PointType.BUY
        else:
            if txn.shares > running_shares:
                raise ValidationError(
                    ValidationReason.OVERSELL,
                    f"Cannot sell {txn.shares} {txn.symbol} shares on "
                    f"{txn.date.date().isoformat()}: only {running_shares} held",
                    transaction_id=txn.id,
                    requested=txn.shares,
                    available=running_shares,
                )
            remaining = running_shares - txn.shares
            running_cost = running_cost * remaining / running_shares
            running_shares = remaining
            point_type = PointType.SELL

        average_cost = running_cost / running_shares if running_shares > ZERO else ZERO
        points.append(CostHistoryPoint(
            date=txn.date,
            shares=running_shares,
            average_cost=average_cost,
            type=point_type,
            transaction_id=txn.id,
        ))

    return points


def compute_cost_history(
    initial_shares: Decimal,
    initial_average_cost: Decimal,
    transactions: Sequence[Transaction],
    strict: bool = False,
) -> List[CostHistoryPoint]:
    """Compute the cost history for a seeded holding and its ledger.

    Args:
        initial_shares: Seeded share count (may include the ledger)
        initial_average_cost: Seeded average cost per share
        transactions: Full ledger for the holding, in any order
        strict: Raise InconsistentSeedError instead of clamping

    Returns:
        Ordered cost-history points
    """
    opening = derive_opening_position(initial_shares, initial_average_cost, transactions, strict=strict)
    return fold_ledger(opening.shares, opening.average_cost, transactions)


def position_before(points: Sequence[CostHistoryPoint], transaction_id: str) -> CostHistoryPoint:
    """Return the engine state just before a transaction was folded."""
    for index, point in enumerate(points):
        if point.transaction_id == transaction_id:
            if index == 0:
                return CostHistoryPoint(None, ZERO, ZERO, PointType.INITIAL)
            return points[index - 1]
    raise TransactionNotFoundError(transaction_id)
