"""Holding reconciliation.

Recomputes a holding's shares and average cost from scratch over its full
ledger whenever the ledger changes.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from .cost_basis import OpeningPosition, derive_opening_position, fold_ledger
from .errors import ReconciliationError, ValidationError
from .models import CostHistoryPoint, Holding, Transaction

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """Outcome of recomputing one holding.

    Attributes:
        holding: Copy of the holding with shares and average cost updated
        history: Full cost-history series the holding was derived from
        opening: Opening position the ledger was folded over
    """
    holding: Holding
    history: List[CostHistoryPoint]
    opening: OpeningPosition


class HoldingReconciler:
    """Applies cost-basis engine output back onto holdings.

    The first time a holding is reconciled, the part of its position that
    predates the ledger is derived from the seeded shares and average cost and
    pinned on the holding. Later runs fold from the pinned opening so that
    recomputation never compounds earlier derivations.

    Mutations of one holding must be serialized with ``lock_for``.
    """

    def __init__(self, strict_seed: bool = False) -> None:
        self._strict_seed = strict_seed
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def lock_for(self, holding_id: str) -> threading.Lock:
        """Get the mutation lock for a holding."""
        with self._registry_lock:
            lock = self._locks.get(holding_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[holding_id] = lock
            return lock

    def forget(self, holding_id: str) -> None:
        """Drop the lock of a deleted holding."""
        with self._registry_lock:
            self._locks.pop(holding_id, None)

    def opening_for(self, holding: Holding, ledger: Sequence[Transaction]) -> OpeningPosition:
        """Return the opening position of a holding.

        Args:
            holding: Holding whose shares and average cost reflect ``ledger``
            ledger: Transactions already applied to the holding
        """
        if holding.has_pinned_opening:
            return OpeningPosition(holding.opening_shares, holding.opening_average_cost)
        return derive_opening_position(
            holding.shares, holding.average_cost, ledger, strict=self._strict_seed
        )

    def apply(
        self,
        holding: Holding,
        transactions: Sequence[Transaction],
        previous_transactions: Optional[Sequence[Transaction]] = None,
    ) -> ReconciliationResult:
        """Recompute a holding over a ledger that only gained transactions.

        Args:
            holding: Current holding record
            transactions: New full ledger
            previous_transactions: Ledger the holding currently reflects,
                defaults to ``transactions``

        Raises:
            ValidationError: If any sell in the new ledger is an over-sell
        """
        previous = transactions if previous_transactions is None else previous_transactions
        opening = self.opening_for(holding, previous)
        history = fold_ledger(opening.shares, opening.average_cost, transactions)
        final = history[-1]
        updated = replace(
            holding,
            shares=final.shares,
            average_cost=final.average_cost,
            opening_shares=opening.shares,
            opening_average_cost=opening.average_cost,
            updated_at=datetime.now(),
        )
        return ReconciliationResult(updated, history, opening)

    def reconcile(
        self,
        holding: Holding,
        transactions: Sequence[Transaction],
        previous_transactions: Optional[Sequence[Transaction]] = None,
    ) -> ReconciliationResult:
        """Recompute a holding after an edit or delete.

        Args:
            holding: Current holding record
            transactions: New full ledger
            previous_transactions: Ledger the holding currently reflects,
                defaults to ``transactions``

        Returns:
            ReconciliationResult with the updated holding copy

        Raises:
            ReconciliationError: If the edited ledger goes negative anywhere
        """
        try:
            result = self.apply(holding, transactions, previous_transactions)
        except ValidationError as exc:
            logger.warning(f"Reconciliation of {holding.symbol} rejected: {exc.message}")
            raise ReconciliationError(
                holding.id,
                f"Change would leave {holding.symbol} with negative shares: {exc.message}",
                transaction_id=exc.transaction_id,
            ) from exc

        logger.info(
            f"Reconciled {holding.symbol}: {result.holding.shares} shares "
            f"@ {result.holding.average_cost}"
        )
        return result
