"""Portfolio service: the entry point screens use to change holdings.

Every ledger mutation runs read-ledger, recompute, write-holding and
write-ledger to completion under the holding's lock before returning.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional

from folio.config import AppSettings
from folio.data.providers import IPriceProvider
from folio.storage.repositories import (
    HoldingsRepository,
    RealizedGainsRepository,
    TransactionsRepository,
    gain_from_dict,
    gain_to_dict,
    holding_from_dict,
    holding_to_dict,
    transaction_from_dict,
    transaction_to_dict,
)
from folio.storage.storage import IStorageService

from .cost_basis import position_before
from .errors import FolioError, ValidationError, ValidationReason
from .importer import IMPORT_NOTE, parse_rows
from .models import (
    ZERO,
    BuyTransaction,
    CostHistoryPoint,
    Holding,
    RealizedGain,
    SellTransaction,
    Transaction,
    transaction_class,
    to_decimal,
)
from .realized import RealizedGainsLedger, on_sell
from .reconciler import HoldingReconciler, ReconciliationResult

logger = logging.getLogger(__name__)

PRICE_CHANGE_THRESHOLD = Decimal("0.01")


@dataclass
class SellResult:
    """Outcome of a sell.

    Attributes:
        transaction: The recorded sell
        realized_gain: Gain snapshot appended for the sale
        holding: Holding after the sale, None if it was closed and removed
    """
    transaction: SellTransaction
    realized_gain: RealizedGain
    holding: Optional[Holding]


class IPortfolioService(ABC):
    """Interface for holding and ledger operations."""

    @abstractmethod
    def get_holdings(self, include_closed: bool = False) -> List[Holding]:
        """Get tracked holdings."""
        ...

    @abstractmethod
    def get_transactions(self, holding_id: str) -> List[Transaction]:
        """Get a holding's ledger in chronological order."""
        ...

    @abstractmethod
    def buy(self, holding_id: str, shares: Decimal, price_per_share: Decimal,
            fees: Decimal = ZERO, date: Optional[datetime] = None,
            notes: Optional[str] = None) -> BuyTransaction:
        """Record a buy and reconcile the holding."""
        ...

    @abstractmethod
    def sell(self, holding_id: str, shares: Decimal, price_per_share: Decimal,
             fees: Decimal = ZERO, date: Optional[datetime] = None,
             notes: Optional[str] = None) -> SellResult:
        """Record a sell, reconcile the holding and append its realized gain."""
        ...

    @abstractmethod
    def update_transaction(self, transaction_id: str, shares: Optional[Decimal] = None,
                           price_per_share: Optional[Decimal] = None,
                           fees: Optional[Decimal] = None) -> Transaction:
        """Edit shares, price or fees of a recorded transaction."""
        ...

    @abstractmethod
    def delete_transaction(self, transaction_id: str) -> None:
        """Delete a recorded transaction."""
        ...

    @abstractmethod
    def cost_history(self, holding_id: str) -> List[CostHistoryPoint]:
        """Get the cost-history series for display."""
        ...


class PortfolioService(IPortfolioService):
    """Concrete portfolio service backed by key-value list storage.

    Uses the weighted average cost method for every holding.
    """

    def __init__(
        self,
        storage: IStorageService,
        settings: Optional[AppSettings] = None,
        reconciler: Optional[HoldingReconciler] = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._holdings = HoldingsRepository(storage)
        self._transactions = TransactionsRepository(storage)
        self._gains_repository = RealizedGainsRepository(storage)
        self._gains = RealizedGainsLedger(self._gains_repository)
        self._reconciler = reconciler or HoldingReconciler(strict_seed=self._settings.strict_seed)
        # Paired writes across the shared lists of holdings, ledgers and gains.
        self._write_lock = threading.RLock()

    @property
    def settings(self) -> AppSettings:
        return self._settings

    # -- queries ---------------------------------------------------------

    def get_holdings(self, include_closed: bool = False) -> List[Holding]:
        holdings = self._holdings.get_all()
        if include_closed:
            return holdings
        return [h for h in holdings if not h.is_closed]

    def get_holding(self, holding_id: str) -> Holding:
        return self._holdings.get(holding_id)

    def find_holding(self, symbol: str) -> Optional[Holding]:
        return self._holdings.find_by_symbol(symbol)

    def get_transactions(self, holding_id: str) -> List[Transaction]:
        return sorted(self._transactions.get_by_holding(holding_id), key=lambda t: t.date)

    def get_all_transactions(self) -> List[Transaction]:
        return self._transactions.get_all()

    def get_realized_gains(self, symbol: Optional[str] = None) -> List[RealizedGain]:
        if symbol:
            return self._gains.for_symbol(symbol)
        return self._gains.all()

    def delete_realized_gain(self, gain_id: str) -> None:
        self._gains.delete(gain_id)

    def cost_history(self, holding_id: str) -> List[CostHistoryPoint]:
        holding = self._holdings.get(holding_id)
        ledger = self._transactions.get_by_holding(holding_id)
        return self._reconciler.apply(holding, ledger).history

    # -- holdings --------------------------------------------------------

    def add_holding(
        self,
        symbol: str,
        shares: Decimal = ZERO,
        average_cost: Decimal = ZERO,
        name: str = "",
        sector: str = "",
        current_price: Decimal = ZERO,
        notes: Optional[str] = None,
    ) -> Holding:
        """Create a holding seeded with a position that predates its ledger.

        Raises:
            ValidationError: If shares or average cost is negative
            ValueError: If the symbol is already tracked
        """
        symbol = symbol.strip().upper()
        shares = to_decimal(shares)
        average_cost = to_decimal(average_cost)
        if not symbol:
            raise ValueError("Symbol is required")
        if shares < ZERO:
            raise ValidationError(ValidationReason.INVALID_QUANTITY, "Shares cannot be negative")
        if average_cost < ZERO:
            raise ValidationError(ValidationReason.INVALID_PRICE, "Average cost cannot be negative")

        holding = Holding(
            symbol=symbol,
            shares=shares,
            average_cost=average_cost,
            current_price=to_decimal(current_price),
            name=name,
            sector=sector,
            notes=notes,
            opening_shares=shares,
            opening_average_cost=average_cost,
        )
        with self._write_lock:
            if self._holdings.find_by_symbol(symbol) is not None:
                raise ValueError(f"{symbol} is already tracked")
            self._holdings.add(holding)
        logger.info(f"Added holding {symbol}: {shares} shares @ {average_cost}")
        return holding

    def delete_holding(self, holding_id: str) -> None:
        """Remove a holding together with its ledger."""
        with self._reconciler.lock_for(holding_id):
            holding = self._holdings.get(holding_id)
            with self._write_lock:
                self._transactions.delete_by_holding(holding_id)
                self._holdings.delete(holding_id)
        self._reconciler.forget(holding_id)
        logger.info(f"Deleted holding {holding.symbol}")

    def reset(self, seed_holdings: Iterable[Mapping[str, Any]]) -> List[Holding]:
        """Replace all holdings and transactions with a fresh seed.

        Realized gains are kept.

        Args:
            seed_holdings: Mappings with symbol, shares, average_cost and
                optionally name and sector
        """
        with self._write_lock:
            for holding in self._holdings.get_all():
                self._reconciler.forget(holding.id)
            self._holdings.clear()
            self._transactions.clear()
        created = [
            self.add_holding(
                seed["symbol"],
                seed.get("shares", ZERO),
                seed.get("average_cost", ZERO),
                name=seed.get("name", ""),
                sector=seed.get("sector", ""),
            )
            for seed in seed_holdings
        ]
        logger.info(f"Portfolio reset with {len(created)} holdings")
        return created

    # -- ledger mutations ------------------------------------------------

    def _new_transaction(self, cls: type, holding: Holding, shares, price_per_share, fees,
                         date: Optional[datetime], notes: Optional[str]) -> Transaction:
        return cls(
            holding_id=holding.id,
            symbol=holding.symbol,
            shares=to_decimal(shares),
            price_per_share=to_decimal(price_per_share),
            fees=to_decimal(fees),
            date=date or datetime.now(),
            notes=notes,
        )

    def _store_after_sell(self, holding: Holding) -> Optional[Holding]:
        """Persist a holding after a sell, removing it with its ledger if it closed."""
        if holding.is_closed and self._settings.remove_closed_holdings:
            self._transactions.delete_by_holding(holding.id)
            self._holdings.delete(holding.id)
            self._reconciler.forget(holding.id)
            logger.info(f"{holding.symbol} closed and removed")
            return None
        self._holdings.update(holding)
        return holding

    def _gains_for(self, result: ReconciliationResult, sells: List[SellTransaction]) -> List[RealizedGain]:
        gains = []
        for sell in sells:
            before = position_before(result.history, sell.id)
            snapshot = replace(result.holding, shares=before.shares, average_cost=before.average_cost)
            gains.append(on_sell(snapshot, sell))
        return gains

    def buy(self, holding_id: str, shares: Decimal, price_per_share: Decimal,
            fees: Decimal = ZERO, date: Optional[datetime] = None,
            notes: Optional[str] = None) -> BuyTransaction:
        with self._reconciler.lock_for(holding_id):
            holding = self._holdings.get(holding_id)
            txn = self._new_transaction(BuyTransaction, holding, shares, price_per_share, fees, date, notes)
            previous = self._transactions.get_by_holding(holding_id)
            result = self._reconciler.apply(holding, previous + [txn], previous)

            with self._write_lock:
                self._transactions.add(txn)
                self._holdings.update(result.holding)
        logger.info(f"Bought {txn.shares} {txn.symbol} at {txn.price_per_share}")
        return txn

    def buy_symbol(self, symbol: str, shares: Decimal, price_per_share: Decimal,
                   fees: Decimal = ZERO, date: Optional[datetime] = None,
                   notes: Optional[str] = None, name: str = "", sector: str = "") -> BuyTransaction:
        """Buy by symbol, creating the holding if it is not tracked."""
        holding = self._holdings.find_by_symbol(symbol)
        if holding is None:
            holding = self.add_holding(symbol, name=name, sector=sector)
        return self.buy(holding.id, shares, price_per_share, fees, date, notes)

    def sell(self, holding_id: str, shares: Decimal, price_per_share: Decimal,
             fees: Decimal = ZERO, date: Optional[datetime] = None,
             notes: Optional[str] = None) -> SellResult:
        """Record a sell.

        The sell is checked at its chronological position, so a back-dated
        sell cannot take an earlier point of the ledger below zero.

        Raises:
            ValidationError: On an over-sell; nothing is written
        """
        with self._reconciler.lock_for(holding_id):
            holding = self._holdings.get(holding_id)
            txn = self._new_transaction(SellTransaction, holding, shares, price_per_share, fees, date, notes)
            previous = self._transactions.get_by_holding(holding_id)
            result = self._reconciler.apply(holding, previous + [txn], previous)
            gain, = self._gains_for(result, [txn])

            with self._write_lock:
                self._transactions.add(txn)
                self._gains.append(gain)
                stored = self._store_after_sell(result.holding)
        logger.info(f"Sold {txn.shares} {txn.symbol} at {txn.price_per_share}, profit {gain.profit}")
        return SellResult(transaction=txn, realized_gain=gain, holding=stored)

    def update_transaction(self, transaction_id: str, shares: Optional[Decimal] = None,
                           price_per_share: Optional[Decimal] = None,
                           fees: Optional[Decimal] = None) -> Transaction:
        """Edit a transaction. Type and holding cannot change.

        Realized gains already recorded for a sell are not revised.

        Raises:
            ReconciliationError: If the edit makes any sell an over-sell;
                nothing is written
        """
        holding_id = self._transactions.get(transaction_id).holding_id
        with self._reconciler.lock_for(holding_id):
            txn = self._transactions.get(transaction_id)
            changes: Dict[str, Decimal] = {}
            if shares is not None:
                changes["shares"] = to_decimal(shares)
            if price_per_share is not None:
                changes["price_per_share"] = to_decimal(price_per_share)
            if fees is not None:
                changes["fees"] = to_decimal(fees)
            edited = replace(txn, **changes)

            holding = self._holdings.get(holding_id)
            previous = self._transactions.get_by_holding(holding_id)
            ledger = [edited if t.id == transaction_id else t for t in previous]
            result = self._reconciler.reconcile(holding, ledger, previous)

            with self._write_lock:
                self._transactions.update(edited)
                self._holdings.update(result.holding)
        return edited

    def delete_transaction(self, transaction_id: str) -> None:
        """Delete a transaction and recompute its holding from scratch.

        Raises:
            ReconciliationError: If removing it leaves a later sell
                uncovered; nothing is written
        """
        holding_id = self._transactions.get(transaction_id).holding_id
        with self._reconciler.lock_for(holding_id):
            holding = self._holdings.get(holding_id)
            previous = self._transactions.get_by_holding(holding_id)
            ledger = [t for t in previous if t.id != transaction_id]
            result = self._reconciler.reconcile(holding, ledger, previous)

            with self._write_lock:
                self._transactions.delete(transaction_id)
                self._holdings.update(result.holding)

    def import_transactions(self, holding_id: str, rows: Iterable[Mapping[str, Any]]) -> List[Transaction]:
        """Import extracted broker rows as one all-or-nothing batch.

        Raises:
            ValidationError: If a row is malformed or the batch over-sells
        """
        parsed = parse_rows(rows)
        with self._reconciler.lock_for(holding_id):
            holding = self._holdings.get(holding_id)
            imported: List[Transaction] = [
                self._new_transaction(
                    transaction_class(row.type), holding, row.shares, row.price, ZERO, row.date, IMPORT_NOTE
                )
                for row in parsed
            ]
            previous = self._transactions.get_by_holding(holding_id)
            result = self._reconciler.apply(holding, previous + imported, previous)
            gains = self._gains_for(result, [t for t in imported if isinstance(t, SellTransaction)])

            with self._write_lock:
                self._transactions.add_many(imported)
                self._holdings.update(result.holding)
                for gain in gains:
                    self._gains.append(gain)
        logger.info(f"Imported {len(imported)} transaction(s) for {holding.symbol}")
        return imported

    # -- prices ----------------------------------------------------------

    def refresh_prices(self, provider: IPriceProvider) -> int:
        """Update current prices that moved by more than one cent.

        Returns:
            Number of holdings updated
        """
        holdings = self.get_holdings()
        if not holdings:
            return 0
        prices = provider.fetch_prices([h.symbol for h in holdings])
        updated = 0
        for holding in holdings:
            price = prices.get(holding.symbol)
            if price is None:
                continue
            with self._reconciler.lock_for(holding.id):
                current = self._holdings.get(holding.id)
                if abs(current.current_price - price) > PRICE_CHANGE_THRESHOLD:
                    self._holdings.update(replace(current, current_price=price, updated_at=datetime.now()))
                    updated += 1
        logger.info(f"Updated {updated} prices")
        return updated

    # -- backup ----------------------------------------------------------

    def restore(self, backup: "PortfolioBackup") -> None:
        """Replace holdings, transactions and realized gains with a backup."""
        with self._write_lock:
            self._holdings.replace_all(backup.holdings)
            self._transactions.replace_all(backup.transactions)
            self._gains_repository.replace_all(backup.realized_gains)
        logger.info(
            f"Restored {len(backup.holdings)} holdings, {len(backup.transactions)} transactions, "
            f"{len(backup.realized_gains)} realized gains"
        )


@dataclass
class PortfolioBackup:
    """Decoded contents of a backup file."""
    holdings: List[Holding]
    transactions: List[Transaction]
    realized_gains: List[RealizedGain]


class PortfolioSerializer:
    """Serializer for portfolio state to/from JSON-compatible dictionaries."""

    @staticmethod
    def serialize(service: PortfolioService) -> dict:
        """Serialize holdings, transactions and realized gains.

        Args:
            service: Portfolio service to export

        Returns:
            Dictionary containing the full backup
        """
        return {
            "holdings": [holding_to_dict(h) for h in service.get_holdings(include_closed=True)],
            "transactions": [transaction_to_dict(t) for t in service.get_all_transactions()],
            "realized_gains": [gain_to_dict(g) for g in service.get_realized_gains()],
            "exported_at": datetime.now().isoformat(),
        }

    @staticmethod
    def deserialize(data: dict) -> PortfolioBackup:
        """Decode a backup dictionary.

        Raises:
            ValueError: If the backup is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("Invalid backup file format")
        try:
            return PortfolioBackup(
                holdings=[holding_from_dict(h) for h in data.get("holdings", [])],
                transactions=[transaction_from_dict(t) for t in data.get("transactions", [])],
                realized_gains=[gain_from_dict(g) for g in data.get("realized_gains", [])],
            )
        except (KeyError, TypeError, ValueError, InvalidOperation, FolioError) as e:
            raise ValueError("Invalid backup file format") from e
