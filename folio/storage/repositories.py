"""Key-value list repositories for holdings, transactions and realized gains.

Each repository keeps one JSON list under a fixed storage key. Decimals are
stored as strings and datetimes as ISO-8601 strings.
"""

from __future__ import annotations

import threading
import weakref
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from folio.storage.storage import IStorageService
from folio.trading.errors import HoldingNotFoundError, TransactionNotFoundError
from folio.trading.models import (
    Holding,
    RealizedGain,
    Transaction,
    TransactionType,
    transaction_class,
)

HOLDINGS_KEY = "holdings"
TRANSACTIONS_KEY = "transactions"
REALIZED_GAINS_KEY = "realized_gains"

T = TypeVar("T")

_key_locks: "weakref.WeakKeyDictionary[IStorageService, Dict[str, threading.RLock]]" = weakref.WeakKeyDictionary()
_key_locks_guard = threading.Lock()


def _key_lock(storage: IStorageService, key: str) -> threading.RLock:
    with _key_locks_guard:
        locks = _key_locks.setdefault(storage, {})
        if key not in locks:
            locks[key] = threading.RLock()
        return locks[key]


def _dec(value: Optional[str]) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


def _str_or_none(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def holding_to_dict(holding: Holding) -> Dict[str, Any]:
    return {
        "id": holding.id,
        "symbol": holding.symbol,
        "name": holding.name,
        "sector": holding.sector,
        "shares": str(holding.shares),
        "average_cost": str(holding.average_cost),
        "current_price": str(holding.current_price),
        "opening_shares": _str_or_none(holding.opening_shares),
        "opening_average_cost": _str_or_none(holding.opening_average_cost),
        "notes": holding.notes,
        "created_at": holding.created_at.isoformat(),
        "updated_at": holding.updated_at.isoformat(),
    }


def holding_from_dict(data: Dict[str, Any]) -> Holding:
    return Holding(
        id=data["id"],
        symbol=data["symbol"],
        name=data.get("name", ""),
        sector=data.get("sector", ""),
        shares=Decimal(str(data["shares"])),
        average_cost=Decimal(str(data["average_cost"])),
        current_price=Decimal(str(data.get("current_price", "0"))),
        opening_shares=_dec(data.get("opening_shares")),
        opening_average_cost=_dec(data.get("opening_average_cost")),
        notes=data.get("notes"),
        created_at=datetime.fromisoformat(data["created_at"]),
        updated_at=datetime.fromisoformat(data.get("updated_at", data["created_at"])),
    )


def transaction_to_dict(txn: Transaction) -> Dict[str, Any]:
    return {
        "id": txn.id,
        "holding_id": txn.holding_id,
        "symbol": txn.symbol,
        "type": txn.type.value,
        "shares": str(txn.shares),
        "price_per_share": str(txn.price_per_share),
        "fees": str(txn.fees),
        "date": txn.date.isoformat(),
        "notes": txn.notes,
        "created_at": txn.created_at.isoformat(),
    }


def transaction_from_dict(data: Dict[str, Any]) -> Transaction:
    cls = transaction_class(TransactionType(data["type"]))
    return cls(
        id=data["id"],
        holding_id=data["holding_id"],
        symbol=data["symbol"],
        shares=Decimal(str(data["shares"])),
        price_per_share=Decimal(str(data["price_per_share"])),
        fees=Decimal(str(data.get("fees", "0"))),
        date=datetime.fromisoformat(data["date"]),
        notes=data.get("notes"),
        created_at=datetime.fromisoformat(data.get("created_at", data["date"])),
    )


def gain_to_dict(gain: RealizedGain) -> Dict[str, Any]:
    return {
        "id": gain.id,
        "symbol": gain.symbol,
        "shares": str(gain.shares),
        "buy_price": str(gain.buy_price),
        "sell_price": str(gain.sell_price),
        "buy_date": gain.buy_date.isoformat(),
        "sell_date": gain.sell_date.isoformat(),
        "profit": str(gain.profit),
        "transaction_id": gain.transaction_id,
        "created_at": gain.created_at.isoformat(),
    }


def gain_from_dict(data: Dict[str, Any]) -> RealizedGain:
    return RealizedGain(
        id=data["id"],
        symbol=data["symbol"],
        shares=Decimal(str(data["shares"])),
        buy_price=Decimal(str(data["buy_price"])),
        sell_price=Decimal(str(data["sell_price"])),
        buy_date=datetime.fromisoformat(data["buy_date"]),
        sell_date=datetime.fromisoformat(data["sell_date"]),
        profit=Decimal(str(data["profit"])),
        transaction_id=data.get("transaction_id"),
        created_at=datetime.fromisoformat(data.get("created_at", data["sell_date"])),
    )


class _ListRepository(Generic[T]):
    """One JSON list of records under a storage key.

    Every read-modify-write of the list runs under one lock per storage and
    key, so repositories sharing a storage never drop each other's writes.
    """

    key: str = ""

    def __init__(
        self,
        storage: IStorageService,
        encode: Callable[[T], Dict[str, Any]],
        decode: Callable[[Dict[str, Any]], T],
    ) -> None:
        self._storage = storage
        self._encode = encode
        self._decode = decode
        self._lock = _key_lock(storage, self.key)

    def get_all(self) -> List[T]:
        data = self._storage.load(self.key)
        if not isinstance(data, list):
            return []
        return [self._decode(item) for item in data]

    def replace_all(self, items: List[T]) -> None:
        with self._lock:
            self._storage.save(self.key, [self._encode(item) for item in items])

    def clear(self) -> None:
        with self._lock:
            self._storage.delete(self.key)

    def find(self, item_id: str) -> Optional[T]:
        for item in self.get_all():
            if item.id == item_id:  # type: ignore[attr-defined]
                return item
        return None

    def add(self, item: T) -> T:
        self.add_many([item])
        return item

    def add_many(self, new_items: Iterable[T]) -> None:
        with self._lock:
            items = self.get_all()
            items.extend(new_items)
            self.replace_all(items)

    def update(self, item: T) -> T:
        with self._lock:
            items = self.get_all()
            for index, existing in enumerate(items):
                if existing.id == item.id:  # type: ignore[attr-defined]
                    items[index] = item
                    self.replace_all(items)
                    return item
        raise self._not_found(item.id)  # type: ignore[attr-defined]

    def delete(self, item_id: str) -> None:
        self.delete_where(lambda i: i.id == item_id)  # type: ignore[attr-defined]

    def delete_where(self, predicate: Callable[[T], bool]) -> None:
        with self._lock:
            self.replace_all([i for i in self.get_all() if not predicate(i)])

    def _not_found(self, item_id: str) -> Exception:
        return KeyError(item_id)


class HoldingsRepository(_ListRepository[Holding]):
    key = HOLDINGS_KEY

    def __init__(self, storage: IStorageService) -> None:
        super().__init__(storage, holding_to_dict, holding_from_dict)

    def get(self, holding_id: str) -> Holding:
        holding = self.find(holding_id)
        if holding is None:
            raise HoldingNotFoundError(holding_id)
        return holding

    def find_by_symbol(self, symbol: str) -> Optional[Holding]:
        symbol = symbol.upper()
        for holding in self.get_all():
            if holding.symbol == symbol:
                return holding
        return None

    def _not_found(self, item_id: str) -> Exception:
        return HoldingNotFoundError(item_id)


class TransactionsRepository(_ListRepository[Transaction]):
    key = TRANSACTIONS_KEY

    def __init__(self, storage: IStorageService) -> None:
        super().__init__(storage, transaction_to_dict, transaction_from_dict)

    def get(self, transaction_id: str) -> Transaction:
        txn = self.find(transaction_id)
        if txn is None:
            raise TransactionNotFoundError(transaction_id)
        return txn

    def get_by_holding(self, holding_id: str) -> List[Transaction]:
        return [t for t in self.get_all() if t.holding_id == holding_id]

    def delete_by_holding(self, holding_id: str) -> None:
        self.delete_where(lambda t: t.holding_id == holding_id)

    def _not_found(self, item_id: str) -> Exception:
        return TransactionNotFoundError(item_id)


class RealizedGainsRepository(_ListRepository[RealizedGain]):
    key = REALIZED_GAINS_KEY

    def __init__(self, storage: IStorageService) -> None:
        super().__init__(storage, gain_to_dict, gain_from_dict)
