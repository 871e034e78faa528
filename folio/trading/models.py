"""Data models for holdings, ledger transactions and realized gains."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional, Union
import uuid

from .errors import ValidationError, ValidationReason

ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Convert user or wire input to Decimal without float artefacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _new_id() -> str:
    return str(uuid.uuid4())


class TransactionType(Enum):
    """Side of a ledger transaction."""
    BUY = "buy"
    SELL = "sell"


class PointType(Enum):
    """Event that produced a cost-history point."""
    INITIAL = "initial"
    BUY = "buy"
    SELL = "sell"


class HoldingState(Enum):
    """Lifecycle state of a holding."""
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class Holding:
    """One tracked position per stock symbol.

    Attributes:
        symbol: Ticker symbol (e.g., "COMI")
        shares: Number of shares currently held
        average_cost: Weighted average cost per share
        current_price: Last known market price, informational only
        opening_shares: Shares that predate the ledger, pinned on first reconciliation
        opening_average_cost: Average cost of the opening shares
    """
    symbol: str
    shares: Decimal
    average_cost: Decimal
    current_price: Decimal = ZERO
    name: str = ""
    sector: str = ""
    notes: Optional[str] = None
    opening_shares: Optional[Decimal] = None
    opening_average_cost: Optional[Decimal] = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def state(self) -> HoldingState:
        return HoldingState.OPEN if self.shares > ZERO else HoldingState.CLOSED

    @property
    def is_closed(self) -> bool:
        return self.state is HoldingState.CLOSED

    @property
    def has_pinned_opening(self) -> bool:
        return self.opening_shares is not None and self.opening_average_cost is not None

    @property
    def total_cost(self) -> Decimal:
        """Calculate total cost basis for this holding."""
        return self.shares * self.average_cost

    @property
    def market_value(self) -> Decimal:
        return self.shares * self.current_price

    @property
    def unrealized_pnl(self) -> Decimal:
        return self.market_value - self.total_cost


@dataclass(frozen=True)
class _LedgerEntry:
    holding_id: str
    symbol: str
    shares: Decimal
    price_per_share: Decimal
    date: datetime
    fees: Decimal = ZERO
    notes: Optional[str] = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        if self.shares <= ZERO:
            raise ValidationError(
                ValidationReason.INVALID_QUANTITY,
                f"Shares must be greater than zero, got {self.shares}",
            )
        if self.price_per_share <= ZERO:
            raise ValidationError(
                ValidationReason.INVALID_PRICE,
                f"Price per share must be greater than zero, got {self.price_per_share}",
            )
        if self.fees < ZERO:
            raise ValidationError(
                ValidationReason.INVALID_FEES,
                f"Fees cannot be negative, got {self.fees}",
            )

    @property
    def gross_value(self) -> Decimal:
        """Shares times price, fees excluded."""
        return self.shares * self.price_per_share


@dataclass(frozen=True)
class BuyTransaction(_LedgerEntry):
    """A purchase of shares for one holding."""
    type: ClassVar[TransactionType] = TransactionType.BUY


@dataclass(frozen=True)
class SellTransaction(_LedgerEntry):
    """A sale of shares from one holding."""
    type: ClassVar[TransactionType] = TransactionType.SELL


Transaction = Union[BuyTransaction, SellTransaction]


def transaction_class(kind: TransactionType) -> type:
    """Return the concrete transaction class for a side."""
    if kind is TransactionType.BUY:
        return BuyTransaction
    return SellTransaction


@dataclass(frozen=True)
class CostHistoryPoint:
    """Engine state after one ledger event.

    Attributes:
        date: Timestamp of the event, None for the opening position
        shares: Running share count after the event
        average_cost: Running weighted average cost after the event
        type: Event that produced this point
        transaction_id: Originating transaction, None for the opening position
    """
    date: Optional[datetime]
    shares: Decimal
    average_cost: Decimal
    type: PointType
    transaction_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat() if self.date is not None else None,
            "shares": str(self.shares),
            "average_cost": str(self.average_cost),
            "type": self.type.value,
        }


@dataclass(frozen=True)
class RealizedGain:
    """A closed-lot record, snapshotted when a sell is processed.

    Attributes:
        symbol: Ticker symbol
        shares: Number of shares sold
        buy_price: Average cost per share just before the sale
        sell_price: Sale price per share
        buy_date: Date the holding was opened
        sell_date: Date of the sale
        profit: (sell_price - buy_price) * shares - sale fees
        transaction_id: Sell transaction this record came from
    """
    symbol: str
    shares: Decimal
    buy_price: Decimal
    sell_price: Decimal
    buy_date: datetime
    sell_date: datetime
    profit: Decimal
    transaction_id: Optional[str] = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_profitable(self) -> bool:
        return self.profit > ZERO
