"""Exception types raised by the cost-basis engine and its callers."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Optional


class ValidationReason(Enum):
    """Reason a transaction was rejected."""
    OVERSELL = "oversell"
    INVALID_QUANTITY = "invalid_quantity"
    INVALID_PRICE = "invalid_price"
    INVALID_FEES = "invalid_fees"


class FolioError(Exception):
    """Base class for all domain errors."""


class ValidationError(FolioError):
    """A transaction cannot be applied at its ledger position.

    Attributes:
        reason: Why the transaction was rejected
        transaction_id: Offending transaction, when known
        requested: Shares the sell asked for (over-sells only)
        available: Shares held at that ledger position (over-sells only)
    """

    def __init__(
        self,
        reason: ValidationReason,
        message: str,
        transaction_id: Optional[str] = None,
        requested: Optional[Decimal] = None,
        available: Optional[Decimal] = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.transaction_id = transaction_id
        self.requested = requested
        self.available = available


class ReconciliationError(FolioError):
    """Recomputing a holding from its edited ledger produced negative shares."""

    def __init__(self, holding_id: str, message: str, transaction_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.holding_id = holding_id
        self.message = message
        self.transaction_id = transaction_id


class InconsistentSeedError(FolioError):
    """The ledger implies more shares than the seeded position holds."""

    def __init__(self, initial_shares: Decimal, ledger_shares: Decimal) -> None:
        super().__init__(
            f"Ledger implies {ledger_shares} shares but the seeded position holds {initial_shares}"
        )
        self.initial_shares = initial_shares
        self.ledger_shares = ledger_shares


class HoldingNotFoundError(FolioError, KeyError):
    """No holding exists with the requested id."""

    def __str__(self) -> str:
        return f"Holding not found: {self.args[0]}"


class TransactionNotFoundError(FolioError, KeyError):
    """No transaction exists with the requested id."""

    def __str__(self) -> str:
        return f"Transaction not found: {self.args[0]}"
