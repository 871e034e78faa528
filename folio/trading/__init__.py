# Trading module
"""Cost-basis engine, holding reconciliation, realized gains and analytics."""

from .models import (
    Holding,
    HoldingState,
    BuyTransaction,
    SellTransaction,
    Transaction,
    TransactionType,
    CostHistoryPoint,
    PointType,
    RealizedGain,
)
from .errors import (
    FolioError,
    ValidationError,
    ValidationReason,
    ReconciliationError,
    InconsistentSeedError,
    HoldingNotFoundError,
    TransactionNotFoundError,
)
from .cost_basis import (
    OpeningPosition,
    compute_cost_history,
    derive_opening_position,
    fold_ledger,
    position_before,
)
from .reconciler import HoldingReconciler, ReconciliationResult
from .realized import RealizedGainsLedger, on_sell

__all__ = [
    "Holding",
    "HoldingState",
    "BuyTransaction",
    "SellTransaction",
    "Transaction",
    "TransactionType",
    "CostHistoryPoint",
    "PointType",
    "RealizedGain",
    "FolioError",
    "ValidationError",
    "ValidationReason",
    "ReconciliationError",
    "InconsistentSeedError",
    "HoldingNotFoundError",
    "TransactionNotFoundError",
    "OpeningPosition",
    "compute_cost_history",
    "derive_opening_position",
    "fold_ledger",
    "position_before",
    "HoldingReconciler",
    "ReconciliationResult",
    "RealizedGainsLedger",
    "on_sell",
]
