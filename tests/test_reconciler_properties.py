"""Property-based tests for holding reconciliation.

Tests idempotence and delete-is-inverse using Hypothesis.
"""

from __future__ import annotations

import threading
from decimal import Decimal, ROUND_DOWN

import pytest
from hypothesis import given, settings, strategies as st

from folio.trading.errors import ReconciliationError, ValidationError
from folio.trading.models import ZERO, Holding
from folio.trading.reconciler import HoldingReconciler

from tests.helpers import buy, sell

QUANTUM = Decimal("0.0001")

shares_strategy = st.decimals(
    min_value=Decimal("1"),
    max_value=Decimal("5000"),
    places=0,
    allow_nan=False,
    allow_infinity=False
)

price_strategy = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("1000"),
    places=2,
    allow_nan=False,
    allow_infinity=False
)

fraction_strategy = st.decimals(
    min_value=Decimal("0.05"),
    max_value=Decimal("1"),
    places=2,
    allow_nan=False,
    allow_infinity=False
)


@st.composite
def seeded_ledger_strategy(draw):
    """Generate a seeded holding plus a ledger that never over-sells."""
    seed_shares = draw(st.decimals(min_value=Decimal("0"), max_value=Decimal("1000"), places=0))
    seed_cost = draw(price_strategy)
    held = seed_shares
    ledger = []
    for day in range(draw(st.integers(min_value=0, max_value=12))):
        if draw(st.booleans()) and held > ZERO:
            qty = (held * draw(fraction_strategy)).quantize(QUANTUM, rounding=ROUND_DOWN)
            if qty > ZERO:
                ledger.append(sell(qty, draw(price_strategy), day))
                held -= qty
                continue
        qty = draw(shares_strategy)
        ledger.append(buy(qty, draw(price_strategy), day))
        held += qty
    holding = Holding(id="h1", symbol="COMI", shares=seed_shares, average_cost=seed_cost)
    return holding, ledger, held


@given(case=seeded_ledger_strategy())
@settings(max_examples=100)
def test_reconciliation_is_idempotent(case):
    """
    **Property 3: Idempotence of reconciliation**

    Recomputing from the full ledger twice in a row SHALL yield identical
    shares and average cost.
    """
    holding, ledger, held = case
    reconciler = HoldingReconciler()

    first = reconciler.reconcile(holding, ledger, previous_transactions=[])
    second = reconciler.reconcile(first.holding, ledger)

    assert first.holding.shares == held
    assert second.holding.shares == first.holding.shares
    assert second.holding.average_cost == first.holding.average_cost
    assert second.history == first.history


@given(
    case=seeded_ledger_strategy(),
    extra_shares=shares_strategy,
    extra_price=price_strategy,
    as_sell=st.booleans(),
)
@settings(max_examples=100)
def test_delete_restores_previous_state(case, extra_shares, extra_price, as_sell):
    """
    **Property 4: Delete-is-inverse**

    Appending a transaction and then deleting it SHALL restore the exact
    pre-append shares and average cost.
    """
    holding, ledger, held = case
    reconciler = HoldingReconciler()
    base = reconciler.reconcile(holding, ledger, previous_transactions=[]).holding

    if as_sell and held > ZERO:
        extra = sell(min(extra_shares, held), extra_price, 100)
    else:
        extra = buy(extra_shares, extra_price, 100)

    appended = reconciler.apply(base, ledger + [extra], ledger).holding
    restored = reconciler.reconcile(appended, ledger, ledger + [extra]).holding

    assert restored.shares == base.shares
    assert restored.average_cost == base.average_cost


def test_seeded_holding_then_buy():
    holding = Holding(id="h1", symbol="COMI", shares=Decimal(100), average_cost=Decimal("10.00"))
    reconciler = HoldingReconciler()

    result = reconciler.apply(holding, [buy(50, "10.00", 0)], previous_transactions=[])

    assert result.opening.shares == Decimal(100)
    assert result.opening.average_cost == Decimal(10)
    assert result.holding.shares == Decimal(150)
    assert result.holding.average_cost == Decimal(10)
    assert result.holding.opening_shares == Decimal(100)
    assert result.holding.opening_average_cost == Decimal(10)


def test_pinned_opening_is_not_rederived():
    holding = Holding(
        id="h1", symbol="COMI", shares=Decimal(999), average_cost=Decimal(999),
        opening_shares=Decimal(10), opening_average_cost=Decimal(4),
    )

    result = HoldingReconciler().reconcile(holding, [buy(10, 6, 0)])

    assert result.holding.shares == Decimal(20)
    assert result.holding.average_cost == Decimal(5)


def test_edit_that_oversells_raises_reconciliation_error():
    b = buy(10, 5, 0)
    s = sell(8, 6, 1)
    reconciler = HoldingReconciler()
    holding = reconciler.reconcile(Holding(id="h1", symbol="COMI", shares=ZERO, average_cost=ZERO), [b, s], []).holding

    edited = [buy(5, 5, 0), s]
    with pytest.raises(ReconciliationError) as excinfo:
        reconciler.reconcile(holding, edited, [b, s])

    assert excinfo.value.holding_id == "h1"
    assert excinfo.value.transaction_id == s.id
    assert isinstance(excinfo.value.__cause__, ValidationError)
    assert holding.shares == Decimal(2), "The input holding is never mutated"


def test_apply_raises_validation_error_for_new_oversell():
    holding = Holding(id="h1", symbol="COMI", shares=Decimal(150), average_cost=Decimal(15))

    with pytest.raises(ValidationError):
        HoldingReconciler().apply(holding, [sell(300, 20, 0)], previous_transactions=[])


def test_locks_are_per_holding():
    reconciler = HoldingReconciler()

    a = reconciler.lock_for("a")

    assert reconciler.lock_for("a") is a
    assert reconciler.lock_for("b") is not a
    assert isinstance(a, type(threading.Lock()))

    reconciler.forget("a")
    assert reconciler.lock_for("a") is not a
