"""Property-based tests for the cost-basis engine.

Tests the weighted average cost properties using Hypothesis.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_DOWN
from typing import List, Tuple

import pytest
from hypothesis import given, settings, strategies as st, assume

from folio.trading.cost_basis import compute_cost_history, derive_opening_position, fold_ledger
from folio.trading.errors import ValidationError, ValidationReason
from folio.trading.models import ZERO, PointType

from tests.helpers import buy, sell, close_to

QUANTUM = Decimal("0.00000001")

positive_shares_strategy = st.decimals(
    min_value=Decimal("0.001"),
    max_value=Decimal("10000"),
    places=3,
    allow_nan=False,
    allow_infinity=False
)

positive_price_strategy = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("100000"),
    places=2,
    allow_nan=False,
    allow_infinity=False
)

fraction_strategy = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("1"),
    places=2,
    allow_nan=False,
    allow_infinity=False
)

buy_list_strategy = st.lists(
    st.tuples(positive_shares_strategy, positive_price_strategy),
    min_size=1,
    max_size=20
)

# (is_sell, shares-or-fraction, price)
operation_strategy = st.lists(
    st.tuples(st.booleans(), positive_shares_strategy, fraction_strategy, positive_price_strategy),
    min_size=1,
    max_size=25
)


def _build_ledger(operations) -> List:
    """Turn drawn operations into a ledger that never over-sells."""
    ledger = []
    held = ZERO
    for day, (is_sell, shares, fraction, price) in enumerate(operations):
        if is_sell:
            qty = (held * fraction).quantize(QUANTUM, rounding=ROUND_DOWN)
            if qty <= ZERO:
                continue
            ledger.append(sell(qty, price, day))
            held -= qty
        else:
            ledger.append(buy(shares, price, day))
            held += shares
    return ledger


@given(buys=buy_list_strategy)
@settings(max_examples=100)
def test_buy_only_average_is_weighted_mean(buys: List[Tuple[Decimal, Decimal]]):
    """
    **Property 1: Weighted-average invariant**

    For any sequence of buys, the final average cost SHALL equal
    sum(shares * price) / sum(shares).
    """
    ledger = [buy(shares, price, day) for day, (shares, price) in enumerate(buys)]

    points = compute_cost_history(ZERO, ZERO, ledger)

    total_shares = sum((s for s, _ in buys), ZERO)
    expected = sum((s * p for s, p in buys), ZERO) / total_shares
    assert len(points) == len(buys), "No initial point without a pre-existing position"
    assert points[-1].shares == total_shares
    assert close_to(points[-1].average_cost, expected)


@given(operations=operation_strategy)
@settings(max_examples=100)
def test_sell_preserves_average_cost(operations):
    """
    **Property 2: Sell preserves average cost**

    For any sell that leaves shares behind, the average cost immediately after
    the sell SHALL equal the average cost immediately before it.
    """
    ledger = _build_ledger(operations)
    assume(any(t.type.value == "sell" for t in ledger))

    points = fold_ledger(ZERO, ZERO, ledger)

    for previous, current in zip(points, points[1:]):
        if current.type is PointType.SELL:
            assert current.shares == previous.shares - next(
                t.shares for t in ledger if t.id == current.transaction_id
            )
            if current.shares > ZERO:
                assert close_to(current.average_cost, previous.average_cost), \
                    "Selling must not change the cost basis of the remaining shares"
            else:
                assert current.average_cost == ZERO


@given(shares=positive_shares_strategy, extra=positive_shares_strategy, price=positive_price_strategy)
@settings(max_examples=100)
def test_oversell_is_rejected(shares: Decimal, extra: Decimal, price: Decimal):
    """
    **Property 5: Over-sell rejection**

    A sell asking for more shares than are held at its ledger position SHALL
    raise ValidationError carrying the requested and available shares.
    """
    ledger = [buy(shares, price, 0), sell(shares + extra, price, 1)]

    with pytest.raises(ValidationError) as excinfo:
        fold_ledger(ZERO, ZERO, ledger)

    assert excinfo.value.reason is ValidationReason.OVERSELL
    assert excinfo.value.requested == shares + extra
    assert excinfo.value.available == shares
    assert excinfo.value.transaction_id == ledger[1].id


@given(operations=operation_strategy, data=st.data())
@settings(max_examples=50)
def test_input_order_does_not_matter(operations, data):
    """
    **Property: Defensive sorting**

    Folding a shuffled ledger SHALL produce the same series as folding the
    chronologically ordered ledger.
    """
    ledger = _build_ledger(operations)
    assume(ledger)
    shuffled = data.draw(st.permutations(ledger))

    assert fold_ledger(ZERO, ZERO, shuffled) == fold_ledger(ZERO, ZERO, ledger)


@given(
    pre_shares=positive_shares_strategy,
    pre_price=positive_price_strategy,
    buys=buy_list_strategy,
)
@settings(max_examples=100)
def test_opening_position_recovered_from_seed(pre_shares, pre_price, buys):
    """
    **Property: Seed reconstruction**

    For a holding whose seeded shares and average cost already include a
    buy-only ledger, the derived opening position SHALL be the position that
    existed before the ledger.
    """
    ledger = [buy(s, p, day) for day, (s, p) in enumerate(buys)]
    forward = fold_ledger(pre_shares, pre_price, ledger)
    final = forward[-1]

    opening = derive_opening_position(final.shares, final.average_cost, ledger)

    assert opening.shares == pre_shares
    assert close_to(opening.average_cost, pre_price, rel=Decimal("1e-6"))
