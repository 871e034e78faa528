from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from folio.trading.models import BuyTransaction, SellTransaction

DAY0 = datetime(2024, 1, 1, 10, 0)
EPSILON = Decimal("1e-9")


def on_day(day: int) -> datetime:
    return DAY0 + timedelta(days=day)


def buy(shares, price, day: int = 0, fees="0", holding_id: str = "h1", symbol: str = "COMI") -> BuyTransaction:
    return BuyTransaction(
        holding_id=holding_id,
        symbol=symbol,
        shares=Decimal(str(shares)),
        price_per_share=Decimal(str(price)),
        fees=Decimal(str(fees)),
        date=on_day(day),
    )


def sell(shares, price, day: int = 0, fees="0", holding_id: str = "h1", symbol: str = "COMI") -> SellTransaction:
    return SellTransaction(
        holding_id=holding_id,
        symbol=symbol,
        shares=Decimal(str(shares)),
        price_per_share=Decimal(str(price)),
        fees=Decimal(str(fees)),
        date=on_day(day),
    )


def close_to(actual: Decimal, expected: Decimal, rel: Decimal = EPSILON) -> bool:
    return abs(actual - expected) <= rel * max(Decimal("1"), abs(expected))
