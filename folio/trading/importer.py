"""Bulk import of broker-extracted transaction rows.

Rows come from statements or screenshots with dates such as ``12 Jan 25``
and times such as ``01:49PM``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Mapping, Optional

from .errors import ValidationError, ValidationReason
from .models import TransactionType, to_decimal

logger = logging.getLogger(__name__)

IMPORT_NOTE = "Imported from screenshot"

MONTHS = {
    "Jan": 1, "Feb": 2, "Mar": 3, "Apr": 4, "May": 5, "Jun": 6,
    "Jul": 7, "Aug": 8, "Sep": 9, "Oct": 10, "Nov": 11, "Dec": 12,
}

_TIME_RE = re.compile(r"(\d+):(\d+)(AM|PM)", re.IGNORECASE)


@dataclass(frozen=True)
class ImportedRow:
    """One parsed row, ready to become a ledger transaction."""
    type: TransactionType
    shares: Decimal
    price: Decimal
    date: datetime


def parse_trade_datetime(date_text: str, time_text: str = "", now: Optional[datetime] = None) -> datetime:
    """Parse ``"12 Jan 25"`` plus ``"01:49 PM"`` into a datetime.

    Unknown months map to January, a missing or malformed time means midnight.
    If the date cannot be parsed at all, the current time is used and a
    warning is logged.
    """
    try:
        parts = date_text.strip().split()
        day = int(parts[0])
        month = MONTHS.get(parts[1][:3].title(), 1)
        year_str = parts[2]
        year = int("20" + year_str) if len(year_str) == 2 else int(year_str)

        hours = 0
        minutes = 0
        match = _TIME_RE.search(re.sub(r"\s+", "", time_text or ""))
        if match:
            hours = int(match.group(1))
            minutes = int(match.group(2))
            period = match.group(3).upper()
            if period == "PM" and hours != 12:
                hours += 12
            if period == "AM" and hours == 12:
                hours = 0
        return datetime(year, month, day, hours, minutes)
    except (IndexError, ValueError) as e:
        logger.warning(f"Date parse failed for '{date_text} {time_text}', using current time: {e}")
        return now or datetime.now()


def parse_rows(rows: Iterable[Mapping], now: Optional[datetime] = None) -> List[ImportedRow]:
    """Parse extracted rows, dropping cancelled ones, oldest first.

    Raises:
        ValidationError: If a row has an unknown type or non-numeric amounts
    """
    parsed: List[ImportedRow] = []
    for index, row in enumerate(rows):
        if str(row.get("status", "Fulfilled")).lower() == "cancelled":
            continue
        try:
            kind = TransactionType(str(row["type"]).lower())
        except (KeyError, ValueError) as e:
            raise ValidationError(
                ValidationReason.INVALID_QUANTITY,
                f"Row {index}: unknown transaction type {row.get('type')!r}",
            ) from e
        try:
            shares = to_decimal(row["shares"])
            price = to_decimal(row["price"])
        except (KeyError, InvalidOperation) as e:
            raise ValidationError(
                ValidationReason.INVALID_QUANTITY,
                f"Row {index}: shares and price must be numbers",
            ) from e
        date = parse_trade_datetime(str(row.get("date", "")), str(row.get("time", "")), now=now)
        parsed.append(ImportedRow(kind, shares, price, date))

    parsed.sort(key=lambda r: r.date)
    return parsed
