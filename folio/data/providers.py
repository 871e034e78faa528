from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, List

import httpx

logger = logging.getLogger(__name__)

BATCH_PRICES_PATH = "/api/prices/batch"


class IPriceProvider(ABC):
    """Source of last-known prices for tracked symbols."""

    @abstractmethod
    def fetch_prices(self, symbols: List[str]) -> Dict[str, Decimal]:
        """Fetch prices for symbols.

        Returns:
            Mapping of symbol to price; symbols without a price are omitted
        """
        ...


class PriceApiProvider(IPriceProvider):
    """Batch price lookup against the companion price API."""

    def __init__(self, base_url: str, timeout_s: float = 10.0) -> None:
        self._client = httpx.Client(base_url=base_url, timeout=timeout_s)
        self._lock = threading.Lock()

    def _normalize_symbol(self, s: str) -> str:
        return s.replace(" ", "").upper()

    def fetch_prices(self, symbols: List[str]) -> Dict[str, Decimal]:
        norm = [self._normalize_symbol(s) for s in symbols]
        if not norm:
            return {}
        with self._lock:
            r = self._client.post(BATCH_PRICES_PATH, json={"symbols": norm})
        r.raise_for_status()
        data = r.json() or {}

        out: Dict[str, Decimal] = {}
        for item in data.get("prices") or []:
            sym = item.get("symbol")
            price = item.get("price")
            if not sym or price is None:
                continue
            try:
                out[self._normalize_symbol(sym)] = Decimal(str(price))
            except ArithmeticError:
                logger.warning(f"Ignoring malformed price for {sym}: {price!r}")
        logger.info(f"Fetched {len(out)} of {len(norm)} prices")
        return out

    def close(self) -> None:
        self._client.close()
