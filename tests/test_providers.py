from __future__ import annotations

from decimal import Decimal

from folio.data.providers import BATCH_PRICES_PATH, PriceApiProvider


class _Resp:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self._payload


def test_provider_fetches_batch_prices(monkeypatch):
    p = PriceApiProvider("http://prices.local", timeout_s=1)
    calls = []

    def fake_post(url, json=None):
        calls.append((url, json))
        return _Resp({
            "prices": [
                {"symbol": "comi", "price": 81.25},
                {"symbol": "ETEL", "price": None},
                {"symbol": "HRHO", "price": "bad"},
            ],
        })

    monkeypatch.setattr(p, "_client", type("C", (), {"post": staticmethod(fake_post)})())

    out = p.fetch_prices(["COMI", "E TEL", "HRHO"])

    assert calls == [(BATCH_PRICES_PATH, {"symbols": ["COMI", "ETEL", "HRHO"]})]
    assert out == {"COMI": Decimal("81.25")}


def test_provider_skips_request_without_symbols(monkeypatch):
    p = PriceApiProvider("http://prices.local", timeout_s=1)

    def fail_post(url, json=None):
        raise AssertionError("no request expected")

    monkeypatch.setattr(p, "_client", type("C", (), {"post": staticmethod(fail_post)})())

    assert p.fetch_prices([]) == {}
