import io
import json
from datetime import date
from decimal import Decimal
from urllib.error import URLError

import pytest

import fx_rates
from fx_rates import (
    FALLBACK_RATES,
    FxRateService,
    RateCache,
    RateSnapshot,
    convert,
    format_currency,
    format_date,
    format_for_settings,
)
from schemas import UserSettings

NBSP = "\u00a0"


class _FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def _provider_payload() -> bytes:
    return json.dumps(
        {
            "base": "USD",
            "date": "2026-10-18",
            "rates": {"EUR": 0.9, "GBP": 0.8, "INR": 84.0, "JPY": 150.0},
        }
    ).encode("utf-8")


@pytest.mark.parametrize("code", ["USD", "EUR", "GBP", "INR", "XYZ"])
@pytest.mark.parametrize("amount", [123.45, Decimal("15.99"), 0])
def test_convert_identity(code, amount):
    assert convert(amount, code, code) == amount


def test_convert_through_usd():
    assert convert(92, "EUR", "USD") == pytest.approx(100)
    assert convert(100, "USD", "INR") == pytest.approx(8312)
    assert convert(79, "GBP", "EUR", FALLBACK_RATES) == pytest.approx(92)


def test_convert_unknown_currency_uses_rate_one():
    assert convert(50, "XYZ", "USD") == pytest.approx(50)
    assert convert(50, "USD", "XYZ") == pytest.approx(50)


def test_convert_uses_given_rate_table():
    assert convert(10, "USD", "EUR", {"USD": 1.0, "EUR": 2.0}) == pytest.approx(20)


def test_format_currency_locales():
    assert format_currency(1234.5) == "$1,234.50"
    assert format_currency(1234.5, "EUR", "EUR") == f"1.234,50{NBSP}€"
    assert format_currency(1234.5, "GBP", "GBP") == "£1,234.50"
    assert format_currency(1234567.891, "INR", "INR") == "₹12,34,567.89"
    assert format_currency(-42, "USD", "USD") == "-$42.00"
    assert format_currency(0.005) == "$0.01"


def test_format_currency_converts_when_display_differs():
    assert format_currency(100, "USD", "EUR") == f"92,00{NBSP}€"
    assert format_currency(100, "USD", "INR", {"USD": 1.0, "INR": 80.0}) == "₹8,000.00"


def test_format_for_settings_reads_explicit_preferences():
    settings = UserSettings(currency="GBP", base_currency="USD")
    assert format_for_settings(100, settings) == "£79.00"


def test_format_date():
    assert format_date(date(2026, 1, 5)) == "Jan 5, 2026"


def test_fetch_latest_parses_provider(monkeypatch):
    monkeypatch.setattr(
        fx_rates, "urlopen", lambda req, timeout: _FakeResponse(_provider_payload())
    )
    snapshot = FxRateService(url="http://rates.test", timeout=1).fetch_latest()

    assert snapshot.rates == {"USD": 1.0, "EUR": 0.9, "GBP": 0.8, "INR": 84.0}
    assert snapshot.last_updated == "2026-10-18"
    assert snapshot.fallback is False


def test_latest_rates_falls_back_on_network_failure(monkeypatch):
    def _boom(req, timeout):
        raise URLError("offline")

    monkeypatch.setattr(fx_rates, "urlopen", _boom)
    service = FxRateService(url="http://rates.test", timeout=1)

    with pytest.raises(RuntimeError):
        service.fetch_latest()

    snapshot = service.latest_rates()
    assert snapshot.fallback is True
    assert snapshot.rates == dict(FALLBACK_RATES)
    assert snapshot.as_payload()["fallback"] is True


def test_latest_rates_falls_back_on_bad_payload(monkeypatch):
    monkeypatch.setattr(
        fx_rates, "urlopen", lambda req, timeout: _FakeResponse(b'{"rates": {}}')
    )
    assert FxRateService(url="http://rates.test", timeout=1).latest_rates().fallback


class _StubService:
    def __init__(self, snapshot: RateSnapshot) -> None:
        self.snapshot = snapshot

    def latest_rates(self) -> RateSnapshot:
        return self.snapshot


def test_rate_cache_starts_from_fallback_and_persists_refresh(tmp_path):
    path = tmp_path / "rates.json"
    fetched = RateSnapshot({"USD": 1.0, "EUR": 0.5}, "2026-10-18")
    cache = RateCache(path, service=_StubService(fetched))

    assert cache.current().fallback is True
    assert cache.refresh() == fetched
    assert cache.current().rates["EUR"] == 0.5

    reloaded = RateCache(path, service=_StubService(fetched))
    assert reloaded.current().rates == {"USD": 1.0, "EUR": 0.5}
    assert reloaded.current().last_updated == "2026-10-18"


def test_rate_cache_keeps_last_known_table_when_fetch_fails(tmp_path):
    path = tmp_path / "rates.json"
    path.write_text(
        json.dumps({"rates": {"USD": 1, "EUR": 0.5}, "lastUpdated": "2026-10-01"}),
        encoding="utf-8",
    )
    cache = RateCache(path, service=_StubService(fx_rates.fallback_snapshot()))

    snapshot = cache.refresh()
    assert snapshot.fallback is False
    assert snapshot.rates["EUR"] == 0.5


def test_rate_cache_ignores_corrupt_file(tmp_path):
    path = tmp_path / "rates.json"
    path.write_text("not json", encoding="utf-8")
    cache = RateCache(path, service=_StubService(fx_rates.fallback_snapshot()))
    assert cache.current().rates == dict(FALLBACK_RATES)
