from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from pathlib import Path
from typing import Mapping, Optional, Union
from urllib.error import URLError
from urllib.request import Request, urlopen

from config import get_settings
from schemas import UserSettings

logger = logging.getLogger(__name__)

SUPPORTED_CURRENCIES = ("USD", "EUR", "GBP", "INR")

FALLBACK_RATES: Mapping[str, float] = {
    "USD": 1.0,
    "EUR": 0.92,
    "GBP": 0.79,
    "INR": 83.12,
}

NBSP = "\u00a0"

Number = Union[int, float, Decimal]


@dataclass(frozen=True)
class RateSnapshot:
    rates: Mapping[str, float]  # units of currency per 1 USD
    last_updated: str
    fallback: bool = False

    def as_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "rates": dict(self.rates),
            "lastUpdated": self.last_updated,
        }
        if self.fallback:
            payload["fallback"] = True
        return payload


def fallback_snapshot() -> RateSnapshot:
    return RateSnapshot(
        rates=dict(FALLBACK_RATES),
        last_updated=datetime.now(timezone.utc).isoformat(),
        fallback=True,
    )


class FxRateService:
    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None):
        settings = get_settings()
        self.url = url or settings.fx_url
        self.timeout = settings.fx_timeout_secs if timeout is None else timeout

    def fetch_latest(self) -> RateSnapshot:
        req = Request(self.url, headers={"Accept": "application/json"})
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except (URLError, TimeoutError, json.JSONDecodeError) as exc:
            raise RuntimeError(f"Failed to fetch exchange rates from {self.url}") from exc

        try:
            rates = {"USD": 1.0}
            for code in SUPPORTED_CURRENCIES[1:]:
                rates[code] = float(payload["rates"][code])
            last_updated = str(payload["date"])
        except Exception as exc:
            raise RuntimeError("Unexpected exchange rate provider response") from exc
        return RateSnapshot(rates=rates, last_updated=last_updated)

    def latest_rates(self) -> RateSnapshot:
        try:
            return self.fetch_latest()
        except RuntimeError as exc:
            logger.warning(f"fx_fetch_failed: using fallback rates ({exc})")
            return fallback_snapshot()


class RateCache:
    """Last-known rate table, persisted to a JSON file between restarts."""

    def __init__(self, path: Path, service: Optional[FxRateService] = None) -> None:
        self.path = path
        self.service = service or FxRateService()
        self._snapshot = self._load() or fallback_snapshot()

    def _load(self) -> Optional[RateSnapshot]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            rates = {str(k): float(v) for k, v in data["rates"].items()}
            return RateSnapshot(
                rates=rates,
                last_updated=str(data.get("lastUpdated", "")),
                fallback=bool(data.get("fallback", False)),
            )
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, AttributeError, TypeError) as exc:
            logger.warning(f"fx_cache_unreadable: path={self.path} error={exc}")
            return None

    def current(self) -> RateSnapshot:
        return self._snapshot

    def refresh(self) -> RateSnapshot:
        snapshot = self.service.latest_rates()
        if snapshot.fallback and not self._snapshot.fallback:
            # a failed fetch never replaces a fetched table
            return self._snapshot
        self._snapshot = snapshot
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(snapshot.as_payload()), encoding="utf-8")
        except OSError as exc:
            logger.warning(f"fx_cache_write_failed: path={self.path} error={exc}")
        logger.info(
            f"fx_refresh: last_updated={snapshot.last_updated} fallback={snapshot.fallback}"
        )
        return snapshot


def _rate(rates: Mapping[str, float], code: str) -> float:
    rate = rates.get(code)
    if not rate:
        # unknown codes convert at 1.0
        logger.debug(f"fx_unknown_currency: code={code}")
        return 1.0
    return float(rate)


def convert(
    amount: Number,
    from_currency: str = "USD",
    to_currency: str = "USD",
    rates: Optional[Mapping[str, float]] = None,
) -> Number:
    if from_currency == to_currency:
        return amount
    rates = FALLBACK_RATES if rates is None else rates
    amount_in_usd = float(amount) / _rate(rates, from_currency)
    return amount_in_usd * _rate(rates, to_currency)


@dataclass(frozen=True)
class _LocaleFormat:
    symbol: str
    group: str
    decimal: str
    symbol_first: bool
    indian_grouping: bool = False
    separator: str = ""


CURRENCY_LOCALES: Mapping[str, _LocaleFormat] = {
    "USD": _LocaleFormat("$", ",", ".", True),  # en-US
    "EUR": _LocaleFormat("€", ".", ",", False, separator=NBSP),  # de-DE
    "GBP": _LocaleFormat("£", ",", ".", True),  # en-GB
    "INR": _LocaleFormat("₹", ",", ".", True, indian_grouping=True),  # en-IN
}


def _group_digits(digits: str, sep: str, indian: bool) -> str:
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    size = 2 if indian else 3
    groups = []
    while len(head) > size:
        groups.insert(0, head[-size:])
        head = head[:-size]
    groups.insert(0, head)
    return sep.join(groups + [tail])


def _render(amount: Number, code: str) -> str:
    fmt = CURRENCY_LOCALES.get(code) or _LocaleFormat(code, ",", ".", True, separator=NBSP)
    quantized = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if quantized < 0 else ""
    integer, fraction = f"{abs(quantized):.2f}".split(".")
    number = _group_digits(integer, fmt.group, fmt.indian_grouping) + fmt.decimal + fraction
    if fmt.symbol_first:
        return f"{sign}{fmt.symbol}{fmt.separator}{number}"
    return f"{sign}{number}{fmt.separator}{fmt.symbol}"


def format_currency(
    amount: Number,
    base_currency: str = "USD",
    display_currency: str = "USD",
    rates: Optional[Mapping[str, float]] = None,
) -> str:
    if display_currency != base_currency:
        amount = convert(amount, base_currency, display_currency, rates)
    return _render(amount, display_currency)


def format_for_settings(
    amount: Number,
    settings: UserSettings,
    rates: Optional[Mapping[str, float]] = None,
) -> str:
    return format_currency(amount, settings.base_currency, settings.currency, rates)


def format_date(value: Union[date, datetime]) -> str:
    return f"{value.strftime('%b')} {value.day}, {value.year}"
