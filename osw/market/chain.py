"""Option-chain quote model and DataFrame normalisation."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Literal, Sequence

import pandas as pd

from osw.exceptions import SchemaError
from osw.utils.logging import get_logger

log = get_logger(__name__, component="market.chain")

QuoteSide = Literal["call", "put"]

# Column aliases seen in broker/vendor chain exports.
_COLUMN_ALIASES = {
    "optionSymbol": "option_symbol",
    "symbol": "option_symbol",
    "underlyingPrice": "underlying_price",
    "underlying": "underlying_price",
    "iv": "implied_vol",
    "impliedVolatility": "implied_vol",
    "implied_volatility": "implied_vol",
    "type": "side",
    "option_type": "side",
    "openInterest": "open_interest",
    "expiry": "expiration",
}
_REQUIRED_COLUMNS = ("strike", "side")


@dataclass(frozen=True, slots=True)
class OptionQuote:
    strike: float
    side: QuoteSide
    bid: float = 0.0
    ask: float = 0.0
    mid: float = 0.0
    last: float = 0.0
    underlying_price: float = 0.0
    implied_vol: float | None = None
    expiration: date | None = None
    option_symbol: str | None = None
    volume: int = 0
    open_interest: int = 0

    def __post_init__(self) -> None:
        if self.side not in {"call", "put"}:
            raise SchemaError(f"Quote side must be 'call' or 'put', got {self.side!r}")
        if not math.isfinite(self.strike) or self.strike <= 0:
            raise SchemaError("Quote strike must be positive")


def _positive(value: float | None) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def quote_mid(quote: OptionQuote) -> float | None:
    """Best available mid: quoted mid, then bid/ask midpoint, then last trade."""

    if _positive(quote.mid):
        return float(quote.mid)
    if _positive(quote.bid) and _positive(quote.ask):
        return (float(quote.bid) + float(quote.ask)) / 2.0
    if _positive(quote.last):
        return float(quote.last)
    return None


def available_expirations(quotes: Iterable[OptionQuote]) -> list[date]:
    return sorted({q.expiration for q in quotes if q.expiration is not None})


def filter_expiration(quotes: Iterable[OptionQuote], expiration: date | None) -> list[OptionQuote]:
    """Quotes for one expiration; ``None`` keeps quotes without an expiry tag."""

    return [q for q in quotes if q.expiration == expiration]


def _parse_expiration(series: pd.Series) -> pd.Series:
    if pd.api.types.is_numeric_dtype(series):
        # Vendor feeds send unix seconds.
        parsed = pd.to_datetime(series, unit="s", errors="coerce")
    else:
        parsed = pd.to_datetime(series, errors="coerce")
    return parsed.dt.date


def _optional_float(value) -> float | None:
    if value is None or pd.isna(value):
        return None
    return float(value)


def _number(row: pd.Series, key: str) -> float:
    value = _optional_float(row.get(key))
    return 0.0 if value is None else value


def quotes_from_frame(frame: pd.DataFrame) -> list[OptionQuote]:
    """Normalise a chain DataFrame (CSV export, vendor payload) into quotes.

    Raises:
        SchemaError: when required columns are missing or a row is malformed.
    """

    df = frame.rename(columns={k: v for k, v in _COLUMN_ALIASES.items() if k in frame.columns})
    missing = [col for col in _REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise SchemaError(f"Option chain missing required columns: {', '.join(missing)}")

    df = df.copy()
    df["side"] = df["side"].astype(str).str.strip().str.lower().replace({"c": "call", "p": "put"})
    if "expiration" in df.columns:
        df["expiration"] = _parse_expiration(df["expiration"])

    quotes: list[OptionQuote] = []
    for idx, row in df.iterrows():
        try:
            expiration = row.get("expiration")
            quotes.append(
                OptionQuote(
                    strike=float(row["strike"]),
                    side=row["side"],
                    bid=_number(row, "bid"),
                    ask=_number(row, "ask"),
                    mid=_number(row, "mid"),
                    last=_number(row, "last"),
                    underlying_price=_number(row, "underlying_price"),
                    implied_vol=_optional_float(row.get("implied_vol")),
                    expiration=None if expiration is None or pd.isna(expiration) else expiration,
                    option_symbol=None if pd.isna(row.get("option_symbol")) else str(row.get("option_symbol")),
                    volume=int(_number(row, "volume")),
                    open_interest=int(_number(row, "open_interest")),
                )
            )
        except (TypeError, ValueError) as exc:
            raise SchemaError(f"Malformed option chain row {idx}: {exc}") from exc

    log.debug("Loaded option chain", extra={"rows": len(quotes)})
    return quotes


def quotes_to_frame(quotes: Sequence[OptionQuote]) -> pd.DataFrame:
    columns = [
        "strike",
        "side",
        "bid",
        "ask",
        "mid",
        "last",
        "underlying_price",
        "implied_vol",
        "expiration",
        "option_symbol",
    ]
    return pd.DataFrame([{col: getattr(q, col) for col in columns} for q in quotes], columns=columns)


__all__ = [
    "OptionQuote",
    "available_expirations",
    "filter_expiration",
    "quote_mid",
    "quotes_from_frame",
    "quotes_to_frame",
]
