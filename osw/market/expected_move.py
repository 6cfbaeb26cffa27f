"""Market-implied expected move from near-the-money straddle/strangle mids.

The move is a weighted blend of the ATM straddle (60%), the first OTM
strangle (30%) and the second OTM strangle (10%). Missing strangles hand
their weight to the straddle: 70/30 without OTM2, 90/10 without OTM1 and
100% ATM when neither is quoted.

The value is frozen per ``(symbol, expiration)``: it depends on chain quotes
only, never on strategy legs or the volatility the user is exploring, and
quote refreshes for the same key return the cached figure.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Sequence

from osw.config.settings import DAYS_PER_YEAR
from osw.market.chain import OptionQuote, available_expirations, filter_expiration, quote_mid
from osw.utils.logging import get_logger

log = get_logger(__name__, component="market.expected_move")

ATM_WEIGHT = 0.6
OTM1_WEIGHT = 0.3
OTM2_WEIGHT = 0.1
DEFAULT_DAYS_TO_EXPIRATION = 30

CacheKey = tuple[str, "date | None"]


@dataclass(frozen=True, slots=True)
class ExpectedMove:
    symbol: str
    expiration: date | None
    expected_move: float
    lower_bound: float
    upper_bound: float
    move_percent: float
    atm_strike: float
    atm_call: float
    atm_put: float
    otm1_strangle: float | None
    otm2_strangle: float | None
    spot: float
    days_to_expiration: int


@dataclass(frozen=True, slots=True)
class VolatilityRange:
    """One/two standard deviation range implied by a volatility."""

    move_1sd: float
    move_2sd: float
    lower_1sd: float
    upper_1sd: float
    lower_2sd: float
    upper_2sd: float
    move_percent: float
    days: float


def nearest_expiration(quotes: Sequence[OptionQuote], as_of: datetime | date | None = None) -> date | None:
    """Earliest expiration in the chain, skipping ones already past ``as_of``."""

    expirations = available_expirations(quotes)
    if as_of is not None:
        today = as_of.date() if isinstance(as_of, datetime) else as_of
        expirations = [exp for exp in expirations if exp >= today]
    return expirations[0] if expirations else None


def _mid_for(quotes: Sequence[OptionQuote], strike: float, side: str) -> float | None:
    for quote in quotes:
        if quote.strike == strike and quote.side == side:
            return quote_mid(quote)
    return None


def _strangle(quotes: Sequence[OptionQuote], strikes: list[float], atm_index: int, offset: int) -> float | None:
    """Call ``offset`` strikes above plus put ``offset`` strikes below; both sides required."""

    above, below = atm_index + offset, atm_index - offset
    if below < 0 or above >= len(strikes):
        return None
    call_mid = _mid_for(quotes, strikes[above], "call")
    put_mid = _mid_for(quotes, strikes[below], "put")
    if call_mid is None or put_mid is None:
        return None
    return call_mid + put_mid


def _days_to_expiration(expiration: date | None, as_of: datetime | date | None) -> int:
    # Calendar-date difference: the rest of today counts as a whole day.
    if expiration is None or as_of is None:
        return DEFAULT_DAYS_TO_EXPIRATION
    today = as_of.date() if isinstance(as_of, datetime) else as_of
    return max(1, (expiration - today).days)


def compute_expected_move(
    quotes: Sequence[OptionQuote],
    spot: float,
    symbol: str = "",
    expiration: date | None = None,
    as_of: datetime | date | None = None,
) -> ExpectedMove | None:
    """Blend straddle and strangle mids into an expected move.

    ``quotes`` should belong to a single expiration; when ``expiration`` is
    given the chain is filtered to it first. Returns None when no ATM price is
    available or the spot is unusable.
    """

    if not math.isfinite(spot) or spot <= 0:
        return None
    chain = filter_expiration(quotes, expiration) if expiration is not None else list(quotes)
    strikes = sorted({q.strike for q in chain})
    if not strikes:
        return None

    atm_strike = min(strikes, key=lambda k: abs(k - spot))
    atm_index = strikes.index(atm_strike)

    call_mid = _mid_for(chain, atm_strike, "call")
    put_mid = _mid_for(chain, atm_strike, "put")
    if call_mid is not None and put_mid is not None:
        straddle = call_mid + put_mid
    elif call_mid is not None:
        straddle = 2.0 * call_mid
    elif put_mid is not None:
        straddle = 2.0 * put_mid
    else:
        log.debug("No ATM mid available", extra={"symbol": symbol})
        return None

    otm1 = _strangle(chain, strikes, atm_index, 1)
    otm2 = _strangle(chain, strikes, atm_index, 2)
    if otm1 is not None and otm2 is not None:
        move = ATM_WEIGHT * straddle + OTM1_WEIGHT * otm1 + OTM2_WEIGHT * otm2
    elif otm1 is not None:
        move = (ATM_WEIGHT + OTM2_WEIGHT) * straddle + OTM1_WEIGHT * otm1
    elif otm2 is not None:
        move = (ATM_WEIGHT + OTM1_WEIGHT) * straddle + OTM2_WEIGHT * otm2
    else:
        move = straddle

    return ExpectedMove(
        symbol=symbol,
        expiration=expiration,
        expected_move=move,
        lower_bound=spot - move,
        upper_bound=spot + move,
        move_percent=move / spot * 100.0,
        atm_strike=atm_strike,
        atm_call=call_mid if call_mid is not None else straddle / 2.0,
        atm_put=put_mid if put_mid is not None else straddle / 2.0,
        otm1_strangle=otm1,
        otm2_strangle=otm2,
        spot=spot,
        days_to_expiration=_days_to_expiration(expiration, as_of),
    )


class ExpectedMoveCache:
    """Thread-safe memo of expected moves keyed by ``(symbol, expiration)``.

    Lookup-or-insert happens under one lock, so concurrent callers for the
    same key compute at most once. Caching a new expiration for a symbol
    evicts that symbol's other keys; a computation that yields None is not
    stored so a later, better chain can fill the slot.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[CacheKey, ExpectedMove] = {}

    def get(self, symbol: str, expiration: date | None) -> ExpectedMove | None:
        with self._lock:
            return self._entries.get((symbol, expiration))

    def get_or_compute(
        self,
        symbol: str,
        expiration: date | None,
        compute: Callable[[], ExpectedMove | None],
    ) -> ExpectedMove | None:
        key = (symbol, expiration)
        with self._lock:
            cached = self._entries.get(key)
            if cached is not None:
                return cached
            result = compute()
            if result is None:
                return None
            for stale in [k for k in self._entries if k[0] == symbol]:
                del self._entries[stale]
            self._entries[key] = result
            log.debug(
                "Expected move cached",
                extra={"symbol": symbol, "expiration": str(expiration), "expected_move": result.expected_move},
            )
            return result

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[CacheKey]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def frozen_expected_move(
    cache: ExpectedMoveCache,
    quotes: Sequence[OptionQuote],
    spot: float,
    symbol: str,
    as_of: datetime | date | None = None,
) -> ExpectedMove | None:
    """Expected move for the chain's nearest expiration, served from ``cache`` when present."""

    expiration = nearest_expiration(quotes, as_of)
    return cache.get_or_compute(
        symbol,
        expiration,
        lambda: compute_expected_move(quotes, spot, symbol=symbol, expiration=expiration, as_of=as_of),
    )


def volatility_expected_move(spot: float, volatility: float, days: float) -> VolatilityRange:
    """Range implied by a volatility: ``spot * sigma * sqrt(days / 365)`` per standard deviation."""

    if not (math.isfinite(spot) and math.isfinite(volatility) and math.isfinite(days)):
        spot, volatility, days = 0.0, 0.0, 0.0
    move = max(spot, 0.0) * max(volatility, 0.0) * math.sqrt(max(days, 0.0) / DAYS_PER_YEAR)
    return VolatilityRange(
        move_1sd=move,
        move_2sd=2.0 * move,
        lower_1sd=spot - move,
        upper_1sd=spot + move,
        lower_2sd=spot - 2.0 * move,
        upper_2sd=spot + 2.0 * move,
        move_percent=move / spot * 100.0 if spot > 0 else 0.0,
        days=days,
    )


__all__ = [
    "ExpectedMove",
    "ExpectedMoveCache",
    "VolatilityRange",
    "compute_expected_move",
    "frozen_expected_move",
    "nearest_expiration",
    "volatility_expected_move",
]
