"""Pure leg edits. Every function returns a new Leg and never mutates its input.

Two kinds of edits live here:

- user edits (closing, exclusion, strike moves, manual premiums) raise
  ``PositionError`` when the edit is impossible;
- automatic refreshes (theoretical repricing, market quotes) never touch a
  protected premium: a locked basis, or one the user typed in or restored
  from a save. They still refresh advisory market fields and IV.
"""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import date, datetime

from osw.config.settings import DEFAULT_SETTINGS, EngineSettings
from osw.exceptions import CostBasisLockedError, PositionError
from osw.interfaces.option_leg import (
    ClosingEntry,
    ClosingTransaction,
    Leg,
    ManualPremium,
    MarketPremium,
    MarketSnapshot,
    SavedPremium,
    TheoreticalPremium,
)
from osw.market.chain import OptionQuote, quote_mid
from osw.pricing.black_scholes import black_scholes
from osw.pricing.implied_vol import volatility_from_quote
from osw.utils.logging import get_logger

log = get_logger(__name__, component="positions.updates")

# Very short-dated quotes are solved with at least half a day left.
_MIN_SOLVE_DAYS = 0.5


def _is_protected(leg: Leg) -> bool:
    return leg.cost_basis_locked or isinstance(leg.source, (ManualPremium, SavedPremium))


def _check_price(value: float, label: str) -> float:
    if not math.isfinite(value) or value < 0:
        raise PositionError(f"{label} must be a non-negative number")
    return float(value)


def close_position(
    leg: Leg,
    quantity: int,
    closing_price: float,
    *,
    entry_id: str | None = None,
    closed_at: date | None = None,
) -> Leg:
    """Record a (partial) close, freezing the current premium and strike into the entry."""

    if isinstance(quantity, bool) or int(quantity) != quantity or quantity <= 0:
        raise PositionError("Closing quantity must be a positive integer")
    quantity = int(quantity)
    if quantity > leg.open_quantity:
        raise PositionError(
            f"Cannot close {quantity} of leg {leg.id}: only {leg.open_quantity} open"
        )
    price = _check_price(closing_price, "closing_price")

    existing = leg.closing.entries if leg.closing is not None else ()
    entry = ClosingEntry(
        id=entry_id or f"{leg.id}-close-{len(existing) + 1}",
        quantity=quantity,
        closing_price=price,
        opening_price=leg.premium,
        strike=leg.strike,
        closed_at=closed_at,
    )
    if any(e.id == entry.id for e in existing):
        raise PositionError(f"Closing entry {entry.id} already exists")
    log.info("Leg closed", extra={"leg_id": leg.id, "quantity": quantity, "closing_price": price})
    return replace(leg, closing=ClosingTransaction(entries=existing + (entry,), enabled=True))


def _replace_entry(leg: Leg, entry_id: str, **changes) -> Leg:
    if leg.closing is None or not any(e.id == entry_id for e in leg.closing.entries):
        raise PositionError(f"Unknown closing entry {entry_id} on leg {leg.id}")
    entries = tuple(replace(e, **changes) if e.id == entry_id else e for e in leg.closing.entries)
    return replace(leg, closing=replace(leg.closing, entries=entries))


def set_entry_excluded(leg: Leg, entry_id: str, excluded: bool = True) -> Leg:
    """Toggle whether a closing entry counts toward realized P/L."""

    return _replace_entry(leg, entry_id, excluded=excluded)


def remove_closing_entry(leg: Leg, entry_id: str) -> Leg:
    """Undo a close; its contracts become open again."""

    if leg.closing is None or not any(e.id == entry_id for e in leg.closing.entries):
        raise PositionError(f"Unknown closing entry {entry_id} on leg {leg.id}")
    entries = tuple(e for e in leg.closing.entries if e.id != entry_id)
    closing = replace(leg.closing, entries=entries) if entries else None
    return replace(leg, closing=closing)


def set_excluded(leg: Leg, excluded: bool = True) -> Leg:
    return replace(leg, excluded=excluded)


def with_strike(leg: Leg, strike: float) -> Leg:
    """Move the leg's strike; closing entries keep the strike they were closed at."""

    if not leg.is_option:
        raise PositionError("Stock legs have no strike")
    if not math.isfinite(strike) or strike <= 0:
        raise PositionError("strike must be positive")
    return replace(leg, strike=float(strike))


def with_quantity(leg: Leg, quantity: int) -> Leg:
    if isinstance(quantity, bool) or int(quantity) != quantity or quantity <= 0:
        raise PositionError("quantity must be a positive integer")
    if quantity < leg.closed_quantity:
        raise PositionError(f"quantity {quantity} is below the {leg.closed_quantity} already closed")
    return replace(leg, quantity=int(quantity))


def lock_cost_basis(leg: Leg) -> Leg:
    if not leg.has_cost_basis:
        raise PositionError(f"Leg {leg.id} has no real entry price to lock")
    return replace(leg, cost_basis_locked=True)


def reset_cost_basis(leg: Leg) -> Leg:
    """Drop the entry price and lock, e.g. after switching the underlying symbol."""

    return replace(leg, source=None, cost_basis_locked=False, entry_underlying_price=None)


def mark_saved(leg: Leg, saved_at: datetime | None = None) -> Leg:
    """Stamp the premium as restored from a save; saved premiums are real cost bases."""

    return replace(leg, source=SavedPremium(saved_at=saved_at), cost_basis_locked=True)


def set_manual_premium(
    leg: Leg,
    premium: float,
    *,
    unlock: bool = False,
    entered_at: datetime | None = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> Leg:
    """User-entered premium, floored at ``settings.min_premium``.

    A locked basis is only replaced with ``unlock=True``.
    """

    if leg.cost_basis_locked and not unlock:
        raise CostBasisLockedError(f"Cost basis of leg {leg.id} is locked")
    value = max(settings.min_premium, _check_price(premium, "premium"))
    return replace(
        leg,
        premium=value,
        source=ManualPremium(entered_at=entered_at),
        cost_basis_locked=True,
    )


def apply_theoretical_premium(
    leg: Leg,
    spot: float,
    volatility: float,
    *,
    as_of: datetime | None = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> Leg:
    """Fill an unprotected premium with the model price (a placeholder, not a basis)."""

    if _is_protected(leg) or not math.isfinite(spot) or spot <= 0:
        return leg
    if not leg.is_option:
        return replace(leg, premium=float(spot), source=TheoreticalPremium(volatility=volatility))

    days = leg.days_until_expiry(as_of)
    price = black_scholes(
        spot, leg.strike, days / settings.days_per_year, volatility, leg.kind, settings.risk_free_rate
    ).price
    return replace(
        leg,
        premium=max(settings.min_premium, round(price, 2)),
        source=TheoreticalPremium(volatility=volatility),
    )


def apply_market_quote(
    leg: Leg,
    quote: OptionQuote,
    spot: float,
    *,
    as_of: datetime | None = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> Leg:
    """Refresh a leg from a chain quote.

    Market fields and IV are always refreshed. The premium follows the quote
    mid only when the leg's premium is not protected.
    """

    if not leg.is_option or quote.side != leg.kind or abs(quote.strike - leg.strike) >= 0.01:
        return leg

    snapshot = MarketSnapshot(bid=quote.bid, ask=quote.ask, mark=quote_mid(quote), last=quote.last)
    solve_days = max(_MIN_SOLVE_DAYS, leg.days_until_expiry(as_of))
    solution = volatility_from_quote(
        quote, spot, solve_days / settings.days_per_year, settings.risk_free_rate, settings
    )
    changes: dict = {"market": snapshot, "implied_vol": solution.volatility}

    mid = snapshot.mark
    if _is_protected(leg):
        log.debug("Premium protected, refreshing market fields only", extra={"leg_id": leg.id})
    elif mid is not None and mid > 0:
        changes["premium"] = max(settings.min_premium, round(mid, 2))
        changes["source"] = MarketPremium(quote_id=quote.option_symbol)
        if leg.entry_underlying_price is None and math.isfinite(spot) and spot > 0:
            changes["entry_underlying_price"] = float(spot)
    return replace(leg, **changes)


__all__ = [
    "apply_market_quote",
    "apply_theoretical_premium",
    "close_position",
    "lock_cost_basis",
    "mark_saved",
    "remove_closing_entry",
    "reset_cost_basis",
    "set_entry_excluded",
    "set_excluded",
    "set_manual_premium",
    "with_quantity",
    "with_strike",
]
