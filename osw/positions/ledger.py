"""Realized/unrealized P/L bookkeeping for partially closed legs.

Sign convention: long legs earn ``price - basis``, short legs earn
``basis - price``; everything is scaled by quantity and the contract
multiplier (``EngineSettings.contract_multiplier`` for options, 1 for shares).

Realized P/L uses the opening price frozen into each closing entry, so
editing the leg's premium later never rewrites history. Excluded entries do
not count toward realized P/L but the contracts they closed are still gone.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Literal, Mapping, Sequence

from osw.config.settings import DEFAULT_SETTINGS, CommissionSettings, EngineSettings
from osw.interfaces.option_leg import ClosingEntry, Leg, provenance_label
from osw.utils.logging import get_logger

log = get_logger(__name__, component="positions.ledger")

OpenAction = Literal["BTO", "STO"]
CloseAction = Literal["STC", "BTC"]


@dataclass(frozen=True, slots=True)
class LegPnL:
    leg_id: str
    realized: float
    unrealized: float | None
    open_quantity: int
    closed_quantity: int
    has_realized: bool
    provenance: str

    @property
    def total(self) -> float:
        return self.realized + (self.unrealized or 0.0)


@dataclass(frozen=True, slots=True)
class LedgerSummary:
    realized: float
    unrealized: float
    has_realized: bool
    has_unrealized: bool
    legs: tuple[LegPnL, ...] = ()

    @property
    def total(self) -> float:
        return self.realized + self.unrealized


@dataclass(frozen=True, slots=True)
class OpenPosition:
    leg_id: str
    action: OpenAction
    quantity: int
    cost_basis: float


@dataclass(frozen=True, slots=True)
class ClosedPosition:
    leg_id: str
    entry_id: str
    action: CloseAction
    quantity: int
    realized: float


def _counted_entries(leg: Leg) -> tuple[ClosingEntry, ...]:
    if leg.closing is None or not leg.closing.enabled:
        return ()
    return tuple(entry for entry in leg.closing.entries if not entry.excluded)


def _entry_pnl(leg: Leg, entry: ClosingEntry, settings: EngineSettings = DEFAULT_SETTINGS) -> float:
    scale = leg.direction * entry.quantity * leg.contract_size(settings)
    return scale * (entry.closing_price - entry.opening_price)


def realized_pnl(leg: Leg, settings: EngineSettings = DEFAULT_SETTINGS) -> float:
    """Sum of closed-entry P/L against each entry's frozen opening price."""

    return sum(_entry_pnl(leg, entry, settings) for entry in _counted_entries(leg))


def open_quantity(leg: Leg) -> int:
    """Contracts still open; excluded closing entries still reduce this."""

    return leg.open_quantity


def unrealized_pnl(
    leg: Leg, current_price: float | None, settings: EngineSettings = DEFAULT_SETTINGS
) -> float | None:
    """P/L of the open quantity at ``current_price``.

    Returns None when no real cost basis exists (theoretical or unset premium)
    or no usable current price is supplied.
    """

    if not leg.has_cost_basis:
        return None
    if current_price is None or not math.isfinite(current_price):
        return None
    scale = leg.direction * leg.open_quantity * leg.contract_size(settings)
    return scale * (current_price - leg.basis(settings))


def leg_pnl(leg: Leg, current_price: float | None, settings: EngineSettings = DEFAULT_SETTINGS) -> LegPnL:
    return LegPnL(
        leg_id=leg.id,
        realized=realized_pnl(leg, settings),
        unrealized=unrealized_pnl(leg, current_price, settings) if leg.open_quantity > 0 else None,
        open_quantity=leg.open_quantity,
        closed_quantity=leg.closed_quantity,
        has_realized=bool(_counted_entries(leg)),
        provenance=provenance_label(leg.source),
    )


def active_legs(legs: Iterable[Leg]) -> list[Leg]:
    """Legs that count toward aggregates: not excluded and structurally valid."""

    active = []
    for leg in legs:
        if leg.excluded:
            continue
        if not leg.is_valid:
            log.warning("Skipping invalid leg", extra={"leg_id": leg.id})
            continue
        active.append(leg)
    return active


def total_realized_pnl(legs: Iterable[Leg], settings: EngineSettings = DEFAULT_SETTINGS) -> float:
    return sum(realized_pnl(leg, settings) for leg in active_legs(legs))


def ledger_summary(
    legs: Sequence[Leg],
    prices: Mapping[str, float] | None = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> LedgerSummary:
    """Totals across non-excluded valid legs.

    Args:
        legs: Strategy legs
        prices: Current per-unit price keyed by leg id; legs without a price
            contribute no unrealized P/L
        settings: Contract multiplier and premium floor
    """

    prices = prices or {}
    rows = [leg_pnl(leg, prices.get(leg.id), settings) for leg in active_legs(legs)]
    available = [row.unrealized for row in rows if row.unrealized is not None]
    return LedgerSummary(
        realized=sum(row.realized for row in rows),
        unrealized=sum(available),
        has_realized=any(row.has_realized for row in rows),
        has_unrealized=bool(available),
        legs=tuple(rows),
    )


def open_positions(legs: Sequence[Leg], settings: EngineSettings = DEFAULT_SETTINGS) -> list[OpenPosition]:
    """Blotter rows for legs with contracts still open."""

    rows = []
    for leg in active_legs(legs):
        if leg.open_quantity <= 0:
            continue
        rows.append(
            OpenPosition(
                leg_id=leg.id,
                action="BTO" if leg.position == "long" else "STO",
                quantity=leg.open_quantity,
                cost_basis=leg.premium * leg.open_quantity * leg.contract_size(settings),
            )
        )
    return rows


def closed_positions(legs: Sequence[Leg], settings: EngineSettings = DEFAULT_SETTINGS) -> list[ClosedPosition]:
    """Blotter rows for every counted closing entry."""

    rows = []
    for leg in active_legs(legs):
        for entry in _counted_entries(leg):
            rows.append(
                ClosedPosition(
                    leg_id=leg.id,
                    entry_id=entry.id,
                    action="STC" if leg.position == "long" else "BTC",
                    quantity=entry.quantity,
                    realized=_entry_pnl(leg, entry, settings),
                )
            )
    return rows


def commission(legs: Sequence[Leg], settings: CommissionSettings | None = None) -> float:
    """Fees on open positions: per trade plus per contract, doubled for round trips."""

    settings = settings or CommissionSettings()
    positions = open_positions(legs)
    trades = len(positions)
    contracts = sum(position.quantity for position in positions)
    factor = 2 if settings.round_trip else 1
    return (trades * settings.per_trade + contracts * settings.per_contract) * factor


__all__ = [
    "ClosedPosition",
    "active_legs",
    "LedgerSummary",
    "LegPnL",
    "OpenPosition",
    "closed_positions",
    "commission",
    "ledger_summary",
    "leg_pnl",
    "open_positions",
    "open_quantity",
    "realized_pnl",
    "total_realized_pnl",
    "unrealized_pnl",
]
