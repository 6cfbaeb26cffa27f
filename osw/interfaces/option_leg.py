"""Shared leg representation for every engine component.

A Leg is an immutable record: edits go through the pure functions in
``osw.positions.updates`` which always return a new Leg. Closing entries are
frozen dataclasses held in a tuple, so the opening price and strike captured
when contracts were closed cannot drift when the leg itself is repriced.

Design decision: quantity is always positive, the sign lives in ``position``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Literal, Union

from osw.config.settings import DEFAULT_SETTINGS, EngineSettings
from osw.exceptions import SchemaError

LegKind = Literal["call", "put", "stock"]
Side = Literal["long", "short"]

# Equity options stop trading at the 16:00 close on expiration day.
EXPIRY_CUTOFF = time(16, 0)


@dataclass(frozen=True, slots=True)
class MarketPremium:
    """Premium taken from a live quote mid."""

    quote_id: str | None = None


@dataclass(frozen=True, slots=True)
class TheoreticalPremium:
    """Premium produced by the pricing model; a placeholder, not a cost basis."""

    volatility: float


@dataclass(frozen=True, slots=True)
class ManualPremium:
    """Premium typed in by the user."""

    entered_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class SavedPremium:
    """Premium restored from a saved or shared strategy."""

    saved_at: datetime | None = None


PremiumSource = Union[MarketPremium, TheoreticalPremium, ManualPremium, SavedPremium]


def provenance_label(source: PremiumSource | None) -> str:
    """Return the short provenance name of a premium source."""

    if source is None:
        return "unset"
    if isinstance(source, MarketPremium):
        return "market"
    if isinstance(source, TheoreticalPremium):
        return "theoretical"
    if isinstance(source, ManualPremium):
        return "manual"
    if isinstance(source, SavedPremium):
        return "saved"
    raise SchemaError(f"Unknown premium source: {type(source).__name__}")


def is_cost_basis_source(source: PremiumSource | None) -> bool:
    """True when the premium reflects a real entry price (market/manual/saved)."""

    if source is None or isinstance(source, TheoreticalPremium):
        return False
    if isinstance(source, (MarketPremium, ManualPremium, SavedPremium)):
        return True
    raise SchemaError(f"Unknown premium source: {type(source).__name__}")


@dataclass(frozen=True, slots=True)
class MarketSnapshot:
    """Last-known quote fields; advisory only."""

    bid: float | None = None
    ask: float | None = None
    mark: float | None = None
    last: float | None = None


@dataclass(frozen=True, slots=True)
class ClosingEntry:
    """One partial close. Opening price and strike are frozen at close time."""

    id: str
    quantity: int
    closing_price: float
    opening_price: float
    strike: float
    closed_at: date | None = None
    excluded: bool = False


@dataclass(frozen=True, slots=True)
class ClosingTransaction:
    """All closes recorded against a leg, in the order they happened."""

    entries: tuple[ClosingEntry, ...] = ()
    enabled: bool = True

    @property
    def total_quantity(self) -> int:
        """Contracts closed, counting excluded entries (they still left the position)."""

        return sum(entry.quantity for entry in self.entries)

    @property
    def average_closing_price(self) -> float | None:
        total = self.total_quantity
        if total <= 0:
            return None
        return sum(entry.closing_price * entry.quantity for entry in self.entries) / total


@dataclass(frozen=True, slots=True)
class Leg:
    """Single option or stock position within a strategy."""

    id: str
    kind: LegKind
    position: Side
    quantity: int
    premium: float
    strike: float = 0.0
    days_to_expiry: float = 30.0
    expiration_date: date | None = None
    source: PremiumSource | None = None
    cost_basis_locked: bool = False
    entry_underlying_price: float | None = None
    implied_vol: float | None = None
    market: MarketSnapshot | None = None
    closing: ClosingTransaction | None = None
    excluded: bool = False
    order: int = 0

    def __post_init__(self) -> None:
        if self.kind not in {"call", "put", "stock"}:
            raise SchemaError("kind must be 'call', 'put' or 'stock'")
        if self.position not in {"long", "short"}:
            raise SchemaError("position must be 'long' or 'short'")

    @property
    def is_option(self) -> bool:
        return self.kind != "stock"

    @property
    def direction(self) -> int:
        return 1 if self.position == "long" else -1

    def contract_size(self, settings: EngineSettings = DEFAULT_SETTINGS) -> int:
        return settings.contract_multiplier if self.is_option else 1

    def basis(self, settings: EngineSettings = DEFAULT_SETTINGS) -> float:
        """Entry price per unit, floored at ``settings.min_premium``."""

        premium = abs(self.premium) if math.isfinite(self.premium) else 0.0
        return max(settings.min_premium, premium)

    @property
    def multiplier(self) -> int:
        return self.contract_size()

    @property
    def cost_basis(self) -> float:
        return self.basis()

    @property
    def has_cost_basis(self) -> bool:
        return is_cost_basis_source(self.source)

    @property
    def closed_quantity(self) -> int:
        if self.closing is None or not self.closing.enabled:
            return 0
        return self.closing.total_quantity

    @property
    def open_quantity(self) -> int:
        return max(0, self.quantity - self.closed_quantity)

    @property
    def is_fully_closed(self) -> bool:
        return self.open_quantity == 0

    @property
    def is_valid(self) -> bool:
        """Structural validity; invalid legs are skipped by every aggregate."""

        if not math.isfinite(self.quantity) or self.quantity <= 0:
            return False
        if self.closed_quantity > self.quantity:
            return False
        if not math.isfinite(self.premium):
            return False
        if self.is_option and (not math.isfinite(self.strike) or self.strike <= 0):
            return False
        if self.closing is not None and any(entry.quantity <= 0 for entry in self.closing.entries):
            return False
        return math.isfinite(self.days_to_expiry)

    def signed_quantity(self) -> int:
        """Return signed open quantity (positive for long, negative for short)."""
        return self.direction * self.open_quantity

    def days_until_expiry(self, as_of: datetime | None = None) -> float:
        """Fractional calendar days left, measured from ``as_of`` when an expiry date is known."""

        if self.expiration_date is None or as_of is None:
            return max(0.0, float(self.days_to_expiry))
        cutoff = datetime.combine(self.expiration_date, EXPIRY_CUTOFF, tzinfo=as_of.tzinfo)
        return max(0.0, (cutoff - as_of).total_seconds() / 86400.0)


__all__ = [
    "ClosingEntry",
    "ClosingTransaction",
    "EXPIRY_CUTOFF",
    "Leg",
    "LegKind",
    "ManualPremium",
    "MarketPremium",
    "MarketSnapshot",
    "PremiumSource",
    "SavedPremium",
    "Side",
    "TheoreticalPremium",
    "is_cost_basis_source",
    "provenance_label",
]
