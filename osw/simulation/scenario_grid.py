"""Price x time P/L surface for a strategy.

Rows are hypothetical underlying prices (descending), columns are elapsed
days from ``as_of``. Each cell holds the portfolio P/L if the underlying sat
at that row's price after that column's elapsed time; realized P/L from
closed contracts, less broker commission when a fee schedule is given, is a
constant offset across the whole grid.

The generator never reads the clock: ``as_of`` is the only notion of now.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from osw.config.settings import DEFAULT_SETTINGS, CommissionSettings, EngineSettings
from osw.interfaces.option_leg import Leg
from osw.interfaces.pricing import OptionPricer
from osw.models.options import OptionSpec
from osw.positions.ledger import active_legs, commission, total_realized_pnl
from osw.pricing.black_scholes import BlackScholesPricer
from osw.strategy.aggregator import resolve_volatility, strategy_volatility
from osw.utils.logging import get_logger

log = get_logger(__name__, component="simulation.scenario_grid")

DEFAULT_ROWS = 15
DEFAULT_RANGE_PERCENT = 14.0
DEFAULT_TARGET_DAYS = 30.0
HOUR_MODE_MAX_DAYS = 7
MAX_HOUR_COLUMNS = 15
TODAY_SLOTS = 3
DAILY_HOURS = (9, 15, 21)
# Explicit columns further out than this are clamped.
MAX_OFFSET_DAYS = 3650.0
WEEKDAY_CODES = ("M", "T", "w", "Th", "F", "Sa", "Su")


@dataclass(frozen=True, slots=True)
class DateGroup:
    """Run of consecutive columns falling on the same calendar date."""

    label: str
    date: date
    start: int
    count: int


@dataclass(frozen=True)
class ScenarioGrid:
    pnl: np.ndarray
    prices: np.ndarray
    days: tuple[float, ...]
    use_hours: bool
    target_days: float
    date_groups: tuple[DateGroup, ...] = ()
    realized_offset: float = 0.0
    commission: float = 0.0
    as_of: datetime | None = None

    @property
    def shape(self) -> tuple[int, int]:
        return self.pnl.shape

    def column_labels(self) -> list[str]:
        if self.use_hours:
            return [f"+{round(d * 24)}h" for d in self.days]
        return [f"+{d:g}d" for d in self.days]

    def to_frame(self) -> pd.DataFrame:
        """Rows indexed by price, one column per elapsed-time step."""

        frame = pd.DataFrame(self.pnl, index=pd.Index(self.prices, name="price"), columns=self.column_labels())
        frame.attrs["target_days"] = self.target_days
        frame.attrs["realized_offset"] = self.realized_offset
        frame.attrs["commission"] = self.commission
        return frame


def build_price_rows(
    spot: float,
    range_percent: float = DEFAULT_RANGE_PERCENT,
    rows: int = DEFAULT_ROWS,
    strikes: Iterable[float] = (),
) -> np.ndarray:
    """Evenly spaced prices around spot plus spot and in-range strikes, descending."""

    if not math.isfinite(spot) or spot <= 0 or rows < 1:
        return np.array([], dtype=float)
    width = abs(range_percent) / 100.0
    low, high = spot * (1.0 - width), spot * (1.0 + width)
    base = np.linspace(high, low, rows) if rows > 1 else np.array([spot])
    extras = [spot] + [k for k in strikes if math.isfinite(k) and low <= k <= high]
    values = np.concatenate([base, np.asarray(extras, dtype=float)])
    values = values[values > 0]
    unique = np.unique(np.round(values, 8))
    return unique[::-1].copy()


def _hour_of_day(as_of: datetime | None) -> float:
    if as_of is None:
        return 0.0
    return as_of.hour + as_of.minute / 60.0 + as_of.second / 3600.0


def _day_column_count(target_days: float) -> int:
    if target_days <= 14:
        return 10
    if target_days <= 30:
        return 12
    if target_days <= 60:
        return 14
    return 16


def build_time_steps(target_days: float, as_of: datetime | None = None) -> tuple[tuple[float, ...], bool]:
    """Elapsed-day columns and whether they are sub-day (hour mode).

    Hour mode (target within a week): up to three evenly spaced slots in what
    is left of today, then 09:00/15:00/21:00 on each following day, capped
    at 15 columns, then the expiration itself.
    Day mode: 10/12/14/16 columns for targets up to 14/30/60/longer days.
    """

    target = max(0.0, float(target_days))
    use_hours = target <= HOUR_MODE_MAX_DAYS
    if target <= 0:
        return (0.0,), use_hours

    steps: list[float] = []
    if use_hours:
        total_hours = target * 24.0
        current_hour = _hour_of_day(as_of)
        hours_left_today = 24.0 - current_hour
        slots = min(TODAY_SLOTS, math.ceil(hours_left_today / 3.0))
        step = hours_left_today / slots
        steps.extend(i * step / 24.0 for i in range(slots) if i * step <= total_hours)

        day_offset = 1
        while len(steps) < MAX_HOUR_COLUMNS and day_offset <= math.ceil(target):
            for hour in DAILY_HOURS:
                hours_from_now = day_offset * 24.0 - current_hour + hour
                if 0 < hours_from_now <= total_hours and len(steps) < MAX_HOUR_COLUMNS:
                    steps.append(hours_from_now / 24.0)
            day_offset += 1
    else:
        count = _day_column_count(target)
        day_step = target / (count - 1)
        steps.extend(float(round(i * day_step)) for i in range(count - 1))

    steps.append(target)
    ordered = sorted(set([0.0] + steps))
    return tuple(ordered), use_hours


def _weekday_label(day: date) -> str:
    return f"{day.day} {WEEKDAY_CODES[day.weekday()]}"


def group_columns_by_date(days: Sequence[float], as_of: datetime | None) -> tuple[DateGroup, ...]:
    """Group consecutive columns by the calendar date they land on."""

    if as_of is None:
        return ()
    groups: list[DateGroup] = []
    for idx, offset in enumerate(days):
        when = (as_of + timedelta(hours=round(offset * 24))).date()
        if groups and groups[-1].date == when:
            last = groups[-1]
            groups[-1] = DateGroup(label=last.label, date=last.date, start=last.start, count=last.count + 1)
        else:
            groups.append(DateGroup(label=_weekday_label(when), date=when, start=idx, count=1))
    return tuple(groups)


def _explicit_columns(day_offsets: Sequence[float], target: float) -> tuple[float, ...]:
    columns = {0.0, min(max(0.0, target), MAX_OFFSET_DAYS)}
    for offset in day_offsets:
        value = float(offset)
        if math.isfinite(value):
            columns.add(min(max(0.0, value), MAX_OFFSET_DAYS))
    return tuple(sorted(columns))


def nearest_target_days(legs: Sequence[Leg], as_of: datetime | None = None) -> float:
    """Days to the nearest expiration among open option legs (30 when none)."""

    days = [
        leg.days_until_expiry(as_of)
        for leg in active_legs(legs)
        if leg.is_option and leg.open_quantity > 0
    ]
    return min(days) if days else DEFAULT_TARGET_DAYS


def generate_scenario_grid(
    legs: Sequence[Leg],
    spot: float,
    volatility: float | None = None,
    as_of: datetime | None = None,
    range_percent: float = DEFAULT_RANGE_PERCENT,
    day_offsets: Sequence[float] | None = None,
    rows: int = DEFAULT_ROWS,
    settings: EngineSettings = DEFAULT_SETTINGS,
    pricer: OptionPricer | None = None,
    fees: CommissionSettings | None = None,
) -> ScenarioGrid:
    """Build the P/L surface.

    Args:
        legs: Strategy legs; excluded, invalid and fully closed legs are skipped
        spot: Current underlying price
        volatility: Override applied to every option leg; ``None`` uses leg IVs
        as_of: The moment column 0 represents
        range_percent: Symmetric price range around spot, in percent
        day_offsets: Explicit elapsed-day columns instead of the automatic ones;
            now and the nearest expiration are always added
        rows: Evenly spaced price rows before spot/strikes are merged in
        settings: Rate, day count and default volatility
        pricer: Vectorised pricer, Black-Scholes by default
        fees: Commission schedule subtracted from every cell

    Returns:
        ScenarioGrid with ``pnl[row][col]`` in dollars
    """

    pricer = pricer or BlackScholesPricer()
    active = active_legs(legs)
    open_legs = [leg for leg in active if leg.open_quantity > 0]
    target = nearest_target_days(active, as_of)

    if day_offsets is None:
        days, use_hours = build_time_steps(target, as_of)
    else:
        days = _explicit_columns(day_offsets, target)
        use_hours = target <= HOUR_MODE_MAX_DAYS

    strikes = [leg.strike for leg in open_legs if leg.is_option]
    prices = build_price_rows(spot, range_percent, rows, strikes)
    realized = total_realized_pnl(active, settings)
    fee_total = commission(active, fees) if fees is not None else 0.0
    pnl = np.full((prices.size, len(days)), realized - fee_total, dtype=float)

    fallback = strategy_volatility(active, settings)
    for leg in open_legs:
        scale = leg.direction * leg.open_quantity * leg.contract_size(settings)
        basis = leg.basis(settings)
        if not leg.is_option:
            pnl += scale * (prices - basis)[:, None]
            continue
        sigma = resolve_volatility(leg, volatility, fallback)
        leg_days = leg.days_until_expiry(as_of)
        for col, elapsed in enumerate(days):
            spec = OptionSpec.from_days(
                leg.kind,
                leg.strike,
                max(0.0, leg_days - elapsed),
                sigma,
                settings.risk_free_rate,
                settings.days_per_year,
            )
            pnl[:, col] += scale * (pricer.price(prices, spec) - basis)

    log.debug(
        "Scenario grid built",
        extra={"rows": prices.size, "columns": len(days), "use_hours": use_hours, "target_days": target},
    )
    return ScenarioGrid(
        pnl=pnl,
        prices=prices,
        days=days,
        use_hours=use_hours,
        target_days=target,
        date_groups=group_columns_by_date(days, as_of),
        realized_offset=realized,
        commission=fee_total,
        as_of=as_of,
    )


__all__ = [
    "DateGroup",
    "MAX_OFFSET_DAYS",
    "ScenarioGrid",
    "build_price_rows",
    "build_time_steps",
    "generate_scenario_grid",
    "group_columns_by_date",
    "nearest_target_days",
]
