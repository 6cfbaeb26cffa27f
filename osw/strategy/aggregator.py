"""Multi-leg aggregation: portfolio Greeks, net premium and risk/reward metrics.

Expiration payoff of options plus stock is piecewise linear in the
underlying with kinks only at strikes, so max profit/loss and breakevens are
read off the knots (price floor 0 plus every open strike) and the slope of
the tail above the highest strike. Below the lowest strike the payoff is
bounded by S = 0, which is why a naked short put has a finite max loss.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from osw.config.settings import DEFAULT_SETTINGS, EngineSettings
from osw.interfaces.option_leg import Leg
from osw.interfaces.pricing import Greeks, OptionValuation, ZERO_GREEKS
from osw.positions.ledger import active_legs, total_realized_pnl
from osw.pricing.black_scholes import black_scholes, intrinsic_value, stock_valuation
from osw.utils.logging import get_logger

log = get_logger(__name__, component="strategy.aggregator")

IV_SANE_RANGE = (0.05, 2.0)
_ZERO_PAYOFF = 1e-9
_BREAKEVEN_RTOL = 1e-6


@dataclass(frozen=True, slots=True)
class StrategyMetrics:
    """Risk/reward at expiration. ``None`` bounds mean unbounded."""

    max_profit: float | None
    max_loss: float | None
    breakeven: tuple[float, ...]
    net_premium: float
    risk_reward_ratio: float | None

    @property
    def is_credit(self) -> bool:
        return self.net_premium > 0


EMPTY_METRICS = StrategyMetrics(
    max_profit=0.0, max_loss=0.0, breakeven=(), net_premium=0.0, risk_reward_ratio=None
)


@dataclass(frozen=True, slots=True)
class StrategySnapshot:
    greeks: Greeks
    metrics: StrategyMetrics
    net_premium: float
    volatility: float
    mark_pnl: float
    realized_pnl: float
    active_count: int
    excluded_count: int
    leg_values: dict[str, float] = field(default_factory=dict)


def strategy_volatility(legs: Sequence[Leg], settings: EngineSettings = DEFAULT_SETTINGS) -> float:
    """Quantity-weighted IV of the option legs.

    Leg IVs outside 5%-200% are treated as bad quotes and ignored unless no
    other leg carries an IV; with no IV at all the default volatility is used.
    """

    quoted = [
        leg
        for leg in active_legs(legs)
        if leg.is_option and leg.implied_vol is not None and math.isfinite(leg.implied_vol) and leg.implied_vol > 0
    ]
    lo, hi = IV_SANE_RANGE
    sane = [leg for leg in quoted if lo <= leg.implied_vol <= hi]
    pool = sane or quoted
    total = sum(leg.quantity for leg in pool)
    if total <= 0:
        return settings.default_volatility
    return sum(leg.implied_vol * leg.quantity for leg in pool) / total


def resolve_volatility(leg: Leg, override: float | None, fallback: float) -> float:
    """Explicit override first, then the leg's own IV, then the strategy IV."""

    if override is not None and math.isfinite(override) and override > 0:
        return override
    if leg.implied_vol is not None and math.isfinite(leg.implied_vol) and leg.implied_vol > 0:
        return leg.implied_vol
    return fallback


def leg_valuation(
    leg: Leg,
    spot: float,
    volatility: float,
    days: float,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> OptionValuation:
    """Unit valuation of a leg ``days`` before its expiry."""

    if not leg.is_option:
        return stock_valuation(spot)
    return black_scholes(
        spot, leg.strike, max(days, 0.0) / settings.days_per_year, volatility, leg.kind, settings.risk_free_rate
    )


def portfolio_greeks(
    legs: Sequence[Leg],
    spot: float,
    volatility: float | None = None,
    as_of: datetime | None = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> Greeks:
    """Signed sum of position Greeks over the open quantity of every active leg."""

    active = active_legs(legs)
    fallback = strategy_volatility(active, settings)
    total = ZERO_GREEKS
    for leg in active:
        if leg.open_quantity <= 0:
            continue
        if not leg.is_option:
            total = total + stock_valuation(spot, leg.signed_quantity()).greeks
            continue
        sigma = resolve_volatility(leg, volatility, fallback)
        unit = leg_valuation(leg, spot, sigma, leg.days_until_expiry(as_of), settings).greeks
        total = total + unit.scaled(leg.signed_quantity() * leg.contract_size(settings))
    return total


def net_premium(legs: Sequence[Leg], settings: EngineSettings = DEFAULT_SETTINGS) -> float:
    """Net premium cash flow; positive is a credit.

    Open contracts count at the floored cost basis the payoff uses; closed
    contracts count at their frozen opening price less the closing price
    received or paid.
    """

    total = 0.0
    for leg in active_legs(legs):
        size = leg.contract_size(settings)
        total -= leg.direction * leg.basis(settings) * leg.open_quantity * size
        if leg.closing is None or not leg.closing.enabled:
            continue
        for entry in leg.closing.entries:
            if entry.excluded:
                continue
            total += leg.direction * (entry.closing_price - entry.opening_price) * entry.quantity * size
    return total


def _open_payoff(legs: Sequence[Leg], price: float, settings: EngineSettings) -> float:
    pnl = 0.0
    for leg in legs:
        if leg.open_quantity <= 0:
            continue
        value = intrinsic_value(price, leg.strike, leg.kind) if leg.is_option else price
        scale = leg.direction * leg.open_quantity * leg.contract_size(settings)
        pnl += scale * (value - leg.basis(settings))
    return pnl


def expiration_payoff(legs: Sequence[Leg], price: float, settings: EngineSettings = DEFAULT_SETTINGS) -> float:
    """Strategy P/L at expiration if the underlying settles at ``price``."""

    active = active_legs(legs)
    return _open_payoff(active, price, settings) + total_realized_pnl(active, settings)


def _tail_slope(legs: Sequence[Leg], settings: EngineSettings) -> float:
    """Payoff slope above the highest strike: calls and stock only."""

    slope = 0.0
    for leg in legs:
        if leg.open_quantity > 0 and leg.kind in {"call", "stock"}:
            slope += leg.direction * leg.open_quantity * leg.contract_size(settings)
    return slope


def _dedupe(values: list[float]) -> tuple[float, ...]:
    out: list[float] = []
    for value in sorted(values):
        if out and abs(value - out[-1]) <= _BREAKEVEN_RTOL * max(1.0, abs(out[-1])):
            continue
        out.append(value)
    return tuple(out)


def _breakevens(knots: list[float], values: list[float], slope: float) -> tuple[float, ...]:
    found: list[float] = []
    n = len(knots)
    for i in range(n - 1):
        a, b = knots[i], knots[i + 1]
        fa, fb = values[i], values[i + 1]
        if fa * fb < 0 and abs(fa) > _ZERO_PAYOFF and abs(fb) > _ZERO_PAYOFF:
            found.append(a + (b - a) * (-fa) / (fb - fa))

    for i in range(1, n):
        if abs(values[i]) > _ZERO_PAYOFF:
            continue
        left = values[i - 1]
        right = values[i + 1] if i + 1 < n else slope
        if abs(left) <= _ZERO_PAYOFF or abs(right) <= _ZERO_PAYOFF or left * right < 0:
            found.append(knots[i])

    last, f_last = knots[-1], values[-1]
    if slope != 0 and abs(f_last) > _ZERO_PAYOFF and f_last * slope < 0:
        found.append(last - f_last / slope)
    return _dedupe([x for x in found if x > 0])


def strategy_metrics(
    legs: Sequence[Leg],
    spot: float | None = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> StrategyMetrics:
    """Max profit/loss, breakevens and net premium at expiration.

    ``spot`` is accepted for callers that track it; the knot analysis is
    exact and does not need a sampling window around it.
    """

    active = active_legs(legs)
    premium = net_premium(active, settings)
    if not active:
        return EMPTY_METRICS

    realized = total_realized_pnl(active, settings)
    strikes = {leg.strike for leg in active if leg.is_option and leg.open_quantity > 0}
    knots = sorted({0.0} | strikes)
    values = [_open_payoff(active, k, settings) + realized for k in knots]
    slope = _tail_slope(active, settings)

    max_profit: float | None = None if slope > 0 else max(0.0, max(values))
    max_loss: float | None = None if slope < 0 else max(0.0, -min(values))
    ratio = None
    if max_profit is not None and max_loss is not None and max_loss > 0:
        ratio = max_profit / max_loss

    return StrategyMetrics(
        max_profit=max_profit,
        max_loss=max_loss,
        breakeven=_breakevens(knots, values, slope),
        net_premium=premium,
        risk_reward_ratio=ratio,
    )


def mark_to_model_pnl(
    legs: Sequence[Leg],
    spot: float,
    volatility: float | None = None,
    as_of: datetime | None = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> float:
    """Realized plus theoretical unrealized P/L at ``spot`` right now."""

    active = active_legs(legs)
    fallback = strategy_volatility(active, settings)
    pnl = total_realized_pnl(active, settings)
    for leg in active:
        if leg.open_quantity <= 0:
            continue
        sigma = resolve_volatility(leg, volatility, fallback)
        value = leg_valuation(leg, spot, sigma, leg.days_until_expiry(as_of), settings).price
        scale = leg.direction * leg.open_quantity * leg.contract_size(settings)
        pnl += scale * (value - leg.basis(settings))
    return pnl


def analyze_strategy(
    legs: Sequence[Leg],
    spot: float,
    volatility: float | None = None,
    as_of: datetime | None = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> StrategySnapshot:
    """Bundle every aggregate a caller renders for a strategy."""

    active = active_legs(legs)
    fallback = strategy_volatility(active, settings)
    leg_values = {}
    for leg in active:
        sigma = resolve_volatility(leg, volatility, fallback)
        leg_values[leg.id] = leg_valuation(leg, spot, sigma, leg.days_until_expiry(as_of), settings).price

    metrics = strategy_metrics(active, spot, settings)
    log.debug(
        "Strategy analysed",
        extra={"legs": len(active), "max_profit": metrics.max_profit, "max_loss": metrics.max_loss},
    )
    return StrategySnapshot(
        greeks=portfolio_greeks(active, spot, volatility, as_of, settings),
        metrics=metrics,
        net_premium=metrics.net_premium,
        volatility=volatility if volatility is not None else fallback,
        mark_pnl=mark_to_model_pnl(active, spot, volatility, as_of, settings),
        realized_pnl=total_realized_pnl(active, settings),
        active_count=len(active),
        excluded_count=sum(1 for leg in legs if leg.excluded),
        leg_values=leg_values,
    )


__all__ = [
    "EMPTY_METRICS",
    "StrategyMetrics",
    "StrategySnapshot",
    "analyze_strategy",
    "expiration_payoff",
    "leg_valuation",
    "mark_to_model_pnl",
    "net_premium",
    "portfolio_greeks",
    "resolve_volatility",
    "strategy_metrics",
    "strategy_volatility",
]
