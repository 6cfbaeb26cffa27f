"""Implied volatility inversion.

Newton-Raphson on raw vega first; when vega vanishes, a step leaves the
search interval or the iteration cap is hit, a bracketed root find (Brent)
takes over. Anything that cannot be inverted degrades to the default
volatility so callers never see NaN.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal

from scipy.optimize import brentq

from osw.config.settings import DEFAULT_RISK_FREE_RATE, DEFAULT_SETTINGS, EngineSettings
from osw.market.chain import OptionQuote, quote_mid
from osw.models.options import OptionType
from osw.pricing.black_scholes import black_scholes, raw_vega
from osw.utils.logging import get_logger

log = get_logger(__name__, component="pricing.implied_vol")

SolveMethod = Literal["newton", "brentq", "fallback"]

_MIN_VEGA = 1e-10


@dataclass(frozen=True, slots=True)
class IVSolution:
    volatility: float
    method: SolveMethod
    iterations: int
    converged: bool


def no_arbitrage_bounds(
    spot: float, strike: float, time_to_expiry: float, option_type: OptionType, rate: float
) -> tuple[float, float]:
    """Lower/upper price bounds for a European option."""

    discount_strike = strike * math.exp(-rate * time_to_expiry)
    if option_type == "call":
        return max(0.0, spot - discount_strike), spot
    return max(0.0, discount_strike - spot), discount_strike


def _fallback(settings: EngineSettings, reason: str, iterations: int = 0) -> IVSolution:
    log.debug("IV solver fallback", extra={"method": "fallback", "reason": reason})
    return IVSolution(settings.default_volatility, "fallback", iterations, False)


def solve_implied_volatility(
    price: float,
    spot: float,
    strike: float,
    time_to_expiry: float,
    option_type: OptionType,
    rate: float = DEFAULT_RISK_FREE_RATE,
    *,
    initial_guess: float | None = None,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> IVSolution:
    """Invert a market price into the volatility that reproduces it.

    Args:
        price: Observed option price (per unit)
        spot: Underlying price
        strike: Strike price
        time_to_expiry: Years to expiry
        option_type: 'call' or 'put'
        rate: Risk-free rate
        initial_guess: Newton seed, defaults to ``settings.default_volatility``
        settings: Tolerance, iteration cap and search interval

    Returns:
        IVSolution; ``method == "fallback"`` means the default volatility was used.
    """

    values = (price, spot, strike, time_to_expiry, rate)
    if not all(math.isfinite(v) for v in values):
        return _fallback(settings, "non-finite input")
    if time_to_expiry <= 0:
        return _fallback(settings, "expired")
    if price <= 0 or spot <= 0 or strike <= 0:
        return _fallback(settings, "non-positive input")

    lower_price, upper_price = no_arbitrage_bounds(spot, strike, time_to_expiry, option_type, rate)
    if price < lower_price or price >= upper_price:
        return _fallback(settings, "outside no-arbitrage bounds")

    lo, hi = settings.iv_lower_bound, settings.iv_upper_bound
    tolerance = settings.iv_tolerance
    sigma = initial_guess if initial_guess is not None else settings.default_volatility
    iterations = 0

    for iterations in range(1, settings.iv_max_iterations + 1):
        diff = black_scholes(spot, strike, time_to_expiry, sigma, option_type, rate).price - price
        if abs(diff) < tolerance:
            return IVSolution(sigma, "newton", iterations, True)
        vega = raw_vega(spot, strike, time_to_expiry, sigma, rate)
        if vega < _MIN_VEGA:
            break
        sigma = sigma - diff / vega
        if not math.isfinite(sigma) or sigma < lo or sigma > hi:
            break

    def objective(vol: float) -> float:
        return black_scholes(spot, strike, time_to_expiry, vol, option_type, rate).price - price

    f_lo, f_hi = objective(lo), objective(hi)
    if f_lo * f_hi > 0:
        return _fallback(settings, "no bracket", iterations)

    try:
        root, result = brentq(
            objective, lo, hi, xtol=1e-8, maxiter=settings.iv_max_iterations, full_output=True
        )
    except (RuntimeError, ValueError) as exc:
        log.debug("Bracketed IV search failed", extra={"method": "brentq", "error": str(exc)})
        return _fallback(settings, "brentq failed", iterations)

    if not result.converged:
        return _fallback(settings, "brentq did not converge", iterations + result.iterations)
    return IVSolution(float(root), "brentq", iterations + result.iterations, True)


def implied_volatility(
    price: float,
    spot: float,
    strike: float,
    time_to_expiry: float,
    option_type: OptionType,
    rate: float = DEFAULT_RISK_FREE_RATE,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> float:
    return solve_implied_volatility(
        price, spot, strike, time_to_expiry, option_type, rate, settings=settings
    ).volatility


def volatility_from_quote(
    quote: OptionQuote,
    spot: float | None = None,
    time_to_expiry: float = 30.0 / 365.0,
    rate: float = DEFAULT_RISK_FREE_RATE,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> IVSolution:
    """Solve IV from a chain quote's mid, preferring the vendor IV when solving fails."""

    underlying = spot if spot is not None and spot > 0 else quote.underlying_price
    mid = quote_mid(quote)
    if mid is None or underlying is None or underlying <= 0:
        solution = _fallback(settings, "quote has no usable price")
    else:
        solution = solve_implied_volatility(
            mid, underlying, quote.strike, time_to_expiry, quote.side, rate, settings=settings
        )
    if not solution.converged and quote.implied_vol is not None and quote.implied_vol > 0:
        return IVSolution(float(quote.implied_vol), "fallback", solution.iterations, False)
    return solution


__all__ = [
    "IVSolution",
    "implied_volatility",
    "no_arbitrage_bounds",
    "solve_implied_volatility",
    "volatility_from_quote",
]
