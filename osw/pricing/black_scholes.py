"""Closed-form Black-Scholes valuation and Greeks for European options.

Edge policy:
- ``T <= 0`` or ``sigma <= 0`` values the option at intrinsic with a step
  delta (zero exactly at the strike).
- Non-positive or non-finite spot/strike yields a zero valuation instead of NaN.
- ``d1``/``d2`` are built from log-moneyness and puts use ``N(-d)`` terms, so
  deep ITM/OTM strikes neither overflow nor lose the put price to cancellation.
"""

from __future__ import annotations

import math

import numpy as np
from scipy.stats import norm

from osw.config.settings import DAYS_PER_YEAR, DEFAULT_RISK_FREE_RATE
from osw.exceptions import PricingError
from osw.interfaces.pricing import Greeks, OptionPricer, OptionValuation
from osw.models.options import OptionSpec, OptionType
from osw.utils.logging import get_logger

log = get_logger(__name__, component="pricing.black_scholes")


def _is_positive(value: float) -> bool:
    return math.isfinite(value) and value > 0


def intrinsic_value(spot: float, strike: float, option_type: OptionType) -> float:
    if option_type == "call":
        return max(0.0, spot - strike)
    return max(0.0, strike - spot)


def _expired_valuation(spot: float, strike: float, option_type: OptionType) -> OptionValuation:
    if spot > strike:
        delta = 1.0 if option_type == "call" else 0.0
    elif spot < strike:
        delta = 0.0 if option_type == "call" else -1.0
    else:
        delta = 0.0
    return OptionValuation(price=intrinsic_value(spot, strike, option_type), greeks=Greeks(delta=delta))


def black_scholes(
    spot: float,
    strike: float,
    time_to_expiry: float,
    volatility: float,
    option_type: OptionType,
    rate: float = DEFAULT_RISK_FREE_RATE,
) -> OptionValuation:
    """Price one unit of a European option and return its Greeks.

    Args:
        spot: Underlying price
        strike: Strike price
        time_to_expiry: Years to expiry (0 or negative means expired)
        volatility: Annualized volatility
        option_type: 'call' or 'put'
        rate: Continuously compounded risk-free rate

    Returns:
        OptionValuation with theta per day and vega/rho per percentage point.
    """

    if option_type not in {"call", "put"}:
        raise PricingError("option_type must be 'call' or 'put'")
    if not _is_positive(spot) or not _is_positive(strike):
        log.debug("Invalid spot/strike, returning zero valuation", extra={"spot": spot, "strike": strike})
        return OptionValuation(price=0.0)
    if not math.isfinite(time_to_expiry) or not math.isfinite(volatility):
        return OptionValuation(price=0.0)
    if time_to_expiry <= 0 or volatility <= 0:
        return _expired_valuation(spot, strike, option_type)

    sqrt_t = math.sqrt(time_to_expiry)
    vol_sqrt_t = volatility * sqrt_t
    d1 = (math.log(spot / strike) + (rate + 0.5 * volatility * volatility) * time_to_expiry) / vol_sqrt_t
    d2 = d1 - vol_sqrt_t
    pdf_d1 = float(norm.pdf(d1))
    discount = math.exp(-rate * time_to_expiry)

    if option_type == "call":
        nd1 = float(norm.cdf(d1))
        nd2 = float(norm.cdf(d2))
        price = spot * nd1 - strike * discount * nd2
        delta = nd1
        theta = -spot * pdf_d1 * volatility / (2.0 * sqrt_t) - rate * strike * discount * nd2
        rho = strike * time_to_expiry * discount * nd2
    else:
        n_minus_d1 = float(norm.cdf(-d1))
        n_minus_d2 = float(norm.cdf(-d2))
        price = strike * discount * n_minus_d2 - spot * n_minus_d1
        delta = -n_minus_d1
        theta = -spot * pdf_d1 * volatility / (2.0 * sqrt_t) + rate * strike * discount * n_minus_d2
        rho = -strike * time_to_expiry * discount * n_minus_d2

    greeks = Greeks(
        delta=delta,
        gamma=pdf_d1 / (spot * vol_sqrt_t),
        theta=theta / DAYS_PER_YEAR,
        vega=spot * pdf_d1 * sqrt_t / 100.0,
        rho=rho / 100.0,
    )
    return OptionValuation(price=max(price, 0.0), greeks=greeks)


def raw_vega(spot: float, strike: float, time_to_expiry: float, volatility: float, rate: float) -> float:
    """dPrice/dSigma (not rescaled); zero when the option carries no time value."""

    if not (_is_positive(spot) and _is_positive(strike)) or time_to_expiry <= 0 or volatility <= 0:
        return 0.0
    sqrt_t = math.sqrt(time_to_expiry)
    d1 = (math.log(spot / strike) + (rate + 0.5 * volatility * volatility) * time_to_expiry) / (volatility * sqrt_t)
    return spot * float(norm.pdf(d1)) * sqrt_t


def stock_valuation(spot: float, signed_quantity: float = 1.0) -> OptionValuation:
    """Stock legs bypass the model: price is spot, delta is the signed share count."""

    return OptionValuation(
        price=float(spot) if math.isfinite(spot) else 0.0,
        greeks=Greeks(delta=float(signed_quantity)),
    )


def price_array(spots: np.ndarray, spec: OptionSpec) -> np.ndarray:
    """Vectorised unit prices over an array of hypothetical spots."""

    s = np.asarray(spots, dtype=float)
    strike = spec.strike
    if spec.is_call:
        intrinsic = np.maximum(s - strike, 0.0)
    else:
        intrinsic = np.maximum(strike - s, 0.0)
    if spec.time_to_expiry <= 0 or spec.volatility <= 0:
        return intrinsic

    t = spec.time_to_expiry
    r = spec.risk_free_rate
    discount = math.exp(-r * t)
    out = np.where(np.isfinite(s), 0.0 if spec.is_call else strike * discount, 0.0)
    positive = np.isfinite(s) & (s > 0)
    if not np.any(positive):
        return out

    sp = s[positive]
    vol_sqrt_t = spec.volatility * math.sqrt(t)
    d1 = (np.log(sp / strike) + (r + 0.5 * spec.volatility**2) * t) / vol_sqrt_t
    d2 = d1 - vol_sqrt_t
    if spec.is_call:
        values = sp * norm.cdf(d1) - strike * discount * norm.cdf(d2)
    else:
        values = strike * discount * norm.cdf(-d2) - sp * norm.cdf(-d1)
    out[positive] = np.maximum(values, 0.0)
    return out


class BlackScholesPricer(OptionPricer):
    """Default pricer used by the aggregator, grid and volatility solver."""

    name = "black_scholes"

    def price(self, spots: np.ndarray, option_spec: OptionSpec) -> np.ndarray:
        s = np.asarray(spots, dtype=float)
        if s.ndim != 1:
            raise PricingError("spots must be 1-D")
        return price_array(s, option_spec)

    def greeks(
        self,
        underlying: float,
        strike: float,
        maturity: float,
        rate: float,
        iv: float,
        option_type: OptionType,
    ) -> Greeks:
        return black_scholes(underlying, strike, maturity, iv, option_type, rate).greeks

    def valuation(self, underlying: float, option_spec: OptionSpec) -> OptionValuation:
        return black_scholes(
            underlying,
            option_spec.strike,
            option_spec.time_to_expiry,
            option_spec.volatility,
            option_spec.option_type,
            option_spec.risk_free_rate,
        )


__all__ = [
    "BlackScholesPricer",
    "black_scholes",
    "intrinsic_value",
    "price_array",
    "raw_vega",
    "stock_valuation",
]
