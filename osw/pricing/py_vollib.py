"""py_vollib option pricer wrapper (optional backend)."""

from __future__ import annotations

import numpy as np

from osw.exceptions import DependencyError, PricingError
from osw.interfaces.pricing import Greeks, OptionPricer
from osw.models.options import OptionSpec, OptionType


def _require_vollib():
    try:
        from py_vollib.black_scholes_merton import black_scholes_merton
        from py_vollib.black_scholes_merton.greeks import analytical
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise DependencyError("py_vollib is required for PyVollibPricer (pip install osw[vollib])") from exc
    return black_scholes_merton, analytical


class PyVollibPricer(OptionPricer):
    """Cross-check pricer backed by py_vollib's Black-Scholes-Merton (zero dividend yield)."""

    name = "py_vollib"

    def __init__(self) -> None:
        self._price_fn, self._greeks = _require_vollib()

    def price(self, spots: np.ndarray, option_spec: OptionSpec) -> np.ndarray:
        s = np.asarray(spots, dtype=float)
        if s.ndim != 1:
            raise PricingError("spots must be 1-D")

        flag = option_spec.option_type[0]
        t = option_spec.time_to_expiry
        sigma = option_spec.volatility
        strike = option_spec.strike
        if t <= 0 or sigma <= 0:
            intrinsic = s - strike if flag == "c" else strike - s
            return np.maximum(intrinsic, 0.0)

        if np.any(s <= 0):
            raise PricingError("Non-positive spot encountered")

        r = float(option_spec.risk_free_rate)
        try:
            return np.array(
                [
                    self._price_fn(flag, float(spot), strike, t, r, sigma, 0.0) for spot in s
                ]
            )
        except Exception as exc:  # pragma: no cover - library errors
            raise PricingError(f"py_vollib pricing failed: {exc}") from exc

    def greeks(
        self,
        underlying: float,
        strike: float,
        maturity: float,
        rate: float,
        iv: float,
        option_type: OptionType,
    ) -> Greeks:
        if maturity <= 0 or iv <= 0 or underlying <= 0 or strike <= 0:
            return Greeks()
        flag = option_type[0]
        args = (flag, float(underlying), float(strike), float(maturity), float(rate), float(iv), 0.0)
        try:
            return Greeks(
                delta=float(self._greeks.delta(*args)),
                gamma=float(self._greeks.gamma(*args)),
                theta=float(self._greeks.theta(*args)),
                vega=float(self._greeks.vega(*args)),
                rho=float(self._greeks.rho(*args)),
            )
        except Exception as exc:  # pragma: no cover - library errors
            raise PricingError(f"py_vollib greeks failed: {exc}") from exc


__all__ = ["PyVollibPricer"]
