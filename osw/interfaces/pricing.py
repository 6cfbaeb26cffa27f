"""Option pricer interface.

Shared by the strategy aggregator, the scenario grid and the volatility solver
so every component values a leg the same way.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np

from osw.models.options import OptionSpec, OptionType


@dataclass(frozen=True)
class Greeks:
    """Option Greeks bundle.

    Units: theta per calendar day, vega per one volatility point, rho per one
    rate point. Bundles are additive so position and portfolio totals are sums.
    """

    delta: float = 0.0
    gamma: float = 0.0
    theta: float = 0.0
    vega: float = 0.0
    rho: float = 0.0

    def __add__(self, other: "Greeks") -> "Greeks":
        if not isinstance(other, Greeks):
            return NotImplemented
        return Greeks(
            delta=self.delta + other.delta,
            gamma=self.gamma + other.gamma,
            theta=self.theta + other.theta,
            vega=self.vega + other.vega,
            rho=self.rho + other.rho,
        )

    def scaled(self, factor: float) -> "Greeks":
        return Greeks(
            delta=self.delta * factor,
            gamma=self.gamma * factor,
            theta=self.theta * factor,
            vega=self.vega * factor,
            rho=self.rho * factor,
        )

    def as_dict(self) -> dict[str, float]:
        return {
            "delta": self.delta,
            "gamma": self.gamma,
            "theta": self.theta,
            "vega": self.vega,
            "rho": self.rho,
        }


ZERO_GREEKS = Greeks()


@dataclass(frozen=True)
class OptionValuation:
    """Theoretical price and Greeks for one unit of an instrument."""

    price: float
    greeks: Greeks = ZERO_GREEKS


class OptionPricer(ABC):
    """Base option pricer interface.

    Implementations:
    - BlackScholesPricer (default, European exercise, closed form)
    - PyVollibPricer (optional, py_vollib backend)
    """

    @abstractmethod
    def price(self, spots: np.ndarray, option_spec: OptionSpec) -> np.ndarray:
        """Return the unit option value for each hypothetical spot.

        Args:
            spots: Underlying prices of shape (n,)
            option_spec: Option terms (strike, time, volatility, rate)

        Returns:
            Option values of shape (n,)
        """

    @abstractmethod
    def greeks(
        self,
        underlying: float,
        strike: float,
        maturity: float,
        rate: float,
        iv: float,
        option_type: OptionType,
    ) -> Greeks:
        """Compute option Greeks at a single point.

        Args:
            underlying: Current underlying price
            strike: Strike price
            maturity: Time to maturity in years
            rate: Risk-free rate (annualized)
            iv: Volatility (annualized)
            option_type: 'call' or 'put'
        """


__all__ = ["Greeks", "OptionPricer", "OptionValuation", "ZERO_GREEKS"]
