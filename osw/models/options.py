"""Option contract terms consumed by pricers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal

from osw.config.settings import DAYS_PER_YEAR, DEFAULT_RISK_FREE_RATE
from osw.exceptions import PricingError

OptionType = Literal["call", "put"]


@dataclass(frozen=True, slots=True)
class OptionSpec:
    """European option terms; time is in years and may be zero."""

    option_type: OptionType
    strike: float
    time_to_expiry: float
    volatility: float
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE

    def __post_init__(self) -> None:
        if self.option_type not in {"call", "put"}:
            raise PricingError("option_type must be 'call' or 'put'")
        if not math.isfinite(self.strike) or self.strike <= 0:
            raise PricingError("strike must be positive")
        if not math.isfinite(self.time_to_expiry):
            raise PricingError("time_to_expiry must be finite")
        if not math.isfinite(self.volatility):
            raise PricingError("volatility must be finite")
        if self.risk_free_rate < -1:
            raise PricingError("risk_free_rate looks invalid")

    @property
    def is_call(self) -> bool:
        return self.option_type == "call"

    @classmethod
    def from_days(
        cls,
        option_type: OptionType,
        strike: float,
        days: float,
        volatility: float,
        risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
        days_per_year: float = DAYS_PER_YEAR,
    ) -> "OptionSpec":
        return cls(
            option_type=option_type,
            strike=float(strike),
            time_to_expiry=max(float(days), 0.0) / days_per_year,
            volatility=float(volatility),
            risk_free_rate=float(risk_free_rate),
        )


__all__ = ["OptionSpec", "OptionType"]
