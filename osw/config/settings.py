"""Engine-wide numeric settings."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping

from osw.exceptions import ConfigValidationError

DEFAULT_RISK_FREE_RATE = 0.05
DEFAULT_VOLATILITY = 0.30
CONTRACT_MULTIPLIER = 100
MIN_PREMIUM = 0.01
DAYS_PER_YEAR = 365.0


@dataclass(frozen=True)
class EngineSettings:
    """Constants shared by the pricing, aggregation and grid components."""

    risk_free_rate: float = DEFAULT_RISK_FREE_RATE
    default_volatility: float = DEFAULT_VOLATILITY
    contract_multiplier: int = CONTRACT_MULTIPLIER
    min_premium: float = MIN_PREMIUM
    days_per_year: float = DAYS_PER_YEAR
    iv_lower_bound: float = 0.01
    iv_upper_bound: float = 5.0
    iv_tolerance: float = 1e-4
    iv_max_iterations: int = 100

    def __post_init__(self) -> None:
        if self.risk_free_rate < -1:
            raise ConfigValidationError("risk_free_rate looks invalid")
        if self.default_volatility <= 0 or self.default_volatility >= 5:
            raise ConfigValidationError("default_volatility must be between 0 and 5")
        if self.contract_multiplier <= 0:
            raise ConfigValidationError("contract_multiplier must be positive")
        if self.min_premium <= 0:
            raise ConfigValidationError("min_premium must be strictly positive")
        if self.days_per_year <= 0:
            raise ConfigValidationError("days_per_year must be positive")
        if not 0 < self.iv_lower_bound < self.iv_upper_bound:
            raise ConfigValidationError("iv bounds must satisfy 0 < lower < upper")
        if self.iv_tolerance <= 0 or self.iv_max_iterations <= 0:
            raise ConfigValidationError("iv_tolerance and iv_max_iterations must be positive")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "EngineSettings":
        """Build settings from a config mapping, ignoring unrelated keys."""

        if not raw:
            return cls()
        known = {f.name: f.type for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in raw.items():
            if key not in known or value is None:
                continue
            try:
                values[key] = int(value) if key in {"contract_multiplier", "iv_max_iterations"} else float(value)
            except (TypeError, ValueError) as exc:
                raise ConfigValidationError(f"{key} must be numeric") from exc
        return cls(**values)


@dataclass(frozen=True)
class CommissionSettings:
    """Broker fee schedule applied to open positions."""

    per_trade: float = 0.0
    per_contract: float = 0.0
    round_trip: bool = False

    def __post_init__(self) -> None:
        if self.per_trade < 0 or self.per_contract < 0:
            raise ConfigValidationError("commission fees cannot be negative")


DEFAULT_SETTINGS = EngineSettings()


__all__ = [
    "CONTRACT_MULTIPLIER",
    "CommissionSettings",
    "DAYS_PER_YEAR",
    "DEFAULT_RISK_FREE_RATE",
    "DEFAULT_SETTINGS",
    "DEFAULT_VOLATILITY",
    "EngineSettings",
    "MIN_PREMIUM",
]
