"""CLI input validation helpers."""

from __future__ import annotations

import math
from datetime import datetime

from osw.exceptions import ConfigValidationError


def require_positive(name: str, value: int | float | None) -> None:
    if value is None or not math.isfinite(value) or value <= 0:
        raise ConfigValidationError(f"{name} must be > 0")


def require_non_negative(name: str, value: int | float | None) -> None:
    if value is None or not math.isfinite(value) or value < 0:
        raise ConfigValidationError(f"{name} must be >= 0")


def validate_option_type(option_type: str) -> str:
    normalized = option_type.strip().lower()
    if normalized not in {"call", "put"}:
        raise ConfigValidationError("option type must be 'call' or 'put'")
    return normalized


def validate_volatility(volatility: float | None) -> None:
    if volatility is None:
        return
    if volatility <= 0 or volatility >= 5:
        raise ConfigValidationError("volatility must be between 0 and 5")


def validate_price_inputs(*, spot: float, strike: float, days: float, volatility: float | None) -> None:
    require_positive("spot", spot)
    require_positive("strike", strike)
    require_non_negative("days", days)
    validate_volatility(volatility)


def validate_grid_inputs(*, spot: float | None, range_percent: float, rows: int) -> None:
    require_positive("spot", spot)
    if range_percent <= 0 or range_percent >= 100:
        raise ConfigValidationError("range must be between 0 and 100 percent")
    require_positive("rows", rows)


def parse_as_of(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ConfigValidationError(f"--as-of must be ISO8601 formatted: {raw}") from exc


__all__ = [
    "parse_as_of",
    "require_non_negative",
    "require_positive",
    "validate_grid_inputs",
    "validate_option_type",
    "validate_price_inputs",
    "validate_volatility",
]
