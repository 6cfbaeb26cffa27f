"""Strategy and option-chain file decoding for the CLI.

Strategy files are JSON or YAML documents::

    symbol: AAPL
    spot: 185.0
    as_of: "2026-10-16T10:30:00"
    legs:
      - id: c185
        kind: call
        position: long
        strike: 185
        quantity: 1
        premium: 5.00
        expiration_date: "2026-11-15"
        source: manual
        closing:
          entries:
            - {id: c1, quantity: 1, closing_price: 7.5}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Mapping

import pandas as pd
import yaml

from osw.config.loader import load_config_with_precedence
from osw.config.settings import CommissionSettings, EngineSettings
from osw.exceptions import ConfigValidationError, SchemaError, WorkbenchError
from osw.interfaces.option_leg import (
    ClosingEntry,
    ClosingTransaction,
    Leg,
    ManualPremium,
    MarketPremium,
    MarketSnapshot,
    PremiumSource,
    SavedPremium,
    TheoreticalPremium,
)
from osw.market.chain import OptionQuote, quotes_from_frame

ENV_PREFIX = "OSW_"

SETTINGS_DEFAULTS: dict[str, Any] = {
    "risk_free_rate": None,
    "default_volatility": None,
    "contract_multiplier": None,
    "min_premium": None,
    "per_trade": None,
    "per_contract": None,
    "round_trip": None,
}


@dataclass
class StrategyDocument:
    symbol: str
    legs: list[Leg]
    spot: float | None = None
    as_of: datetime | None = None
    volatility: float | None = None
    commission: CommissionSettings = field(default_factory=CommissionSettings)


def _read_mapping(path: Path) -> Any:
    if not path.exists():
        raise SchemaError(f"File not found: {path}")
    text = path.read_text()
    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            return json.loads(text)
        if suffix in {".yml", ".yaml"}:
            return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise SchemaError(f"Could not parse {path}: {exc}") from exc
    raise SchemaError("Strategy file must be JSON or YAML")


def _parse_datetime(raw: Any, field_name: str) -> datetime | None:
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, date):
        return datetime.combine(raw, datetime.min.time())
    if not isinstance(raw, str):
        raise SchemaError(f"{field_name} must be an ISO8601 string")
    try:
        return datetime.fromisoformat(raw)
    except ValueError as exc:
        raise SchemaError(f"{field_name} must be ISO8601 formatted") from exc


def _parse_date(raw: Any, field_name: str) -> date | None:
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str):
        raise SchemaError(f"{field_name} must be a YYYY-MM-DD string")
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise SchemaError(f"{field_name} must be YYYY-MM-DD formatted") from exc


def _optional_float(raw: Any, field_name: str) -> float | None:
    if raw is None:
        return None
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise SchemaError(f"{field_name} must be numeric") from exc


def _parse_source(raw: Any) -> PremiumSource | None:
    if raw is None:
        return None
    payload = {"type": raw} if isinstance(raw, str) else raw
    if not isinstance(payload, dict):
        raise SchemaError("source must be a string or an object with a 'type'")
    kind = str(payload.get("type", "")).lower()
    if kind == "market":
        quote_id = payload.get("quote_id")
        return MarketPremium(quote_id=str(quote_id) if quote_id else None)
    if kind == "theoretical":
        return TheoreticalPremium(volatility=_optional_float(payload.get("volatility"), "source.volatility") or 0.0)
    if kind == "manual":
        return ManualPremium(entered_at=_parse_datetime(payload.get("entered_at"), "source.entered_at"))
    if kind == "saved":
        return SavedPremium(saved_at=_parse_datetime(payload.get("saved_at"), "source.saved_at"))
    raise SchemaError(f"Unknown premium source: {kind or raw!r}")


def _parse_market(raw: Any) -> MarketSnapshot | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise SchemaError("market must be an object")
    return MarketSnapshot(**{k: _optional_float(raw.get(k), f"market.{k}") for k in ("bid", "ask", "mark", "last")})


def _parse_closing(raw: Any, leg_id: str, premium: float, strike: float) -> ClosingTransaction | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise SchemaError("closing must be an object")
    entries = []
    for idx, item in enumerate(raw.get("entries") or [], start=1):
        if not isinstance(item, dict):
            raise SchemaError("closing entries must be objects")
        missing = [name for name in ("quantity", "closing_price") if name not in item]
        if missing:
            raise SchemaError(f"closing entry is missing required fields: {', '.join(missing)}")
        opening = _optional_float(item.get("opening_price"), "opening_price")
        entry_strike = _optional_float(item.get("strike"), "strike")
        try:
            quantity = int(item["quantity"])
            closing_price = float(item["closing_price"])
        except (TypeError, ValueError) as exc:
            raise SchemaError(f"closing entry on leg {leg_id} has a non-numeric field: {exc}") from exc
        entries.append(
            ClosingEntry(
                id=str(item.get("id") or f"{leg_id}-close-{idx}"),
                quantity=quantity,
                closing_price=closing_price,
                opening_price=premium if opening is None else opening,
                strike=strike if entry_strike is None else entry_strike,
                closed_at=_parse_date(item.get("closed_at"), "closed_at"),
                excluded=bool(item.get("excluded", False)),
            )
        )
    return ClosingTransaction(entries=tuple(entries), enabled=bool(raw.get("enabled", True)))


def _load_leg(raw_leg: Any, order: int) -> Leg:
    if not isinstance(raw_leg, dict):
        raise SchemaError("each leg must be an object")
    kind = str(raw_leg.get("kind", raw_leg.get("type", ""))).lower()
    required = ["position", "quantity", "premium"] + (["strike"] if kind != "stock" else [])
    missing = [name for name in required if name not in raw_leg]
    if missing:
        raise SchemaError(f"leg is missing required fields: {', '.join(missing)}")

    leg_id = str(raw_leg.get("id") or f"leg-{order + 1}")
    try:
        premium = float(raw_leg["premium"])
        strike = float(raw_leg.get("strike", 0.0))
        quantity = int(raw_leg["quantity"])
        days = float(raw_leg.get("days_to_expiry", 30.0))
        position_order = int(raw_leg.get("order", order))
    except (TypeError, ValueError) as exc:
        raise SchemaError(f"leg {leg_id} has a non-numeric field: {exc}") from exc

    return Leg(
        id=leg_id,
        kind=kind,
        position=str(raw_leg["position"]).lower(),
        quantity=quantity,
        premium=premium,
        strike=strike,
        days_to_expiry=days,
        expiration_date=_parse_date(raw_leg.get("expiration_date"), "expiration_date"),
        source=_parse_source(raw_leg.get("source")),
        cost_basis_locked=bool(raw_leg.get("locked", raw_leg.get("cost_basis_locked", False))),
        entry_underlying_price=_optional_float(raw_leg.get("entry_underlying_price"), "entry_underlying_price"),
        implied_vol=_optional_float(raw_leg.get("implied_vol"), "implied_vol"),
        market=_parse_market(raw_leg.get("market")),
        closing=_parse_closing(raw_leg.get("closing"), leg_id, premium, strike),
        excluded=bool(raw_leg.get("excluded", False)),
        order=position_order,
    )


def _load_commission(raw: Any) -> CommissionSettings:
    if raw is None:
        return CommissionSettings()
    if not isinstance(raw, dict):
        raise SchemaError("commission must be an object")
    try:
        return CommissionSettings(
            per_trade=float(raw.get("per_trade", 0.0)),
            per_contract=float(raw.get("per_contract", 0.0)),
            round_trip=bool(raw.get("round_trip", False)),
        )
    except WorkbenchError as exc:
        raise SchemaError(str(exc)) from exc


def parse_strategy(raw: Any) -> StrategyDocument:
    if not isinstance(raw, dict):
        raise SchemaError("strategy must be an object")
    raw_legs = raw.get("legs")
    if not isinstance(raw_legs, list):
        raise SchemaError("legs must be an array")
    return StrategyDocument(
        symbol=str(raw.get("symbol") or ""),
        legs=[_load_leg(item, idx) for idx, item in enumerate(raw_legs)],
        spot=_optional_float(raw.get("spot"), "spot"),
        as_of=_parse_datetime(raw.get("as_of"), "as_of"),
        volatility=_optional_float(raw.get("volatility"), "volatility"),
        commission=_load_commission(raw.get("commission")),
    )


def load_strategy(path: str | Path) -> StrategyDocument:
    """Load and validate a strategy JSON/YAML file."""

    return parse_strategy(_read_mapping(Path(path)))


def load_chain(path: str | Path) -> list[OptionQuote]:
    """Load option-chain quotes from CSV or JSON records."""

    chain_path = Path(path)
    if not chain_path.exists():
        raise SchemaError(f"Chain file not found: {chain_path}")
    if chain_path.suffix.lower() == ".json":
        frame = pd.read_json(chain_path)
    elif chain_path.suffix.lower() == ".csv":
        frame = pd.read_csv(chain_path)
    else:
        raise SchemaError("Chain file must be CSV or JSON")
    return quotes_from_frame(frame)


def resolve_settings(
    config_path: Path | None,
    cli_values: Mapping[str, Any],
    base_commission: CommissionSettings | None = None,
) -> tuple[EngineSettings, CommissionSettings]:
    """Engine and commission settings from defaults < file < OSW_* env < CLI."""

    base_commission = base_commission or CommissionSettings()
    cfg = load_config_with_precedence(
        config_path=config_path,
        env_prefix=ENV_PREFIX,
        cli_values=cli_values,
        defaults=SETTINGS_DEFAULTS,
        casters={
            "risk_free_rate": float,
            "default_volatility": float,
            "contract_multiplier": int,
            "min_premium": float,
            "per_trade": float,
            "per_contract": float,
            "round_trip": lambda v: v if isinstance(v, bool) else str(v).lower() in {"1", "true", "yes"},
        },
    )
    engine = EngineSettings.from_mapping(cfg)
    try:
        commission = CommissionSettings(
            per_trade=float(_pick(cfg, "per_trade", base_commission.per_trade)),
            per_contract=float(_pick(cfg, "per_contract", base_commission.per_contract)),
            round_trip=bool(_pick(cfg, "round_trip", base_commission.round_trip)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigValidationError(f"Invalid commission settings: {exc}") from exc
    return engine, commission


def _pick(raw: Mapping[str, Any], key: str, default: Any) -> Any:
    value = raw.get(key)
    return default if value is None else value


__all__ = [
    "StrategyDocument",
    "load_chain",
    "load_strategy",
    "parse_strategy",
    "resolve_settings",
]
