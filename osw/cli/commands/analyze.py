"""Strategy analysis command: Greeks, risk/reward and ledger."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from osw.cli.loaders import StrategyDocument, load_strategy, resolve_settings
from osw.cli.validation import parse_as_of, require_positive, validate_volatility
from osw.positions.ledger import commission, ledger_summary
from osw.strategy.aggregator import StrategySnapshot, analyze_strategy
from osw.utils.logging import get_logger

console = Console()
log = get_logger(__name__, component="cli.analyze")


def _money(value: float | None, unbounded: str = "unlimited") -> str:
    if value is None:
        return unbounded
    return f"${value:,.2f}"


def _current_prices(doc: StrategyDocument, snapshot: StrategySnapshot) -> dict[str, float]:
    """Market mark when the leg carries one, model value otherwise."""

    prices = dict(snapshot.leg_values)
    for leg in doc.legs:
        if leg.market is not None and leg.market.mark is not None and leg.market.mark > 0:
            prices[leg.id] = leg.market.mark
    return prices


def analyze(
    strategy: Path = typer.Option(..., "--strategy", help="Strategy JSON/YAML file"),
    spot: Optional[float] = typer.Option(None, "--spot", help="Underlying price (overrides file)"),
    vol: Optional[float] = typer.Option(None, "--vol", help="Volatility override for every leg"),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Valuation time, ISO8601"),
    config: Optional[Path] = typer.Option(None, "--config", help="Optional YAML/JSON config path"),
) -> None:
    """Analyse a saved strategy."""

    doc = load_strategy(strategy)
    underlying = spot if spot is not None else doc.spot
    require_positive("spot", underlying)
    volatility = vol if vol is not None else doc.volatility
    validate_volatility(volatility)
    moment = parse_as_of(as_of) or doc.as_of or datetime.now()
    settings, fees = resolve_settings(config, {}, base_commission=doc.commission)

    snapshot = analyze_strategy(doc.legs, underlying, volatility, moment, settings)
    ledger = ledger_summary(doc.legs, _current_prices(doc, snapshot), settings)
    metrics = snapshot.metrics

    title = f"{doc.symbol or 'Strategy'} @ {underlying:g} ({moment:%Y-%m-%d %H:%M})"
    summary = Table(title=title)
    summary.add_column("Metric")
    summary.add_column("Value", justify="right")
    summary.add_row("net premium", _money(metrics.net_premium) + (" credit" if metrics.is_credit else " debit"))
    summary.add_row("max profit", _money(metrics.max_profit))
    summary.add_row("max loss", _money(metrics.max_loss))
    summary.add_row("breakeven", ", ".join(f"{b:.2f}" for b in metrics.breakeven) or "none")
    ratio = metrics.risk_reward_ratio
    summary.add_row("reward/risk", f"{ratio:.2f}" if ratio is not None else "n/a")
    summary.add_row("volatility", f"{snapshot.volatility:.2%}")
    summary.add_row("mark P/L", _money(snapshot.mark_pnl))
    console.print(summary)

    greeks = Table(title="Portfolio Greeks")
    for name in ("delta", "gamma", "theta", "vega", "rho"):
        greeks.add_column(name, justify="right")
    greeks.add_row(*(f"{value:.4f}" for value in snapshot.greeks.as_dict().values()))
    console.print(greeks)

    positions = Table(title="Positions")
    positions.add_column("Leg")
    positions.add_column("Open", justify="right")
    positions.add_column("Closed", justify="right")
    positions.add_column("Realized", justify="right")
    positions.add_column("Unrealized", justify="right")
    for row in ledger.legs:
        positions.add_row(
            f"{row.leg_id} ({row.provenance})",
            str(row.open_quantity),
            str(row.closed_quantity),
            _money(row.realized),
            _money(row.unrealized, unbounded="n/a"),
        )
    console.print(positions)
    console.print(
        f"Realized {_money(ledger.realized)} | "
        f"Unrealized {_money(ledger.unrealized) if ledger.has_unrealized else 'n/a'} | "
        f"Commission {_money(commission(doc.legs, fees))}"
    )
    log.info(
        "Strategy analysed",
        extra={"symbol": doc.symbol, "legs": snapshot.active_count, "excluded": snapshot.excluded_count},
    )


__all__ = ["analyze"]
