"""Scenario heatmap command."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from osw.cli.loaders import load_strategy, resolve_settings
from osw.cli.validation import parse_as_of, validate_grid_inputs, validate_volatility
from osw.exceptions import ConfigValidationError
from osw.pricing.factory import pricer_factory
from osw.simulation.scenario_grid import ScenarioGrid, generate_scenario_grid
from osw.utils.logging import get_logger

console = Console()
log = get_logger(__name__, component="cli.heatmap")


def _cell(value: float) -> str:
    style = "green" if value > 0 else "red" if value < 0 else "white"
    return f"[{style}]{value:,.0f}[/{style}]"


def _render(grid: ScenarioGrid) -> Table:
    title = f"P/L by price and time (target {grid.target_days:.2f}d)"
    if grid.commission:
        title += f" after {grid.commission:,.2f} commission"
    if grid.date_groups:
        title += " | " + " ".join(f"{g.label}x{g.count}" for g in grid.date_groups)
    table = Table(title=title)
    table.add_column("Price", justify="right")
    for label in grid.column_labels():
        table.add_column(label, justify="right")
    for price, row in zip(grid.prices, grid.pnl):
        table.add_row(f"{price:.2f}", *(_cell(v) for v in row))
    return table


def _parse_days(raw: str | None) -> list[float] | None:
    if not raw:
        return None
    try:
        return [float(part) for part in raw.split(",") if part.strip()]
    except ValueError as exc:
        raise ConfigValidationError(f"--days must be comma separated numbers: {raw}") from exc


def heatmap(
    strategy: Path = typer.Option(..., "--strategy", help="Strategy JSON/YAML file"),
    spot: Optional[float] = typer.Option(None, "--spot", help="Underlying price (overrides file)"),
    vol: Optional[float] = typer.Option(None, "--vol", help="Volatility override for every leg"),
    range_percent: float = typer.Option(14.0, "--range", help="Price range around spot, percent"),
    rows: int = typer.Option(15, "--rows", help="Evenly spaced price rows"),
    days: Optional[str] = typer.Option(None, "--days", help="Comma separated elapsed-day columns"),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Valuation time, ISO8601"),
    pricer: str = typer.Option("black_scholes", "--pricer", help="Pricer backend"),
    fees: bool = typer.Option(True, "--fees/--no-fees", help="Subtract commission from every cell"),
    output: Optional[Path] = typer.Option(None, "--output", help="Write the grid to CSV"),
    config: Optional[Path] = typer.Option(None, "--config", help="Optional YAML/JSON config path"),
) -> None:
    """Render the strategy P/L over price and time."""

    doc = load_strategy(strategy)
    underlying = spot if spot is not None else doc.spot
    validate_grid_inputs(spot=underlying, range_percent=range_percent, rows=rows)
    volatility = vol if vol is not None else doc.volatility
    validate_volatility(volatility)
    moment = parse_as_of(as_of) or doc.as_of or datetime.now()
    settings, schedule = resolve_settings(config, {}, base_commission=doc.commission)
    day_offsets = _parse_days(days)

    grid = generate_scenario_grid(
        doc.legs,
        underlying,
        volatility,
        moment,
        range_percent=range_percent,
        day_offsets=day_offsets,
        rows=rows,
        settings=settings,
        pricer=pricer_factory(pricer).create(),
        fees=schedule if fees else None,
    )
    console.print(_render(grid))

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        grid.to_frame().to_csv(output)
        console.print(f"Grid written to {output}")
    log.info("Heatmap rendered", extra={"symbol": doc.symbol, "rows": grid.shape[0], "columns": grid.shape[1]})


__all__ = ["heatmap"]
