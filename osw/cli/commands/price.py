"""Single-option pricing and IV commands."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import numpy as np
import typer
from rich.console import Console
from rich.table import Table

from osw.cli.loaders import resolve_settings
from osw.cli.validation import require_positive, validate_option_type, validate_price_inputs
from osw.models.options import OptionSpec
from osw.pricing.factory import pricer_factory
from osw.pricing.implied_vol import solve_implied_volatility
from osw.utils.logging import get_logger

console = Console()
log = get_logger(__name__, component="cli.price")


def price(
    option_type: str = typer.Option("call", "--type", help="call or put"),
    spot: float = typer.Option(..., "--spot", help="Underlying price"),
    strike: float = typer.Option(..., "--strike", help="Strike price"),
    days: float = typer.Option(30.0, "--days", help="Calendar days to expiry"),
    vol: Optional[float] = typer.Option(None, "--vol", help="Annualized volatility (default from config)"),
    rate: Optional[float] = typer.Option(None, "--rate", help="Risk-free rate (default from config)"),
    pricer: str = typer.Option("black_scholes", "--pricer", help="Pricer backend"),
    config: Optional[Path] = typer.Option(None, "--config", help="Optional YAML/JSON config path"),
) -> None:
    """Price one option and show its Greeks."""

    option_type = validate_option_type(option_type)
    validate_price_inputs(spot=spot, strike=strike, days=days, volatility=vol)
    settings, _ = resolve_settings(config, {"risk_free_rate": rate})
    sigma = vol if vol is not None else settings.default_volatility

    engine = pricer_factory(pricer).create()
    spec = OptionSpec.from_days(option_type, strike, days, sigma, settings.risk_free_rate, settings.days_per_year)
    value = float(engine.price(np.array([spot]), spec)[0])
    greeks = engine.greeks(spot, strike, spec.time_to_expiry, settings.risk_free_rate, sigma, option_type)

    table = Table(title=f"{option_type.upper()} {strike:g} @ {spot:g} ({days:g}d, vol {sigma:.2%})")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("price", f"{value:.4f}")
    for name, metric in greeks.as_dict().items():
        table.add_row(name, f"{metric:.6f}")
    console.print(table)
    log.info("Priced option", extra={"method": pricer, "strike": strike, "price": value})


def iv(
    market_price: float = typer.Option(..., "--price", help="Observed option price"),
    option_type: str = typer.Option("call", "--type", help="call or put"),
    spot: float = typer.Option(..., "--spot", help="Underlying price"),
    strike: float = typer.Option(..., "--strike", help="Strike price"),
    days: float = typer.Option(30.0, "--days", help="Calendar days to expiry"),
    rate: Optional[float] = typer.Option(None, "--rate", help="Risk-free rate (default from config)"),
    config: Optional[Path] = typer.Option(None, "--config", help="Optional YAML/JSON config path"),
) -> None:
    """Solve the implied volatility of an observed option price."""

    option_type = validate_option_type(option_type)
    validate_price_inputs(spot=spot, strike=strike, days=days, volatility=None)
    require_positive("price", market_price)
    settings, _ = resolve_settings(config, {"risk_free_rate": rate})

    solution = solve_implied_volatility(
        market_price,
        spot,
        strike,
        days / settings.days_per_year,
        option_type,
        settings.risk_free_rate,
        settings=settings,
    )
    table = Table(title="Implied volatility")
    table.add_column("Field")
    table.add_column("Value", justify="right")
    table.add_row("volatility", f"{solution.volatility:.4%}")
    table.add_row("method", solution.method)
    table.add_row("iterations", str(solution.iterations))
    table.add_row("converged", "yes" if solution.converged else "no")
    console.print(table)


__all__ = ["iv", "price"]
