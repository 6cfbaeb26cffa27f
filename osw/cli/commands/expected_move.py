"""Expected move command."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from osw.cli.loaders import load_chain
from osw.cli.validation import parse_as_of, require_positive, validate_volatility
from osw.market.expected_move import (
    ExpectedMoveCache,
    frozen_expected_move,
    volatility_expected_move,
)
from osw.utils.logging import get_logger

console = Console()
log = get_logger(__name__, component="cli.expected_move")

_CACHE = ExpectedMoveCache()


def _fmt(value: float | None) -> str:
    return "n/a" if value is None else f"{value:.2f}"


def expected_move(
    chain: Path = typer.Option(..., "--chain", help="Option chain CSV/JSON"),
    spot: Optional[float] = typer.Option(None, "--spot", help="Underlying price (defaults to the chain's)"),
    symbol: str = typer.Option("", "--symbol", help="Underlying symbol"),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Valuation time, ISO8601"),
    vol: Optional[float] = typer.Option(None, "--vol", help="Also show the 1SD/2SD range for this volatility"),
) -> None:
    """Market-implied expected move for the chain's nearest expiration."""

    quotes = load_chain(chain)
    underlying = spot
    if underlying is None:
        underlying = next((q.underlying_price for q in quotes if q.underlying_price > 0), None)
    require_positive("spot", underlying)
    validate_volatility(vol)
    moment = parse_as_of(as_of) or datetime.now()

    move = frozen_expected_move(_CACHE, quotes, underlying, symbol, moment)
    if move is None:
        console.print("[yellow]No ATM quotes available; expected move unavailable[/yellow]")
        log.warning("Expected move unavailable", extra={"symbol": symbol})
        return

    table = Table(title=f"Expected move {symbol or ''} {move.expiration or ''}".strip())
    table.add_column("Field")
    table.add_column("Value", justify="right")
    table.add_row("expected move", f"+/-{move.expected_move:.2f} ({move.move_percent:.2f}%)")
    table.add_row("range", f"{move.lower_bound:.2f} - {move.upper_bound:.2f}")
    table.add_row("ATM strike", f"{move.atm_strike:g}")
    table.add_row("ATM call/put", f"{move.atm_call:.2f} / {move.atm_put:.2f}")
    table.add_row("OTM1 strangle", _fmt(move.otm1_strangle))
    table.add_row("OTM2 strangle", _fmt(move.otm2_strangle))
    table.add_row("days", str(move.days_to_expiration))
    if vol is not None:
        band = volatility_expected_move(underlying, vol, move.days_to_expiration)
        table.add_row("1SD (vol)", f"{band.lower_1sd:.2f} - {band.upper_1sd:.2f}")
        table.add_row("2SD (vol)", f"{band.lower_2sd:.2f} - {band.upper_2sd:.2f}")
    console.print(table)


__all__ = ["expected_move"]
