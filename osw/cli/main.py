"""Typer CLI entrypoint with structured error handling."""

from __future__ import annotations

import sys

import typer

from osw.cli.commands.analyze import analyze
from osw.cli.commands.expected_move import expected_move
from osw.cli.commands.heatmap import heatmap
from osw.cli.commands.price import iv, price
from osw.exceptions import ConfigError, DependencyError, SchemaError
from osw.utils.logging import configure_logging, get_logger

app = typer.Typer(help="Options Strategy Workbench CLI")


app.command()(price)
app.command()(iv)
app.command()(analyze)
app.command()(heatmap)
app.command("expected-move")(expected_move)


log = get_logger(__name__, component="cli")


def main() -> None:
    configure_logging(component="cli")
    try:
        app()
    except ConfigError as exc:
        log.error(str(exc))
        raise typer.Exit(code=1)
    except SchemaError as exc:
        log.error(f"Invalid input file: {exc}")
        raise typer.Exit(code=2)
    except DependencyError as exc:
        log.error(f"Missing dependency: {exc}")
        raise typer.Exit(code=3)
    except KeyboardInterrupt:
        log.info("Interrupted")
        raise typer.Exit(code=130)
    except Exception:
        log.exception("Unhandled exception")
        raise typer.Exit(code=255)


if __name__ == "__main__":
    sys.exit(main())
