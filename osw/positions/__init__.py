"""Position ledger (realized/unrealized P/L, commission) and pure leg edits."""

from osw.positions.ledger import (
    LedgerSummary,
    LegPnL,
    commission,
    ledger_summary,
    leg_pnl,
    realized_pnl,
    unrealized_pnl,
)

__all__ = [
    "LedgerSummary",
    "LegPnL",
    "commission",
    "ledger_summary",
    "leg_pnl",
    "realized_pnl",
    "unrealized_pnl",
]
