"""Strategy-level aggregation of legs."""

from osw.strategy.aggregator import (
    StrategyMetrics,
    StrategySnapshot,
    analyze_strategy,
    net_premium,
    portfolio_greeks,
    strategy_metrics,
)

__all__ = [
    "StrategyMetrics",
    "StrategySnapshot",
    "analyze_strategy",
    "net_premium",
    "portfolio_greeks",
    "strategy_metrics",
]
