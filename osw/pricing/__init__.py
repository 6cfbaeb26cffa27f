"""Option pricing: closed-form Black-Scholes, IV inversion and pricer factory."""

from osw.pricing.black_scholes import BlackScholesPricer, black_scholes, stock_valuation
from osw.pricing.factory import get_pricer, pricer_factory
from osw.pricing.implied_vol import IVSolution, implied_volatility, solve_implied_volatility

__all__ = [
    "BlackScholesPricer",
    "IVSolution",
    "black_scholes",
    "get_pricer",
    "implied_volatility",
    "pricer_factory",
    "solve_implied_volatility",
    "stock_valuation",
]
