"""Factory for option pricers."""

from __future__ import annotations

from osw.config.factories import FactoryBase
from osw.exceptions import DependencyError
from osw.interfaces.pricing import OptionPricer
from osw.pricing.black_scholes import BlackScholesPricer
from osw.pricing.py_vollib import PyVollibPricer

_PRICERS: dict[str, type[OptionPricer]] = {
    "black_scholes": BlackScholesPricer,
    "black-scholes": BlackScholesPricer,
    "bs": BlackScholesPricer,
    "py_vollib": PyVollibPricer,
    "py-vollib": PyVollibPricer,
}


def available_pricers() -> list[str]:
    return sorted(_PRICERS)


def get_pricer(name: str) -> OptionPricer:
    pricer_cls = _PRICERS.get(name.strip().lower())
    if pricer_cls is None:
        raise DependencyError(f"Unknown pricer: {name}")
    return pricer_cls()


def pricer_factory(name: str) -> FactoryBase[OptionPricer]:
    normalized = name.strip().lower()
    if normalized not in _PRICERS:
        raise DependencyError(f"Unknown pricer: {name}")
    return FactoryBase(name=normalized, builder=lambda: get_pricer(normalized), kind="pricer")


__all__ = ["available_pricers", "get_pricer", "pricer_factory"]
