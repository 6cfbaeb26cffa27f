"""Shared interfaces for cross-component compatibility.

Architecture:
- pricing.py: OptionPricer + Greeks + OptionValuation
- option_leg.py: Leg, closing entries and premium provenance variants
"""

from osw.interfaces.option_leg import (
    ClosingEntry,
    ClosingTransaction,
    Leg,
    LegKind,
    ManualPremium,
    MarketPremium,
    MarketSnapshot,
    PremiumSource,
    SavedPremium,
    Side,
    TheoreticalPremium,
)
from osw.interfaces.pricing import Greeks, OptionPricer, OptionValuation

__all__ = [
    # Pricing interfaces
    "OptionPricer",
    "Greeks",
    "OptionValuation",
    # Leg representation
    "Leg",
    "LegKind",
    "Side",
    "ClosingEntry",
    "ClosingTransaction",
    "MarketSnapshot",
    # Premium provenance
    "PremiumSource",
    "MarketPremium",
    "TheoreticalPremium",
    "ManualPremium",
    "SavedPremium",
]
