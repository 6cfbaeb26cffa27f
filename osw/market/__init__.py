"""Option-chain quotes and market-implied expected move."""

from osw.market.chain import OptionQuote, quote_mid, quotes_from_frame
from osw.market.expected_move import (
    ExpectedMove,
    ExpectedMoveCache,
    compute_expected_move,
    nearest_expiration,
    volatility_expected_move,
)

__all__ = [
    "ExpectedMove",
    "ExpectedMoveCache",
    "OptionQuote",
    "compute_expected_move",
    "nearest_expiration",
    "quote_mid",
    "quotes_from_frame",
    "volatility_expected_move",
]
