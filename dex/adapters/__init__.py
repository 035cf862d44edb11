"""
Pricing adapters: AMM curve math and order book matching.
"""

from .curves import CurveType, Fees, quote
from .orderbook import FeeTier, OrderBookSnapshot, Side, match_market_order

__all__ = [
    "CurveType",
    "Fees",
    "quote",
    "FeeTier",
    "OrderBookSnapshot",
    "Side",
    "match_market_order",
]
