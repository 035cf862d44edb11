"""
Cycle Arbitrage.

Finds profitable multi-hop trading cycles across on-chain liquidity venues
(constant-product pools, stable-curve pools and order books) sharing a
common token.
"""

from cycle_arbitrage.version import __version__

PROJECT_NAME = "cycle-arbitrage"
VERSION = __version__

__all__ = ["PROJECT_NAME", "VERSION", "__version__"]
