"""Shared fixtures for cycle arbitrage tests."""

import pytest
from prometheus_client import CollectorRegistry

from cycle_arbitrage.config_schema import ScanConfig
from dex.adapters.curves import Fees
from dex.graph import VenueGraph
from dex.types import Token
from dex.venues import ConstantProductVenue

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
SOL_MINT = "So11111111111111111111111111111111111111112"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
MSOL_MINT = "mSoLzYCxHdYgdzU16g5QSh3i5K3z3KZK7ytfqcJm7So"
OWNER = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

USDC = Token(USDC_MINT, 6, "USDC")
SOL = Token(SOL_MINT, 9, "SOL")
USDT = Token(USDT_MINT, 6, "USDT")
MSOL = Token(MSOL_MINT, 9, "mSOL")


@pytest.fixture
def tokens():
    return {"USDC": USDC, "SOL": SOL, "USDT": USDT, "mSOL": MSOL}


@pytest.fixture
def make_cp_venue():
    """Factory for constant-product venues with vaults named after the pool."""

    def _make(address, token_a, token_b, reserve_a, reserve_b, fees=None):
        return ConstantProductVenue(
            address=address,
            token_a=token_a,
            token_b=token_b,
            vault_a=f"{address}-vault-a",
            vault_b=f"{address}-vault-b",
            fees=fees or Fees(),
            reserve_a=reserve_a,
            reserve_b=reserve_b,
        )

    return _make


@pytest.fixture
def profitable_venues(make_cp_venue):
    """
    USDC -> SOL -> USDT -> USDC yields 1_017_037 for 1_000_000 in.
    """
    return [
        make_cp_venue("V1", USDC, SOL, 1_000_000_000, 5_000_000_000),
        make_cp_venue("V2", SOL, USDT, 5_000_000_000, 1_010_000_000),
        make_cp_venue("V3", USDT, USDC, 1_000_000_000, 1_010_000_000),
    ]


@pytest.fixture
def balanced_venues(make_cp_venue):
    """Spot rates multiply to exactly 1, so every cycle loses to slippage."""
    return [
        make_cp_venue("V1", USDC, SOL, 1_000_000_000, 5_000_000_000),
        make_cp_venue("V2", SOL, USDT, 5_000_000_000, 1_010_000_000),
        make_cp_venue("V3", USDT, USDC, 1_010_000_000, 1_000_000_000),
    ]


@pytest.fixture
def profitable_graph(profitable_venues):
    return VenueGraph.build(profitable_venues)


@pytest.fixture
def scan_config():
    """Factory for ScanConfig with inline-free venue sources."""

    def _make(**search_overrides):
        search = {"start_mint": USDC_MINT, "notional": 1_000_000}
        search.update(search_overrides)
        return ScanConfig(search=search, venue_files=["unused.json"])

    return _make


@pytest.fixture
def registry():
    """Fresh Prometheus registry per test."""
    return CollectorRegistry()
