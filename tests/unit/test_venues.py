"""
Unit tests for dex/venues.py: quoting, refresh and construction from definitions.
"""

import pytest

from cycle_arbitrage.config_schema import AmmDefinition, OrderBookDefinition
from cycle_arbitrage.exceptions import (
    ArithmeticOverflow,
    InvalidCurveParameters,
    InvalidMint,
    MalformedAccountData,
    MissingAccount,
    UnsupportedCurveType,
)
from dex.accounts import encode_book_side, encode_market, encode_token_account
from dex.adapters.curves import Fees
from dex.adapters.orderbook import FeeTier, OrderBookSnapshot, RestingOrder, Side
from dex.venues import (
    AmmState,
    ConstantProductVenue,
    OrderBookVenue,
    StableCurveVenue,
    venue_from_definition,
)

OWNER = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"


@pytest.fixture
def pool(make_cp_venue, tokens):
    return make_cp_venue(
        "pool-usdc-sol", tokens["USDC"], tokens["SOL"], 1_000_000_000, 5_000_000_000
    )


@pytest.fixture
def market(tokens):
    book = OrderBookSnapshot(
        bids=[RestingOrder(99, 10, 3), RestingOrder(98, 10, 4)],
        asks=[RestingOrder(100, 10, 1), RestingOrder(101, 5, 2)],
    )
    return OrderBookVenue(
        "market-sol-usdc",
        base_token=tokens["SOL"],
        quote_token=tokens["USDC"],
        bids_account="market-bids",
        asks_account="market-asks",
        fee_tier=FeeTier(taker_bps=0, maker_rebate_bps=0),
        book=book,
    )


class TestAmmVenue:
    def test_quote_both_directions(self, pool, tokens):
        usdc, sol = tokens["USDC"].mint, tokens["SOL"].mint
        assert pool.quote(1_000_000, usdc, sol) == 4_995_004
        # Reverse direction uses the reserves swapped
        assert pool.quote(5_000_000, sol, usdc) == 999_000

    def test_mints_sorted(self, pool, tokens):
        assert pool.mints() == tuple(sorted((tokens["USDC"].mint, tokens["SOL"].mint)))
        assert pool.other_mint(tokens["USDC"].mint) == tokens["SOL"].mint

    def test_mint_scale(self, pool, tokens):
        assert pool.mint_scale(tokens["SOL"].mint) == 9
        with pytest.raises(InvalidMint):
            pool.mint_scale(tokens["USDT"].mint)

    def test_invalid_mint(self, pool, tokens):
        with pytest.raises(InvalidMint) as exc_info:
            pool.quote(100, tokens["USDT"].mint, tokens["SOL"].mint)
        assert exc_info.value.venue == "pool-usdc-sol"
        assert exc_info.value.mint == tokens["USDT"].mint

    def test_same_mint_rejected(self, pool, tokens):
        with pytest.raises(InvalidMint):
            pool.quote(100, tokens["USDC"].mint, tokens["USDC"].mint)

    def test_can_trade(self, pool, tokens, make_cp_venue):
        usdc, sol, usdt = tokens["USDC"].mint, tokens["SOL"].mint, tokens["USDT"].mint
        assert pool.can_trade(usdc, sol)
        assert not pool.can_trade(usdc, usdt)

        empty = make_cp_venue("empty", tokens["USDC"], tokens["SOL"], 0, 100)
        assert not empty.can_trade(usdc, sol)

        pool.live = False
        assert not pool.can_trade(usdc, sol)

    def test_zero_reserve_quote_tagged(self, make_cp_venue, tokens):
        empty = make_cp_venue("empty", tokens["USDC"], tokens["SOL"], 0, 100)
        with pytest.raises(InvalidCurveParameters) as exc_info:
            empty.quote(100, tokens["USDC"].mint, tokens["SOL"].mint)
        assert exc_info.value.venue == "empty"

    def test_overflow_propagates(self, make_cp_venue, tokens):
        whale = make_cp_venue("whale", tokens["USDC"], tokens["SOL"], 2**70, 2**70)
        with pytest.raises(ArithmeticOverflow):
            whale.quote(1, tokens["USDC"].mint, tokens["SOL"].mint)

    def test_fee_bps(self, make_cp_venue, tokens):
        fees = Fees(25, 10000, 5, 10000)
        venue = make_cp_venue("fee", tokens["USDC"], tokens["SOL"], 10, 10, fees)
        assert venue.fee_bps == pytest.approx(30.0)

    def test_refresh_replaces_state(self, pool, tokens):
        batch = {
            pool.vault_a: encode_token_account(tokens["USDC"].mint, OWNER, 2_000),
            pool.vault_b: encode_token_account(tokens["SOL"].mint, OWNER, 3_000),
        }
        assert pool.update_accounts() == [pool.vault_a, pool.vault_b]

        pool.refresh(batch)

        assert pool.reserves == (2_000, 3_000)
        assert pool.state == AmmState(2_000, 3_000)
        assert pool.live

    def test_refresh_missing_account(self, pool, tokens):
        batch = {pool.vault_a: encode_token_account(tokens["USDC"].mint, OWNER, 1)}
        with pytest.raises(MissingAccount) as exc_info:
            pool.refresh(batch)

        assert exc_info.value.venue == pool.address
        assert not pool.live
        assert pool.reserves == (1_000_000_000, 5_000_000_000)

    def test_refresh_malformed_then_recovers(self, pool, tokens):
        bad = {pool.vault_a: b"\x00" * 10, pool.vault_b: b"\x00" * 10}
        with pytest.raises(MalformedAccountData):
            pool.refresh(bad)
        assert not pool.live

        good = {
            pool.vault_a: encode_token_account(tokens["USDC"].mint, OWNER, 7),
            pool.vault_b: encode_token_account(tokens["SOL"].mint, OWNER, 9),
        }
        pool.refresh(good)
        assert pool.live
        assert pool.reserves == (7, 9)


class TestStableCurveVenue:
    def test_requires_amp(self, tokens):
        with pytest.raises(InvalidCurveParameters):
            StableCurveVenue(
                "stable", tokens["USDC"], tokens["USDT"], "va", "vb", reserve_a=1, reserve_b=1
            )

    def test_quotes_near_peg(self, tokens):
        venue = StableCurveVenue(
            "stable",
            tokens["USDC"],
            tokens["USDT"],
            "va",
            "vb",
            reserve_a=10**9,
            reserve_b=10**9,
            amp=100,
        )
        out = venue.quote(1_000_000, tokens["USDC"].mint, tokens["USDT"].mint)
        assert 999_000 < out <= 1_000_000
        assert venue.kind == "stable_curve"


class TestOrderBookVenue:
    def test_bid_when_spending_quote(self, market, tokens):
        assert market.side_for(tokens["USDC"].mint) is Side.BID
        assert market.side_for(tokens["SOL"].mint) is Side.ASK

    def test_quote_buys_base(self, market, tokens):
        assert market.quote(1500, tokens["USDC"].mint, tokens["SOL"].mint) == 14

    def test_quote_sells_base(self, market, tokens):
        assert market.quote(15, tokens["SOL"].mint, tokens["USDC"].mint) == 1480

    def test_quote_leaves_book_untouched(self, market, tokens):
        result = market.quote_detailed(10_000, tokens["USDC"].mint, tokens["SOL"].mint)
        assert len(result.book.asks) == 0
        assert len(market.book.asks) == 2

    def test_can_trade_needs_opposite_side(self, tokens):
        venue = OrderBookVenue(
            "m",
            tokens["SOL"],
            tokens["USDC"],
            "b",
            "a",
            book=OrderBookSnapshot(bids=[RestingOrder(99, 1, 1)]),
        )
        assert venue.can_trade(tokens["SOL"].mint, tokens["USDC"].mint)
        assert not venue.can_trade(tokens["USDC"].mint, tokens["SOL"].mint)

    def test_refresh_decodes_market_and_sides(self, market):
        batch = {
            market.address: encode_market(10, 2),
            market.bids_account: encode_book_side([RestingOrder(50, 4, 9)]),
            market.asks_account: encode_book_side([]),
        }
        assert market.update_accounts() == [
            market.address,
            market.bids_account,
            market.asks_account,
        ]

        market.refresh(batch)

        assert market.book.base_lot_size == 10
        assert market.book.quote_lot_size == 2
        assert list(market.book.bids) == [RestingOrder(50, 4, 9)]
        assert len(market.book.asks) == 0

    def test_default_fee_tier(self, tokens):
        venue = OrderBookVenue("m", tokens["SOL"], tokens["USDC"], "b", "a")
        assert venue.fee_bps == 22.0


def _amm_definition(curve_type=0, amp=None):
    return AmmDefinition.model_validate(
        {
            "kind": "amm",
            "address": "pool-1",
            "tokenA": {"mint": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", "decimals": 6},
            "tokenB": {"mint": "So11111111111111111111111111111111111111112", "decimals": 9},
            "vaultA": "vault-a",
            "vaultB": "vault-b",
            "fees": {
                "tradeFee": {"numerator": 25, "denominator": 10000},
                "ownerTradeFee": {"numerator": 5, "denominator": 10000},
            },
            "curveType": curve_type,
            "amp": amp,
            "reserveA": 1_000,
            "reserveB": 2_000,
        }
    )


class TestVenueFromDefinition:
    def test_constant_product(self):
        venue = venue_from_definition(_amm_definition())
        assert isinstance(venue, ConstantProductVenue)
        assert venue.reserves == (1_000, 2_000)
        assert venue.fees.trade_fee_numerator == 25
        assert venue.fees.owner_trade_fee_denominator == 10000

    def test_stable(self):
        venue = venue_from_definition(_amm_definition(curve_type=2, amp=100))
        assert isinstance(venue, StableCurveVenue)
        assert venue.amp == 100

    def test_unsupported_curve(self):
        with pytest.raises(UnsupportedCurveType) as exc_info:
            venue_from_definition(_amm_definition(curve_type=1))
        assert exc_info.value.curve_type == 1
        assert exc_info.value.venue == "pool-1"

    def test_order_book(self):
        definition = OrderBookDefinition.model_validate(
            {
                "kind": "order_book",
                "address": "market-1",
                "bids": "bids-1",
                "asks": "asks-1",
                "baseToken": {"mint": "So11111111111111111111111111111111111111112", "decimals": 9},
                "quoteToken": {"mint": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", "decimals": 6},
                "takerBps": 10,
                "initialAsks": [{"price": 100, "quantity": 5, "orderId": 1}],
            }
        )
        venue = venue_from_definition(definition)
        assert isinstance(venue, OrderBookVenue)
        assert venue.fee_tier.taker_bps == 10
        assert venue.book.best_ask() == RestingOrder(100, 5, 1)
        assert venue.token_a.decimals == 9
