"""
Test market order matching against order book snapshots.
"""

import unittest

from hypothesis import given
from hypothesis import strategies as st

from cycle_arbitrage.exceptions import ArithmeticOverflow
from dex.adapters.curves import U128_MAX
from dex.adapters.orderbook import (
    FeeTier,
    OrderBookSnapshot,
    RestingOrder,
    Side,
    can_match,
    match_market_order,
)

NO_FEE = FeeTier(taker_bps=0, maker_rebate_bps=0)


def make_book(**kwargs):
    return OrderBookSnapshot(
        bids=[RestingOrder(99, 10, 3), RestingOrder(98, 10, 4)],
        asks=[RestingOrder(101, 5, 2), RestingOrder(100, 10, 1)],
        **kwargs,
    )


class TestSnapshot(unittest.TestCase):
    """Ordering and copying of book sides."""

    def test_best_first_ordering(self):
        book = make_book()
        self.assertEqual(book.best_ask(), RestingOrder(100, 10, 1))
        self.assertEqual(book.best_bid(), RestingOrder(99, 10, 3))

    def test_equal_prices_ordered_by_order_id(self):
        book = OrderBookSnapshot(
            asks=[RestingOrder(100, 5, 7), RestingOrder(100, 5, 3)]
        )
        self.assertEqual(book.best_ask().order_id, 3)

    def test_working_copy_is_independent(self):
        book = make_book()
        copy = book.working_copy()
        copy.asks.pop(0)
        self.assertEqual(len(book.asks), 2)
        self.assertEqual(len(copy.asks), 1)

    def test_empty_book(self):
        book = OrderBookSnapshot()
        self.assertIsNone(book.best_bid())
        self.assertIsNone(book.best_ask())
        self.assertFalse(can_match(Side.BID, book))
        self.assertFalse(can_match(Side.ASK, book))

    def test_can_match_per_direction(self):
        book = OrderBookSnapshot(asks=[RestingOrder(100, 1, 1)])
        self.assertTrue(can_match(Side.BID, book))
        self.assertFalse(can_match(Side.ASK, book))


class TestFeeTier(unittest.TestCase):
    def test_taker_fee_rounds_up(self):
        self.assertEqual(FeeTier(taker_bps=22).taker_fee(1404), 4)
        self.assertEqual(FeeTier(taker_bps=22).taker_fee(0), 0)

    def test_remove_taker_fee(self):
        self.assertEqual(FeeTier(taker_bps=22).remove_taker_fee(1500), 1496)
        self.assertEqual(FeeTier(taker_bps=22).remove_taker_fee(10022), 10000)

    def test_defaults(self):
        tier = FeeTier()
        self.assertEqual((tier.taker_bps, tier.maker_rebate_bps), (22, 3))


class TestMatchBid(unittest.TestCase):
    """Spending quote against the asks."""

    def test_walks_asks_until_budget_exhausted(self):
        book = make_book()
        result = match_market_order(Side.BID, 1500, book, NO_FEE)

        self.assertEqual(result.amount_out, 14)
        self.assertEqual(result.filled_quantity, 14)
        self.assertEqual(result.unfilled_in, 96)
        self.assertEqual(result.fee_paid, 0)
        self.assertTrue(result.is_partial)
        self.assertEqual(list(result.book.asks), [RestingOrder(101, 1, 2)])

    def test_taker_fee_on_filled_value(self):
        result = match_market_order(Side.BID, 1500, make_book(), FeeTier(taker_bps=22))

        self.assertEqual(result.amount_out, 14)
        self.assertEqual(result.fee_paid, 4)
        self.assertEqual(result.unfilled_in, 1500 - 1404 - 4)

    def test_snapshot_not_mutated(self):
        book = make_book()
        match_market_order(Side.BID, 10_000, book, NO_FEE)
        self.assertEqual(
            list(book.asks), [RestingOrder(100, 10, 1), RestingOrder(101, 5, 2)]
        )

    def test_exhausts_side(self):
        result = match_market_order(Side.BID, 10_000, make_book(), NO_FEE)
        self.assertEqual(result.amount_out, 15)
        self.assertEqual(len(result.book.asks), 0)
        self.assertEqual(result.unfilled_in, 10_000 - 1000 - 505)

    def test_lot_sizes(self):
        book = OrderBookSnapshot(
            asks=[RestingOrder(100, 10, 1)], base_lot_size=1_000, quote_lot_size=10
        )
        # 5_000 native quote = 500 quote lots = 5 base lots
        result = match_market_order(Side.BID, 5_000, book, NO_FEE)
        self.assertEqual(result.amount_out, 5_000)
        self.assertEqual(result.filled_quantity, 5)
        self.assertEqual(result.unfilled_in, 0)

    def test_tie_broken_by_order_id(self):
        book = OrderBookSnapshot(
            asks=[RestingOrder(100, 5, 7), RestingOrder(100, 5, 3)]
        )
        result = match_market_order(Side.BID, 500, book, NO_FEE)
        self.assertEqual(list(result.book.asks), [RestingOrder(100, 5, 7)])

    def test_budget_below_best_price(self):
        result = match_market_order(Side.BID, 50, make_book(), NO_FEE)
        self.assertEqual(result.amount_out, 0)
        self.assertEqual(result.filled_quantity, 0)
        self.assertEqual(result.unfilled_in, 50)


class TestMatchAsk(unittest.TestCase):
    """Selling base into the bids."""

    def test_walks_bids(self):
        result = match_market_order(Side.ASK, 15, make_book(), FeeTier(taker_bps=22))

        self.assertEqual(result.filled_quantity, 15)
        self.assertEqual(result.fee_paid, 4)
        self.assertEqual(result.amount_out, 990 + 490 - 4)
        self.assertEqual(result.unfilled_in, 0)
        self.assertEqual(list(result.book.bids), [RestingOrder(98, 5, 4)])

    def test_lot_dust_reported_unfilled(self):
        book = OrderBookSnapshot(bids=[RestingOrder(99, 100, 1)], base_lot_size=10)
        result = match_market_order(Side.ASK, 155, book, NO_FEE)

        self.assertEqual(result.filled_quantity, 15)
        self.assertEqual(result.unfilled_in, 5)
        self.assertEqual(result.amount_out, 15 * 99)

    def test_more_than_book_depth(self):
        result = match_market_order(Side.ASK, 25, make_book(), NO_FEE)
        self.assertEqual(result.filled_quantity, 20)
        self.assertEqual(result.unfilled_in, 5)
        self.assertEqual(len(result.book.bids), 0)

    def test_amount_out_of_range(self):
        with self.assertRaises(ArithmeticOverflow):
            match_market_order(Side.ASK, U128_MAX + 1, make_book(), NO_FEE)


orders = st.lists(
    st.tuples(
        st.integers(min_value=1, max_value=1_000),
        st.integers(min_value=1, max_value=1_000),
    ),
    max_size=20,
)


def _book_from(entries):
    resting = [RestingOrder(p, q, i) for i, (p, q) in enumerate(entries)]
    return OrderBookSnapshot(bids=resting, asks=resting)


@given(entries=orders, amount_in=st.integers(min_value=0, max_value=10**7))
def test_bid_removes_exactly_filled_quantity(entries, amount_in):
    """Property: resting quantity removed equals the reported fill."""
    book = _book_from(entries)
    result = match_market_order(Side.BID, amount_in, book, FeeTier())

    removed = book.total_quantity(Side.BID) - result.book.total_quantity(Side.BID)
    assert removed == result.filled_quantity == result.amount_out
    assert all(order.quantity > 0 for order in result.book.asks)
    assert 0 <= result.unfilled_in <= amount_in


@given(entries=orders, amount_in=st.integers(min_value=0, max_value=10**5))
def test_ask_removes_exactly_filled_quantity(entries, amount_in):
    """Property: resting quantity removed equals the reported fill."""
    book = _book_from(entries)
    result = match_market_order(Side.ASK, amount_in, book, FeeTier())

    removed = book.total_quantity(Side.ASK) - result.book.total_quantity(Side.ASK)
    assert removed == result.filled_quantity
    assert all(order.quantity > 0 for order in result.book.bids)
    assert result.amount_out >= 0
