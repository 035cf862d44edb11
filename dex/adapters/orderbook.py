"""
Market order simulation against a snapshot of a central limit order book.

Prices are quote lots per base lot and quantities are base lots, the way
Serum-style markets store them. Matching always runs on a working copy of the
snapshot so a venue's live book is never touched by a quote.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, NamedTuple, Optional

from sortedcontainers import SortedKeyList

from .curves import ceil_div, checked_u128


class Side(Enum):
    """Direction of a market order."""

    BID = "bid"  # spend quote, receive base
    ASK = "ask"  # spend base, receive quote


class RestingOrder(NamedTuple):
    """A resting limit order."""

    price: int
    quantity: int
    order_id: int


def _ask_key(order: RestingOrder):
    return (order.price, order.order_id)


def _bid_key(order: RestingOrder):
    return (-order.price, order.order_id)


class OrderBookSnapshot:
    """
    In-memory copy of both sides of a book.

    Both sides are kept best-first: asks by ascending price, bids by
    descending price, equal prices by ascending order id.
    """

    def __init__(
        self,
        bids: Iterable[RestingOrder] = (),
        asks: Iterable[RestingOrder] = (),
        base_lot_size: int = 1,
        quote_lot_size: int = 1,
    ):
        self.bids = SortedKeyList(bids, key=_bid_key)
        self.asks = SortedKeyList(asks, key=_ask_key)
        self.base_lot_size = base_lot_size
        self.quote_lot_size = quote_lot_size

    def working_copy(self) -> "OrderBookSnapshot":
        """Clone both sides; orders are immutable so a shallow copy suffices."""
        return OrderBookSnapshot(
            self.bids, self.asks, self.base_lot_size, self.quote_lot_size
        )

    def best_bid(self) -> Optional[RestingOrder]:
        return self.bids[0] if self.bids else None

    def best_ask(self) -> Optional[RestingOrder]:
        return self.asks[0] if self.asks else None

    def total_quantity(self, side: Side) -> int:
        """Resting base lots on the side a market order of `side` consumes."""
        orders = self.asks if side is Side.BID else self.bids
        return sum(order.quantity for order in orders)

    def __repr__(self) -> str:
        return (
            f"OrderBookSnapshot(bids={len(self.bids)}, asks={len(self.asks)}, "
            f"base_lot={self.base_lot_size}, quote_lot={self.quote_lot_size})"
        )


@dataclass(frozen=True)
class FeeTier:
    """
    Taker/maker fee schedule in basis points.

    Attributes:
        taker_bps: Fee charged to the taker on the filled quote value
        maker_rebate_bps: Rebate paid to resting orders (informational)
    """

    taker_bps: int = 22
    maker_rebate_bps: int = 3

    def taker_fee(self, quote_amount: int) -> int:
        """Fee owed on a filled quote value, rounded up."""
        return ceil_div(quote_amount * self.taker_bps, 10_000)

    def remove_taker_fee(self, quote_amount: int) -> int:
        """Largest fill value whose fee still fits inside quote_amount."""
        return quote_amount * 10_000 // (10_000 + self.taker_bps)


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of walking the book with a market order.

    Attributes:
        side: Direction of the order
        amount_in: Native input offered
        amount_out: Native output received, net of taker fee
        unfilled_in: Native input left unspent (including lot dust)
        filled_quantity: Base lots taken from the book
        fee_paid: Taker fee in native quote units
        book: Working copy of the book after the match
    """

    side: Side
    amount_in: int
    amount_out: int
    unfilled_in: int
    filled_quantity: int
    fee_paid: int
    book: OrderBookSnapshot

    @property
    def is_partial(self) -> bool:
        """True when part of the input could not be matched."""
        return self.unfilled_in > 0


def can_match(side: Side, book: OrderBookSnapshot) -> bool:
    """A bid needs resting asks; an ask needs resting bids."""
    if side is Side.BID:
        return len(book.asks) > 0
    return len(book.bids) > 0


def _take_best(orders: SortedKeyList, trade_qty: int) -> None:
    best = orders.pop(0)
    remaining = best.quantity - trade_qty
    if remaining > 0:
        orders.add(best._replace(quantity=remaining))


def _match_bid(
    amount_in: int, book: OrderBookSnapshot, fee_tier: FeeTier
) -> MatchResult:
    quote_lot_size = book.quote_lot_size
    base_lot_size = book.base_lot_size

    max_pc_qty = fee_tier.remove_taker_fee(amount_in) // quote_lot_size
    pc_qty_remaining = max_pc_qty
    amount_out = 0
    filled = 0

    while book.asks:
        best_ask = book.asks[0]
        trade_qty = min(best_ask.quantity, pc_qty_remaining // best_ask.price)
        if trade_qty == 0:
            break

        pc_qty_remaining -= trade_qty * best_ask.price
        amount_out += trade_qty * base_lot_size
        filled += trade_qty
        _take_best(book.asks, trade_qty)

    native_fill = (max_pc_qty - pc_qty_remaining) * quote_lot_size
    fee = fee_tier.taker_fee(native_fill)

    return MatchResult(
        side=Side.BID,
        amount_in=amount_in,
        amount_out=checked_u128(amount_out, "bid amount_out"),
        unfilled_in=amount_in - native_fill - fee,
        filled_quantity=filled,
        fee_paid=fee,
        book=book,
    )


def _match_ask(
    amount_in: int, book: OrderBookSnapshot, fee_tier: FeeTier
) -> MatchResult:
    base_lot_size = book.base_lot_size
    quote_lot_size = book.quote_lot_size

    unfilled_qty = amount_in // base_lot_size
    dust = amount_in % base_lot_size
    accum_fill_price = 0
    filled = 0

    while book.bids:
        best_bid = book.bids[0]
        trade_qty = min(best_bid.quantity, unfilled_qty)
        if trade_qty == 0:
            break

        unfilled_qty -= trade_qty
        accum_fill_price += trade_qty * best_bid.price
        filled += trade_qty
        _take_best(book.bids, trade_qty)

    native_quote = checked_u128(accum_fill_price * quote_lot_size, "ask fill value")
    fee = fee_tier.taker_fee(native_quote)

    return MatchResult(
        side=Side.ASK,
        amount_in=amount_in,
        amount_out=native_quote - fee,
        unfilled_in=unfilled_qty * base_lot_size + dust,
        filled_quantity=filled,
        fee_paid=fee,
        book=book,
    )


def match_market_order(
    side: Side,
    amount_in: int,
    book: OrderBookSnapshot,
    fee_tier: FeeTier,
) -> MatchResult:
    """
    Simulate a market order against a working copy of the book.

    Bid: the fee-adjusted quote budget is converted to quote lots and spent
    on the lowest asks first. Ask: the base amount is converted to base lots
    and sold into the highest bids first. Matching stops once the side is
    empty or the remaining budget cannot take one lot at the best price.
    The taker fee is computed on the quote value actually filled.

    Args:
        side: Side.BID to buy base with quote, Side.ASK to sell base
        amount_in: Native input amount
        book: Snapshot to match against (left untouched)
        fee_tier: Taker fee schedule

    Returns:
        MatchResult with output, unfilled remainder and the post-match copy

    Raises:
        ArithmeticOverflow: If an amount leaves the u128 range
    """
    checked_u128(amount_in, "amount_in")
    working = book.working_copy()
    if side is Side.BID:
        return _match_bid(amount_in, working, fee_tier)
    return _match_ask(amount_in, working, fee_tier)
