"""
Tradable venues: constant-product pools, stable-curve pools and order books.

Every venue exposes the same quoting contract so the cycle search never has
to know which pricing law sits behind an edge. Venue state (reserves or the
book snapshot) is held in a single immutable value and replaced wholesale by
refresh(); quotes read that value once, so a concurrent refresh can never be
observed half-applied.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from cycle_arbitrage.config_schema import AmmDefinition, OrderBookDefinition
from cycle_arbitrage.exceptions import (
    InvalidCurveParameters,
    InvalidMint,
    MalformedAccountData,
    MissingAccount,
    UnsupportedCurveType,
    VenueError,
)

from .accounts import (
    AccountBatch,
    decode_book_side,
    decode_market,
    decode_token_amount,
    require_account,
)
from .adapters import curves
from .adapters.curves import CurveType, Fees
from .adapters.orderbook import (
    FeeTier,
    MatchResult,
    OrderBookSnapshot,
    RestingOrder,
    Side,
    can_match,
    match_market_order,
)
from .types import Token


class Venue:
    """
    Base class for a market between exactly two tokens.

    Subclasses implement update_accounts(), can_trade(), quote() and
    _decode_state().
    """

    kind = "venue"

    def __init__(self, address: str, token_a: Token, token_b: Token):
        self.address = address
        self.token_a = token_a
        self.token_b = token_b
        self.live = True
        self.state = None

    def mints(self) -> Tuple[str, str]:
        """Canonical (sorted) mint pair, for identity only."""
        return tuple(sorted((self.token_a.mint, self.token_b.mint)))

    def has_mint(self, mint: str) -> bool:
        return mint == self.token_a.mint or mint == self.token_b.mint

    def other_mint(self, mint: str) -> str:
        if mint == self.token_a.mint:
            return self.token_b.mint
        if mint == self.token_b.mint:
            return self.token_a.mint
        raise InvalidMint(
            f"{mint} is not traded on {self.address}", venue=self.address, mint=mint
        )

    def mint_scale(self, mint: str) -> int:
        """Decimal scale of one of the venue's mints."""
        if mint == self.token_a.mint:
            return self.token_a.decimals
        if mint == self.token_b.mint:
            return self.token_b.decimals
        raise InvalidMint(
            f"{mint} is not traded on {self.address}", venue=self.address, mint=mint
        )

    def is_pair(self, mint_in: str, mint_out: str) -> bool:
        return (
            mint_in != mint_out and self.has_mint(mint_in) and self.has_mint(mint_out)
        )

    def check_pair(self, mint_in: str, mint_out: str):
        """
        Raises:
            InvalidMint: If the mints are not this venue's two distinct tokens
        """
        for mint in (mint_in, mint_out):
            if not self.has_mint(mint):
                raise InvalidMint(
                    f"{mint} is not traded on {self.address}",
                    venue=self.address,
                    mint=mint,
                )
        if mint_in == mint_out:
            raise InvalidMint(
                f"Cannot swap {mint_in} for itself on {self.address}",
                venue=self.address,
                mint=mint_in,
            )

    @property
    def fee_bps(self) -> float:
        return 0.0

    def update_accounts(self) -> List[str]:
        """Account ids whose payloads refresh() needs."""
        raise NotImplementedError

    def can_trade(self, mint_in: str, mint_out: str) -> bool:
        raise NotImplementedError

    def quote(self, amount_in: int, mint_in: str, mint_out: str) -> int:
        raise NotImplementedError

    def _decode_state(self, batch: AccountBatch):
        raise NotImplementedError

    def refresh(self, batch: AccountBatch):
        """
        Replace venue state from freshly fetched account payloads.

        On failure the venue is marked not-live and keeps its previous state
        until the next successful refresh.

        Raises:
            MissingAccount: If a required account is absent from the batch
            MalformedAccountData: If a payload does not decode
        """
        try:
            new_state = self._decode_state(batch)
        except (MissingAccount, MalformedAccountData) as exc:
            self.live = False
            self._tag(exc)
            raise
        self.state = new_state
        self.live = True

    def _tag(self, exc: VenueError):
        if exc.venue is None:
            exc.venue = self.address

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.address}, "
            f"{self.token_a.label}/{self.token_b.label}, live={self.live})"
        )


@dataclass(frozen=True)
class AmmState:
    """Vault balances of an AMM pool in raw units."""

    reserve_a: int = 0
    reserve_b: int = 0


class AmmVenue(Venue):
    """Pool priced by a curve over two vault balances."""

    curve_type: int = CurveType.CONSTANT_PRODUCT

    def __init__(
        self,
        address: str,
        token_a: Token,
        token_b: Token,
        vault_a: str,
        vault_b: str,
        fees: Optional[Fees] = None,
        reserve_a: int = 0,
        reserve_b: int = 0,
        amp: Optional[int] = None,
    ):
        super().__init__(address, token_a, token_b)
        self.vault_a = vault_a
        self.vault_b = vault_b
        self.fees = fees or Fees()
        self.amp = amp
        self.state = AmmState(reserve_a, reserve_b)

    @property
    def reserves(self) -> Tuple[int, int]:
        state = self.state
        return state.reserve_a, state.reserve_b

    @property
    def fee_bps(self) -> float:
        return self.fees.total_bps

    def update_accounts(self) -> List[str]:
        return [self.vault_a, self.vault_b]

    def _decode_state(self, batch: AccountBatch) -> AmmState:
        return AmmState(
            reserve_a=decode_token_amount(
                require_account(batch, self.vault_a), self.token_a.mint, self.vault_a
            ),
            reserve_b=decode_token_amount(
                require_account(batch, self.vault_b), self.token_b.mint, self.vault_b
            ),
        )

    def _directed_reserves(self, state: AmmState, mint_in: str) -> Tuple[int, int]:
        if mint_in == self.token_a.mint:
            return state.reserve_a, state.reserve_b
        return state.reserve_b, state.reserve_a

    def can_trade(self, mint_in: str, mint_out: str) -> bool:
        if not self.live or not self.is_pair(mint_in, mint_out):
            return False
        state = self.state
        return state.reserve_a > 0 and state.reserve_b > 0

    def quote(self, amount_in: int, mint_in: str, mint_out: str) -> int:
        """
        Quote a swap through the pool's curve, fees included.

        Raises:
            InvalidMint: If either mint is not one of the pool's tokens
            InvalidCurveParameters: On zero reserves
            ConvergenceFailure: If a stable-curve solve does not settle
            ArithmeticOverflow: If amounts leave the u128 range
        """
        self.check_pair(mint_in, mint_out)
        reserve_in, reserve_out = self._directed_reserves(self.state, mint_in)
        try:
            return curves.quote(
                self.curve_type, amount_in, reserve_in, reserve_out, self.fees, self.amp
            )
        except VenueError as exc:
            self._tag(exc)
            raise


class ConstantProductVenue(AmmVenue):
    """x*y=k pool."""

    kind = "constant_product"
    curve_type = CurveType.CONSTANT_PRODUCT


class StableCurveVenue(AmmVenue):
    """StableSwap pool with an amplification coefficient."""

    kind = "stable_curve"
    curve_type = CurveType.STABLE

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if self.amp is None or self.amp <= 0:
            raise InvalidCurveParameters(
                f"Stable pool {self.address} needs a positive amplification",
                venue=self.address,
            )


class OrderBookVenue(Venue):
    """
    Central limit order book market; token_a is base, token_b is quote.

    A quote spending the quote mint is a bid, spending the base mint an ask.
    """

    kind = "order_book"

    def __init__(
        self,
        address: str,
        base_token: Token,
        quote_token: Token,
        bids_account: str,
        asks_account: str,
        fee_tier: Optional[FeeTier] = None,
        book: Optional[OrderBookSnapshot] = None,
    ):
        super().__init__(address, base_token, quote_token)
        self.bids_account = bids_account
        self.asks_account = asks_account
        self.fee_tier = fee_tier or FeeTier()
        self.state = book or OrderBookSnapshot()

    @property
    def book(self) -> OrderBookSnapshot:
        return self.state

    @property
    def fee_bps(self) -> float:
        return float(self.fee_tier.taker_bps)

    def update_accounts(self) -> List[str]:
        return [self.address, self.bids_account, self.asks_account]

    def _decode_state(self, batch: AccountBatch) -> OrderBookSnapshot:
        base_lot_size, quote_lot_size = decode_market(
            require_account(batch, self.address), self.address
        )
        bids = decode_book_side(
            require_account(batch, self.bids_account), self.bids_account
        )
        asks = decode_book_side(
            require_account(batch, self.asks_account), self.asks_account
        )
        return OrderBookSnapshot(bids, asks, base_lot_size, quote_lot_size)

    def side_for(self, mint_in: str) -> Side:
        return Side.BID if mint_in == self.token_b.mint else Side.ASK

    def can_trade(self, mint_in: str, mint_out: str) -> bool:
        if not self.live or not self.is_pair(mint_in, mint_out):
            return False
        return can_match(self.side_for(mint_in), self.state)

    def quote_detailed(self, amount_in: int, mint_in: str, mint_out: str) -> MatchResult:
        """
        Match a market order against a working copy of the current book.

        Raises:
            InvalidMint: If either mint is not the market's base or quote
            ArithmeticOverflow: If amounts leave the u128 range
        """
        self.check_pair(mint_in, mint_out)
        return match_market_order(
            self.side_for(mint_in), amount_in, self.state, self.fee_tier
        )

    def quote(self, amount_in: int, mint_in: str, mint_out: str) -> int:
        return self.quote_detailed(amount_in, mint_in, mint_out).amount_out


def _token(definition) -> Token:
    return Token(
        mint=definition.mint, decimals=definition.decimals, symbol=definition.symbol
    )


def venue_from_definition(
    definition: Union[AmmDefinition, OrderBookDefinition],
) -> Venue:
    """
    Build a venue from a validated definition.

    Raises:
        UnsupportedCurveType: For AMM curve types other than 0 and 2
        InvalidCurveParameters: For a stable pool without amplification
    """
    if isinstance(definition, OrderBookDefinition):
        book = OrderBookSnapshot(
            bids=[
                RestingOrder(o.price, o.quantity, o.order_id)
                for o in definition.initial_bids
            ],
            asks=[
                RestingOrder(o.price, o.quantity, o.order_id)
                for o in definition.initial_asks
            ],
            base_lot_size=definition.base_lot_size,
            quote_lot_size=definition.quote_lot_size,
        )
        return OrderBookVenue(
            address=definition.address,
            base_token=_token(definition.base_token),
            quote_token=_token(definition.quote_token),
            bids_account=definition.bids,
            asks_account=definition.asks,
            fee_tier=FeeTier(
                taker_bps=definition.taker_bps,
                maker_rebate_bps=definition.maker_rebate_bps,
            ),
            book=book,
        )

    if definition.curve_type == CurveType.CONSTANT_PRODUCT:
        venue_cls = ConstantProductVenue
    elif definition.curve_type == CurveType.STABLE:
        venue_cls = StableCurveVenue
    else:
        raise UnsupportedCurveType(
            f"Pool {definition.address} has unsupported curve type "
            f"{definition.curve_type}",
            venue=definition.address,
            curve_type=definition.curve_type,
        )

    fees = definition.fees
    return venue_cls(
        address=definition.address,
        token_a=_token(definition.token_a),
        token_b=_token(definition.token_b),
        vault_a=definition.vault_a,
        vault_b=definition.vault_b,
        fees=Fees(
            trade_fee_numerator=fees.trade_fee.numerator,
            trade_fee_denominator=fees.trade_fee.denominator,
            owner_trade_fee_numerator=fees.owner_trade_fee.numerator,
            owner_trade_fee_denominator=fees.owner_trade_fee.denominator,
        ),
        reserve_a=definition.reserve_a or 0,
        reserve_b=definition.reserve_b or 0,
        amp=definition.amp,
    )
