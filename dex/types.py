"""
Core data types for cycle arbitrage search.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

Fingerprint = Tuple[str, ...]


@dataclass(frozen=True)
class Token:
    """
    A tradable asset as seen by the search.

    Attributes:
        mint: Base58 mint address (32-byte key)
        decimals: Decimal scale used to interpret raw amounts
        symbol: Optional display symbol (e.g., "USDC")
    """

    mint: str
    decimals: int
    symbol: str = ""

    @property
    def label(self) -> str:
        return self.symbol or self.mint[:6]


@dataclass(frozen=True)
class Hop:
    """
    One swap of a cycle, enough for an executor to rebuild the instruction.

    Attributes:
        venue_id: Address of the venue traded through
        mint_in: Mint spent
        mint_out: Mint received
        amount_in: Raw amount spent
        amount_out: Raw amount quoted
    """

    venue_id: str
    mint_in: str
    mint_out: str
    amount_in: int
    amount_out: int


@dataclass(frozen=True)
class SearchPath:
    """
    Partial or closed path explored by the cycle search.

    tokens[i] -> tokens[i + 1] is traded through venue_ids[i], carrying
    amounts[i] in and amounts[i + 1] out. Paths are immutable; extend()
    returns a new path.
    """

    tokens: Tuple[int, ...]
    venue_ids: Tuple[str, ...] = ()
    amounts: Tuple[int, ...] = ()

    @classmethod
    def start(cls, token_index: int, amount: int) -> "SearchPath":
        return cls(tokens=(token_index,), amounts=(amount,))

    @property
    def hops(self) -> int:
        return len(self.venue_ids)

    @property
    def current_token(self) -> int:
        return self.tokens[-1]

    @property
    def current_amount(self) -> int:
        return self.amounts[-1]

    @property
    def is_cycle(self) -> bool:
        return self.hops >= 2 and self.tokens[0] == self.tokens[-1]

    def contains_venue(self, venue_id: str) -> bool:
        return venue_id in self.venue_ids

    def extend(self, token_index: int, venue_id: str, amount_out: int) -> "SearchPath":
        return SearchPath(
            tokens=self.tokens + (token_index,),
            venue_ids=self.venue_ids + (venue_id,),
            amounts=self.amounts + (amount_out,),
        )


@dataclass(frozen=True)
class Opportunity:
    """
    A closed, profitable cycle.

    Attributes:
        path: Closed search path (token indices, venue ids, amounts)
        mints: Mint of every token in path.tokens
        notional: Amount committed before the process fee was taken
        amount_in: Amount actually carried into the first hop
        amount_out: Amount returned by the closing hop
        profit: amount_out - notional
    """

    path: SearchPath
    mints: Tuple[str, ...]
    notional: int
    amount_in: int
    amount_out: int
    profit: int

    @property
    def fingerprint(self) -> Fingerprint:
        """Ordered venue ids; the dedup key of this cycle."""
        return self.path.venue_ids

    @property
    def hop_count(self) -> int:
        return self.path.hops

    def hops(self) -> List[Hop]:
        """Per-hop swap sequence in execution order."""
        return [
            Hop(
                venue_id=venue_id,
                mint_in=self.mints[i],
                mint_out=self.mints[i + 1],
                amount_in=self.path.amounts[i],
                amount_out=self.path.amounts[i + 1],
            )
            for i, venue_id in enumerate(self.path.venue_ids)
        ]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "fingerprint": list(self.fingerprint),
            "notional": self.notional,
            "amount_in": self.amount_in,
            "amount_out": self.amount_out,
            "profit": self.profit,
            "hops": [
                {
                    "venue": hop.venue_id,
                    "mint_in": hop.mint_in,
                    "mint_out": hop.mint_out,
                    "amount_in": hop.amount_in,
                    "amount_out": hop.amount_out,
                }
                for hop in self.hops()
            ],
        }
