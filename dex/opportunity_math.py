"""
Single source of truth for opportunity profit arithmetic.

Raw amounts stay integers end to end; Decimal is only used for ratios
(basis points, percentages) and for the process fee, which is configured as
a percentage and rounded half-up to a whole raw unit.

Conversion policy:
- Internal: Decimal with 50 digits precision
- Output: bps rounded to 2 decimal places
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, getcontext
from typing import Optional, Union

from cycle_arbitrage.utils import format_amount

from .types import Opportunity

getcontext().prec = 50

Number = Union[int, float, str, Decimal]


def calculate_fee_amount(amount: int, fee_pct: Number) -> int:
    """
    Process fee taken off a notional before a search iteration.

    Args:
        amount: Raw notional
        fee_pct: Fee in percent (e.g., 0.1 for 0.1%)

    Returns:
        Fee in raw units, rounded half-up

    Example:
        >>> calculate_fee_amount(1_000_000, "0.25")
        2500
    """
    fee = Decimal(amount) * Decimal(str(fee_pct)) / Decimal("100")
    return int(fee.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def profit_bps(profit: int, notional: int) -> Decimal:
    """Profit relative to the notional, in basis points."""
    if notional <= 0:
        return Decimal("0")
    return Decimal(profit) * Decimal("10000") / Decimal(notional)


@dataclass(frozen=True)
class OpportunityBreakdown:
    """
    Complete breakdown of a cycle opportunity in raw units.
    """

    # Inputs
    notional: int  # Committed before the process fee
    process_fee: int  # notional - amount carried into hop 1
    amount_in: int
    amount_out: int

    # Derived outputs
    profit: int
    profit_bps: Decimal

    # Metadata
    hops: int
    decimals: Optional[int] = None

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "notional": self.notional,
            "process_fee": self.process_fee,
            "amount_in": self.amount_in,
            "amount_out": self.amount_out,
            "profit": self.profit,
            "profit_bps": float(self.profit_bps),
            "hops": self.hops,
        }

    def format_log(self) -> str:
        """Format for consistent logging (runner and CLI)."""
        return (
            f"Profit {format_amount(self.profit, self.decimals)} "
            f"({self.profit_bps:.2f} bps) over {self.hops} hops: "
            f"{format_amount(self.notional, self.decimals)} "
            f"(fee {format_amount(self.process_fee, self.decimals)}) -> "
            f"{format_amount(self.amount_out, self.decimals)}"
        )


def compute_opportunity_breakdown(
    opportunity: Opportunity, decimals: Optional[int] = None
) -> OpportunityBreakdown:
    """
    Compute the breakdown of an emitted opportunity.

    Args:
        opportunity: Closed cycle returned by the search
        decimals: Decimal scale of the start token, for display

    Returns:
        OpportunityBreakdown with all fields computed
    """
    return OpportunityBreakdown(
        notional=opportunity.notional,
        process_fee=opportunity.notional - opportunity.amount_in,
        amount_in=opportunity.amount_in,
        amount_out=opportunity.amount_out,
        profit=opportunity.profit,
        profit_bps=profit_bps(opportunity.profit, opportunity.notional),
        hops=opportunity.hop_count,
        decimals=decimals,
    )


def meets_threshold(opportunity: Opportunity, min_profit_bps: Number = 0) -> bool:
    """True when the opportunity is profitable and clears min_profit_bps."""
    if opportunity.profit <= 0:
        return False
    return profit_bps(opportunity.profit, opportunity.notional) >= Decimal(
        str(min_profit_bps)
    )
