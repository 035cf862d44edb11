"""
Swap curve math for AMM pools.

Implements the constant-product (x*y=k) and two-coin StableSwap invariants on
raw unsigned integer amounts. Fees are embedded in the quote: the trade fee is
taken off the input before the invariant, the owner fee off the gross output.
All rounding goes against the trader.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from cycle_arbitrage.exceptions import (
    ArithmeticOverflow,
    ConvergenceFailure,
    InvalidCurveParameters,
    UnsupportedCurveType,
)

U128_MAX = 2**128 - 1
N_COINS = 2
DEFAULT_MAX_ITERATIONS = 255


class CurveType(IntEnum):
    """Curve discriminators as stored by SPL token-swap style pools."""

    CONSTANT_PRODUCT = 0
    STABLE = 2


@dataclass(frozen=True)
class Fees:
    """
    Fee schedule of an AMM pool as numerator/denominator pairs.

    Attributes:
        trade_fee_numerator: Trade fee numerator (charged on the input)
        trade_fee_denominator: Trade fee denominator
        owner_trade_fee_numerator: Owner fee numerator (charged on the output)
        owner_trade_fee_denominator: Owner fee denominator
    """

    trade_fee_numerator: int = 0
    trade_fee_denominator: int = 1
    owner_trade_fee_numerator: int = 0
    owner_trade_fee_denominator: int = 1

    def trading_fee(self, amount: int) -> int:
        return _fee(amount, self.trade_fee_numerator, self.trade_fee_denominator)

    def owner_trading_fee(self, amount: int) -> int:
        return _fee(
            amount, self.owner_trade_fee_numerator, self.owner_trade_fee_denominator
        )

    @property
    def total_bps(self) -> float:
        """Nominal fee in basis points (trade + owner), for display."""
        total = 0.0
        if self.trade_fee_denominator:
            total += self.trade_fee_numerator / self.trade_fee_denominator
        if self.owner_trade_fee_denominator:
            total += self.owner_trade_fee_numerator / self.owner_trade_fee_denominator
        return total * 10_000


def _fee(amount: int, numerator: int, denominator: int) -> int:
    if numerator == 0 or amount == 0:
        return 0
    if denominator <= 0 or numerator < 0 or numerator > denominator:
        raise InvalidCurveParameters(
            f"Invalid fee fraction {numerator}/{denominator}",
            details={"numerator": numerator, "denominator": denominator},
        )
    fee = amount * numerator // denominator
    # A non-zero schedule always charges at least one unit
    return max(fee, 1)


def checked_u128(value: int, operation: str) -> int:
    """
    Ensure an intermediate amount fits the unsigned 128-bit range.

    Raises:
        ArithmeticOverflow: If value is negative or above 2**128 - 1
    """
    if value < 0 or value > U128_MAX:
        raise ArithmeticOverflow(
            f"{operation} out of u128 range: {value}",
            operation=operation,
            value=value,
        )
    return value


def ceil_div(numerator: int, denominator: int) -> int:
    """Integer division rounding up (both operands non-negative)."""
    return -(-numerator // denominator)


def constant_product_swap(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """
    Calculate output amount for a constant-product swap (fees already removed).

    Formula:
        invariant = reserve_in * reserve_out
        amount_out = reserve_out - ceil(invariant / (reserve_in + amount_in))

    Rounding the new destination balance up keeps the invariant from
    shrinking, so the output is rounded down.

    Args:
        amount_in: Input amount after the trade fee (raw units)
        reserve_in: Reserve of input token
        reserve_out: Reserve of output token

    Returns:
        Output amount (raw units), always strictly below reserve_out

    Raises:
        InvalidCurveParameters: If either reserve is zero
        ArithmeticOverflow: If reserve_in + amount_in or the invariant
            exceeds the u128 range
    """
    if reserve_in <= 0 or reserve_out <= 0:
        raise InvalidCurveParameters(
            f"Reserves must be positive: in={reserve_in}, out={reserve_out}"
        )
    checked_u128(amount_in, "amount_in")
    invariant = checked_u128(reserve_in * reserve_out, "invariant")
    new_reserve_in = checked_u128(reserve_in + amount_in, "reserve_in + amount_in")

    new_reserve_out = ceil_div(invariant, new_reserve_in)
    return reserve_out - new_reserve_out


def compute_d(
    amp: int, x: int, y: int, max_iterations: int = DEFAULT_MAX_ITERATIONS
) -> int:
    """
    Solve the StableSwap invariant D for balances x and y by Newton iteration.

    Invariant (n = 2):
        A * n^n * (x + y) + D = A * D * n^n + D^(n+1) / (n^n * x * y)

    Args:
        amp: Amplification coefficient A
        x: Balance of the first token
        y: Balance of the second token
        max_iterations: Upper bound on Newton steps

    Returns:
        Invariant D

    Raises:
        ConvergenceFailure: If successive iterates still differ by more than 1
            after max_iterations steps
    """
    total = x + y
    if total == 0:
        return 0

    ann = amp * N_COINS**N_COINS
    d = total
    for _ in range(max_iterations):
        d_p = d
        d_p = d_p * d // (x * N_COINS)
        d_p = d_p * d // (y * N_COINS)
        d_prev = d
        d = (ann * total + d_p * N_COINS) * d // (
            (ann - 1) * d + (N_COINS + 1) * d_p
        )
        if abs(d - d_prev) <= 1:
            return d

    raise ConvergenceFailure(
        f"StableSwap invariant did not converge in {max_iterations} iterations",
        iterations=max_iterations,
        details={"amp": amp, "x": x, "y": y},
    )


def compute_y(
    amp: int, x_new: int, d: int, max_iterations: int = DEFAULT_MAX_ITERATIONS
) -> int:
    """
    Solve for the other balance given one balance and the invariant D.

    Raises:
        ConvergenceFailure: If the Newton solve does not settle
    """
    ann = amp * N_COINS**N_COINS
    c = d * d // (x_new * N_COINS)
    c = c * d // (ann * N_COINS)
    b = x_new + d // ann

    y = d
    for _ in range(max_iterations):
        y_prev = y
        y = (y * y + c) // (2 * y + b - d)
        if abs(y - y_prev) <= 1:
            return y

    raise ConvergenceFailure(
        f"StableSwap balance did not converge in {max_iterations} iterations",
        iterations=max_iterations,
        details={"amp": amp, "x_new": x_new, "d": d},
    )


def stable_swap(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    amp: int,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> int:
    """
    Calculate output amount for a StableSwap trade (fees already removed).

    Args:
        amount_in: Input amount after the trade fee (raw units)
        reserve_in: Reserve of input token
        reserve_out: Reserve of output token
        amp: Amplification coefficient
        max_iterations: Newton iteration bound for both solves

    Returns:
        Output amount (raw units)

    Raises:
        InvalidCurveParameters: If a reserve or amp is not positive
        ConvergenceFailure: If either Newton solve fails to settle
        ArithmeticOverflow: If reserve_in + amount_in exceeds the u128 range
    """
    if reserve_in <= 0 or reserve_out <= 0:
        raise InvalidCurveParameters(
            f"Reserves must be positive: in={reserve_in}, out={reserve_out}"
        )
    if amp <= 0:
        raise InvalidCurveParameters(f"Amplification must be positive: {amp}")
    checked_u128(amount_in, "amount_in")
    new_reserve_in = checked_u128(reserve_in + amount_in, "reserve_in + amount_in")

    d = compute_d(amp, reserve_in, reserve_out, max_iterations)
    new_reserve_out = compute_y(amp, new_reserve_in, d, max_iterations)

    # One unit off for the rounding of both solves
    amount_out = reserve_out - new_reserve_out - 1
    return max(0, amount_out)


def quote(
    curve_type: int,
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    fees: Fees,
    amp: Optional[int] = None,
) -> int:
    """
    Quote an AMM swap including its fee schedule.

    Total value extracted is trade_fee(amount_in) + owner_fee(gross_out).

    Args:
        curve_type: Curve discriminator (see CurveType)
        amount_in: Raw input amount
        reserve_in: Reserve of input token
        reserve_out: Reserve of output token
        fees: Pool fee schedule
        amp: Amplification coefficient (stable curves only)

    Returns:
        Raw output amount delivered to the trader

    Raises:
        UnsupportedCurveType: If curve_type is not a known discriminator
        InvalidCurveParameters: On zero reserves, bad fees or missing amp
        ConvergenceFailure: If a stable-curve solve does not settle
        ArithmeticOverflow: If amounts leave the u128 range
    """
    checked_u128(amount_in, "amount_in")
    checked_u128(reserve_in, "reserve_in")
    checked_u128(reserve_out, "reserve_out")

    amount_in_after_fee = amount_in - fees.trading_fee(amount_in)

    if curve_type == CurveType.CONSTANT_PRODUCT:
        gross_out = constant_product_swap(amount_in_after_fee, reserve_in, reserve_out)
    elif curve_type == CurveType.STABLE:
        if amp is None:
            raise InvalidCurveParameters("Stable curve requires an amplification")
        gross_out = stable_swap(amount_in_after_fee, reserve_in, reserve_out, amp)
    else:
        raise UnsupportedCurveType(
            f"Unsupported curve type: {curve_type}", curve_type=curve_type
        )

    return gross_out - fees.owner_trading_fee(gross_out)
