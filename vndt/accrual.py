"""
accrual.py - Fixed-point interest accrual shared by the vault and the debt pool

Pure integer arithmetic, no ledger access. Interest is simple interest over
the window since the last touch:

    interest = value * rate_bps * elapsed / (SECONDS_PER_YEAR * BPS_DENOMINATOR)

and it is re-applied at every touch, so repeated touches compound. Every
division truncates, and callers rely on that exact rounding.
"""

from __future__ import annotations
from datetime import datetime

from .core import PRECISION, SECONDS_PER_YEAR, BPS_DENOMINATOR, InvalidAmount


def mul_div(a: int, b: int, denominator: int) -> int:
    """Return a * b // denominator. The caller guards against a zero denominator."""
    return a * b // denominator


def elapsed_seconds(last: datetime, now: datetime) -> int:
    """
    Whole seconds from last to now, never negative.

    Example:
        >>> elapsed_seconds(datetime(2025, 1, 1), datetime(2025, 1, 2))
        86400
    """
    if now <= last:
        return 0
    return int((now - last).total_seconds())


def calculate_interest(value: int, rate_bps: int, elapsed: int) -> int:
    """
    Simple interest on value at rate_bps over elapsed seconds.

    Args:
        value: Principal in base units.
        rate_bps: Annual rate in basis points (500 = 5%).
        elapsed: Seconds since the last accrual.

    Returns:
        Interest in base units, truncated.
    """
    if value < 0 or rate_bps < 0 or elapsed < 0:
        raise InvalidAmount(
            f"interest inputs must be non-negative: value={value}, "
            f"rate={rate_bps}, elapsed={elapsed}"
        )
    return value * rate_bps * elapsed // (SECONDS_PER_YEAR * BPS_DENOMINATOR)


def shares_to_value(shares: int, total_shares: int, total_value: int) -> int:
    """Value of shares in a pool; 0 for zero shares or an empty pool."""
    if shares == 0 or total_shares == 0:
        return 0
    return shares * total_value // total_shares


def value_to_shares(amount: int, total_shares: int, total_value: int) -> int:
    """
    Shares issued for depositing amount into a pool.

    A pool without shares bootstraps at 1:1, whatever residual value it holds.
    """
    if total_shares == 0:
        return amount
    return amount * total_shares // total_value


def accrue_pool_value(total_value: int, total_shares: int, rate_bps: int, elapsed: int) -> int:
    """
    Grow a vault's pooled value by the interest earned since the last touch.

    Returns total_value unchanged when nothing elapsed, the pool is empty,
    or the rate is zero.
    """
    if elapsed == 0 or total_shares == 0 or rate_bps == 0:
        return total_value
    return total_value + calculate_interest(total_value, rate_bps, elapsed)


def accrue_exchange_rate(exchange_rate: int, total_shares: int, rate_bps: int, elapsed: int) -> int:
    """
    Grow a debt pool's share exchange rate by the interest owed since the last touch.

    Interest is computed on the pool's debt value (total_shares * exchange_rate)
    and spread over the outstanding shares. Returns exchange_rate unchanged
    when nothing elapsed, the pool is empty, or the rate is zero.

    Example:
        >>> accrue_exchange_rate(PRECISION, 100 * PRECISION, 500, SECONDS_PER_YEAR)
        1050000000000000000
    """
    if elapsed == 0 or total_shares == 0 or rate_bps == 0:
        return exchange_rate
    pool_value = mul_div(total_shares, exchange_rate, PRECISION)
    interest = calculate_interest(pool_value, rate_bps, elapsed)
    return exchange_rate + mul_div(interest, PRECISION, total_shares)
