"""
swap_pool.py - Constant-product market between the reserve asset and the pegged unit

A two-reserve x*y=k pool with a fixed 0.3% fee. Reserves are simply the
pool wallet's ledger balances; the pool holds tokens like any other wallet
and shares no accounting with the engine or the vault.

    amount_out = amount_in * 997 * reserve_out / (reserve_in * 1000 + amount_in * 997)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple
import logging

from .core import (
    LedgerView, Move, Event, PendingTransaction, Transaction,
    TransactionOrigin, OriginType, PRECISION,
    InvalidAmount, InsufficientBalance,
    build_transaction,
)

logger = logging.getLogger(__name__)

FEE_NUMERATOR = 997
FEE_DENOMINATOR = 1000


@dataclass(frozen=True, slots=True)
class PoolTerms:
    wallet: str              # Pool custody wallet holding both reserves
    asset_symbol: str        # Reserve asset (e.g., "ETH")
    token_symbol: str        # Pegged unit (e.g., "VNDT")


def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """
    Output of a swap after the 0.3% fee, truncated.

    Raises:
        InvalidAmount: If amount_in is not positive
        InsufficientBalance: If either reserve is empty

    Example:
        >>> get_amount_out(1000, 1000, 1000)
        499
    """
    if amount_in <= 0:
        raise InvalidAmount(f"swap amount must be positive, got {amount_in}")
    if reserve_in <= 0 or reserve_out <= 0:
        raise InsufficientBalance("pool has no liquidity")
    amount_in_with_fee = amount_in * FEE_NUMERATOR
    return amount_in_with_fee * reserve_out // (reserve_in * FEE_DENOMINATOR + amount_in_with_fee)


def get_reserves(view: LedgerView, terms: PoolTerms) -> Tuple[int, int]:
    """(asset reserve, token reserve) held by the pool wallet."""
    return (
        view.get_balance(terms.wallet, terms.asset_symbol),
        view.get_balance(terms.wallet, terms.token_symbol),
    )


def _origin(terms: PoolTerms, event_type: str) -> TransactionOrigin:
    return TransactionOrigin(OriginType.CONTRACT, terms.wallet, event_type=event_type)


def compute_add_liquidity(view: LedgerView, terms: PoolTerms, caller: str,
                          asset_amount: int, token_amount: int) -> PendingTransaction:
    """
    Deposit both sides into the pool.

    The token side spends the caller's allowance to the pool wallet.

    Raises:
        InvalidAmount: If either amount is not positive
    """
    if asset_amount <= 0 or token_amount <= 0:
        raise InvalidAmount(f"liquidity amounts must be positive, got {asset_amount}, {token_amount}")
    moves = [
        Move(asset_amount, terms.asset_symbol, caller, terms.wallet, "pool_add_liquidity"),
        Move(token_amount, terms.token_symbol, caller, terms.wallet, "pool_add_liquidity",
             spender=terms.wallet),
    ]
    events = [Event("LiquidityAdded", terms.wallet, {
        'provider': caller, 'asset_amount': asset_amount, 'token_amount': token_amount,
    })]
    return build_transaction(view, moves, origin=_origin(terms, "ADD_LIQUIDITY"), events=events)


def compute_swap(view: LedgerView, terms: PoolTerms, caller: str, symbol_in: str,
                 amount_in: int, min_out: int = 0) -> PendingTransaction:
    """
    Swap `amount_in` of symbol_in for the other reserve.

    Paying in the pegged unit spends the caller's allowance to the pool wallet.

    Raises:
        InvalidAmount: If amount_in is not positive, the output rounds to zero,
            or the output is below min_out
        InsufficientBalance: If the pool has no liquidity
    """
    if symbol_in == terms.asset_symbol:
        symbol_out = terms.token_symbol
    elif symbol_in == terms.token_symbol:
        symbol_out = terms.asset_symbol
    else:
        raise InvalidAmount(f"pool does not trade {symbol_in}")
    reserve_in = view.get_balance(terms.wallet, symbol_in)
    reserve_out = view.get_balance(terms.wallet, symbol_out)
    amount_out = get_amount_out(amount_in, reserve_in, reserve_out)
    if amount_out == 0:
        raise InvalidAmount(f"{amount_in} {symbol_in} buys nothing")
    if amount_out < min_out:
        raise InvalidAmount(f"output {amount_out} {symbol_out} below minimum {min_out}")
    spender = terms.wallet if symbol_in == terms.token_symbol else None
    moves = [
        Move(amount_in, symbol_in, caller, terms.wallet, "pool_swap", spender=spender),
        Move(amount_out, symbol_out, terms.wallet, caller, "pool_swap"),
    ]
    events = [Event("Swap", terms.wallet, {
        'user': caller,
        'symbol_in': symbol_in, 'amount_in': amount_in,
        'symbol_out': symbol_out, 'amount_out': amount_out,
    })]
    return build_transaction(view, moves, origin=_origin(terms, "SWAP"), events=events)


class SwapPool:
    """
    Stateful handle on a pool wallet.

    Example:
        pool = SwapPool(ledger, "vndt_dex")
        ledger.approve("lp", pool.wallet, "VNDT", 250_000 * PRECISION)
        pool.add_liquidity("lp", 100 * PRECISION, 250_000 * PRECISION)
        pool.swap_eth_for_vndt("alice", PRECISION)
    """

    def __init__(self, ledger, wallet: str, asset_symbol: str = "ETH", token_symbol: str = "VNDT"):
        self.ledger = ledger
        self.terms = PoolTerms(wallet, asset_symbol, token_symbol)

    @property
    def wallet(self) -> str:
        return self.terms.wallet

    def _commit(self, pending_factory, *args) -> Transaction:
        with self.ledger.lock:
            return self.ledger.commit(pending_factory(self.ledger, self.terms, *args))

    def get_reserves(self) -> Tuple[int, int]:
        return get_reserves(self.ledger, self.terms)

    def get_price(self) -> int:
        """Pegged units per reserve asset unit, 18 decimals; 0 while empty."""
        asset_reserve, token_reserve = self.get_reserves()
        if asset_reserve == 0:
            return 0
        return token_reserve * PRECISION // asset_reserve

    def get_amount_out(self, amount_in: int, reserve_in: int, reserve_out: int) -> int:
        return get_amount_out(amount_in, reserve_in, reserve_out)

    def add_liquidity(self, caller: str, asset_amount: int, token_amount: int) -> Transaction:
        tx = self._commit(compute_add_liquidity, caller, asset_amount, token_amount)
        logger.info("%s added %d %s / %d %s liquidity", caller,
                    asset_amount, self.terms.asset_symbol, token_amount, self.terms.token_symbol)
        return tx

    def swap_eth_for_vndt(self, caller: str, amount_in: int, min_out: int = 0) -> int:
        """Sell the reserve asset; returns the pegged units received."""
        tx = self._commit(compute_swap, caller, self.terms.asset_symbol, amount_in, min_out)
        return tx.events[0]['amount_out']

    def swap_vndt_for_eth(self, caller: str, amount_in: int, min_out: int = 0) -> int:
        """Sell the pegged unit; returns the reserve asset received."""
        tx = self._commit(compute_swap, caller, self.terms.token_symbol, amount_in, min_out)
        return tx.events[0]['amount_out']

    def __repr__(self):
        asset_reserve, token_reserve = self.get_reserves()
        return (f"SwapPool({self.wallet}: {asset_reserve} {self.terms.asset_symbol}, "
                f"{token_reserve} {self.terms.token_symbol})")
