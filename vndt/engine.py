"""
engine.py - Collateralized Borrowing of the Pegged Unit

This module provides the debt engine: users lock the reserve asset as
collateral, borrow the pegged unit against it as debt shares, repay, withdraw,
and get liquidated when their position falls below the minimum ratio.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES (explicit inputs):
   - DebtTerms: Identities and thresholds fixed at deployment
   - DebtState: Global debt pool and per-wallet positions
   - PositionSnapshot: Read-only view of one wallet's position

2. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take all inputs explicitly as parameters, price included

3. ADAPTER FUNCTIONS (load_debt_pool, to_state_dict)

4. CONVENIENCE FUNCTIONS (compute_*):
   - Take (view, symbol, caller, ..., price) and return a PendingTransaction
   - Always accrue, then change state, then validate the projected position;
     value moves are applied by the ledger in the same atomic step

5. FACADE (DebtEngine):
   - Reads the live price from the oracle and commits under the ledger lock

Key Formulas:
    debt_value       = debt_shares * debt_exchange_rate / PRECISION
    collateral_value = collateral * price / PRECISION
    position_ratio   = collateral_value * 100 / debt_value   (MAX_RATIO without debt)
    mint:  shares    = amount * PRECISION / debt_exchange_rate
    accrual: debt_exchange_rate += interest(total_debt_value) * PRECISION / total_debt_shares

Position lifecycle:
    Empty -> Collateralized -> Borrowing -> Repaid -> Collateralized
                                         -> Liquidated -> Empty
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Any, List, Optional, Tuple, Mapping
import logging

from .accrual import elapsed_seconds, accrue_exchange_rate, mul_div
from .core import (
    LedgerView, Move, Event, PendingTransaction, Transaction, Unit, UnitStateChange,
    TransactionOrigin, OriginType,
    PRECISION, SYSTEM_WALLET, MIN_COLLATERAL_RATIO, LIQUIDATOR_REWARD_PERCENT, MAX_RATIO,
    UNIT_TYPE_DEBT_POOL,
    InvalidAmount, InsufficientCollateral, NotAuthorized,
    UnsafePositionRatio, NotLiquidatable,
    build_transaction, state_only_transfer_rule,
    _freeze_state,
)

logger = logging.getLogger(__name__)


# ============================================================================
# FROZEN DATACLASSES - Explicit Inputs for Pure Functions
# ============================================================================

@dataclass(frozen=True, slots=True)
class DebtTerms:
    """
    Immutable terms of the debt engine - set at deployment, never change.
    """
    token_symbol: str            # Pegged unit minted as debt (e.g., "VNDT")
    collateral_symbol: str       # Reserve asset locked as collateral (e.g., "ETH")
    engine_wallet: str           # Custody of collateral; the pegged unit's minter
    rate_controller: str         # Only identity allowed to change the borrow rate
    protocol_wallet: str         # Receives the protocol share of liquidated collateral
    min_collateral_ratio: int = MIN_COLLATERAL_RATIO
    liquidator_reward_percent: int = LIQUIDATOR_REWARD_PERCENT


@dataclass(frozen=True, slots=True)
class DebtState:
    """
    Immutable snapshot of the debt pool and every position in it.

    debt_exchange_rate starts at PRECISION and never decreases.
    """
    total_debt_shares: int
    debt_exchange_rate: int
    last_update_time: datetime
    borrow_rate: int                    # Annual rate in basis points
    collateral: Mapping[str, int]       # wallet -> reserve asset locked
    debt_shares: Mapping[str, int]      # wallet -> debt shares

    @property
    def total_debt_value(self) -> int:
        return calculate_debt_value(self.total_debt_shares, self.debt_exchange_rate)


@dataclass(frozen=True, slots=True)
class PositionSnapshot:
    """One wallet's position valued at a given price."""
    user: str
    collateral: int
    debt_shares: int
    debt_value: int
    collateral_value: int
    ratio: int
    max_mintable: int

    @property
    def is_liquidatable(self) -> bool:
        return self.ratio < MIN_COLLATERAL_RATIO


# ============================================================================
# ADAPTER FUNCTIONS
# ============================================================================

def load_debt_pool(view: LedgerView, symbol: str) -> Tuple[DebtTerms, DebtState]:
    """
    Load the debt pool from ledger state as typed frozen dataclasses.

    Example:
        terms, state = load_debt_pool(view, "dVNDT")
        debt = calculate_debt_value(state.debt_shares.get("alice", 0), state.debt_exchange_rate)
    """
    raw = view.get_unit_state(symbol)
    terms = DebtTerms(
        token_symbol=raw['token_symbol'],
        collateral_symbol=raw['collateral_symbol'],
        engine_wallet=raw['engine_wallet'],
        rate_controller=raw['rate_controller'],
        protocol_wallet=raw['protocol_wallet'],
        min_collateral_ratio=raw.get('min_collateral_ratio', MIN_COLLATERAL_RATIO),
        liquidator_reward_percent=raw.get('liquidator_reward_percent', LIQUIDATOR_REWARD_PERCENT),
    )
    state = DebtState(
        total_debt_shares=raw.get('total_debt_shares', 0),
        debt_exchange_rate=raw.get('debt_exchange_rate', PRECISION),
        last_update_time=raw.get('last_update_time') or view.current_time,
        borrow_rate=raw.get('borrow_rate', 0),
        collateral=dict(raw.get('collateral', {})),
        debt_shares=dict(raw.get('debt_shares', {})),
    )
    return terms, state


def to_state_dict(terms: DebtTerms, state: DebtState) -> Dict[str, Any]:
    """Convert typed dataclasses back to the state dict stored on the pool unit."""
    return {
        'token_symbol': terms.token_symbol,
        'collateral_symbol': terms.collateral_symbol,
        'engine_wallet': terms.engine_wallet,
        'rate_controller': terms.rate_controller,
        'protocol_wallet': terms.protocol_wallet,
        'min_collateral_ratio': terms.min_collateral_ratio,
        'liquidator_reward_percent': terms.liquidator_reward_percent,
        'total_debt_shares': state.total_debt_shares,
        'debt_exchange_rate': state.debt_exchange_rate,
        'last_update_time': state.last_update_time,
        'borrow_rate': state.borrow_rate,
        'collateral': dict(state.collateral),
        'debt_shares': dict(state.debt_shares),
    }


# ============================================================================
# PURE CALCULATION FUNCTIONS - No LedgerView, All Inputs Explicit
# ============================================================================

def calculate_debt_value(debt_shares: int, exchange_rate: int) -> int:
    """Pegged-unit value of debt shares at the given exchange rate."""
    return mul_div(debt_shares, exchange_rate, PRECISION)


def calculate_collateral_value(collateral: int, price: int) -> int:
    """Pegged-unit value of reserve asset at `price` (pegged units per asset, 18 decimals)."""
    return mul_div(collateral, price, PRECISION)


def calculate_position_ratio(collateral_value: int, debt_value: int) -> int:
    """
    Collateralization ratio in whole percent, truncated.

    A position without debt is infinitely safe and reports MAX_RATIO.
    """
    if debt_value == 0:
        return MAX_RATIO
    return collateral_value * 100 // debt_value


def calculate_max_mintable(collateral_value: int, debt_value: int, min_ratio: int = MIN_COLLATERAL_RATIO) -> int:
    """Largest additional debt that keeps the ratio at or above min_ratio."""
    capacity = collateral_value * 100 // min_ratio
    return max(0, capacity - debt_value)


def calculate_accrual(state: DebtState, now: datetime) -> DebtState:
    """
    Bring the debt exchange rate up to `now`.

    The window always restarts at `now`, even when the rate did not move.
    """
    elapsed = elapsed_seconds(state.last_update_time, now)
    new_rate = accrue_exchange_rate(
        state.debt_exchange_rate, state.total_debt_shares, state.borrow_rate, elapsed
    )
    return replace(state, debt_exchange_rate=new_rate, last_update_time=now)


def calculate_position(state: DebtState, user: str, price: int, min_ratio: int = MIN_COLLATERAL_RATIO) -> PositionSnapshot:
    """Value one wallet's position at `price` using the state as given."""
    collateral = state.collateral.get(user, 0)
    shares = state.debt_shares.get(user, 0)
    debt_value = calculate_debt_value(shares, state.debt_exchange_rate)
    collateral_value = calculate_collateral_value(collateral, price)
    return PositionSnapshot(
        user=user,
        collateral=collateral,
        debt_shares=shares,
        debt_value=debt_value,
        collateral_value=collateral_value,
        ratio=calculate_position_ratio(collateral_value, debt_value),
        max_mintable=calculate_max_mintable(collateral_value, debt_value, min_ratio),
    )


def _adjust(mapping: Mapping[str, int], wallet: str, delta: int) -> Dict[str, int]:
    """Copy of mapping with wallet's entry changed by delta; zero entries are removed."""
    updated = dict(mapping)
    value = updated.get(wallet, 0) + delta
    if value:
        updated[wallet] = value
    else:
        updated.pop(wallet, None)
    return updated


def _require_safe(terms: DebtTerms, state: DebtState, user: str, price: int) -> None:
    position = calculate_position(state, user, price, terms.min_collateral_ratio)
    if position.ratio < terms.min_collateral_ratio:
        raise UnsafePositionRatio(
            f"{user} would be at {position.ratio}% "
            f"(collateral value {position.collateral_value}, debt {position.debt_value}), "
            f"minimum is {terms.min_collateral_ratio}%"
        )


def _require_positive(amount: int, what: str) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(f"{what} must be a positive int, got {amount!r}")


# ============================================================================
# UNIT CREATION
# ============================================================================

def create_debt_pool(
    symbol: str,
    name: str,
    token_symbol: str,
    collateral_symbol: str,
    engine_wallet: str,
    rate_controller: str,
    protocol_wallet: str,
    start_time: datetime,
    borrow_rate: int = 0,
) -> Unit:
    """
    Create the unit that carries the debt engine's pool state.

    Args:
        symbol: Pool unit symbol (e.g., "dVNDT")
        name: Human-readable name
        token_symbol: Pegged unit minted as debt
        collateral_symbol: Reserve asset accepted as collateral
        engine_wallet: Collateral custody and pegged-unit minter
        rate_controller: Identity allowed to set the borrow rate
        protocol_wallet: Beneficiary of the protocol share on liquidation
        start_time: Accrual start (usually the ledger's current time)
        borrow_rate: Initial annual rate in basis points

    Raises:
        ValueError: If an identity is empty or the rate is negative
    """
    if not all([token_symbol, collateral_symbol, engine_wallet, rate_controller, protocol_wallet]):
        raise ValueError("debt pool identities cannot be empty")
    if borrow_rate < 0:
        raise ValueError(f"borrow_rate cannot be negative, got {borrow_rate}")
    terms = DebtTerms(token_symbol, collateral_symbol, engine_wallet, rate_controller, protocol_wallet)
    state = DebtState(
        total_debt_shares=0,
        debt_exchange_rate=PRECISION,
        last_update_time=start_time,
        borrow_rate=borrow_rate,
        collateral={},
        debt_shares={},
    )
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_DEBT_POOL,
        transfer_rule=state_only_transfer_rule,
        _frozen_state=_freeze_state(to_state_dict(terms, state)),
    )


# ============================================================================
# COMPUTE FUNCTIONS - Return PendingTransaction
# ============================================================================

def _origin(terms: DebtTerms, symbol: str, event_type: str) -> TransactionOrigin:
    return TransactionOrigin(OriginType.CONTRACT, terms.engine_wallet, symbol, event_type)


def _accrued(view: LedgerView, symbol: str):
    """Load the pool and accrue it to view.current_time; shared prologue of every write."""
    raw = view.get_unit_state(symbol)
    terms, state = load_debt_pool(view, symbol)
    return raw, terms, calculate_accrual(state, view.current_time)


def _build(view, symbol, raw, terms, state, moves, events, event_type) -> PendingTransaction:
    changes = [UnitStateChange(symbol, raw, to_state_dict(terms, state))]
    return build_transaction(view, moves, changes, _origin(terms, symbol, event_type), events)


def compute_accrue_interest(view: LedgerView, symbol: str) -> PendingTransaction:
    """
    Accrue borrow interest into the debt exchange rate up to view.current_time.

    Never fails. With nothing elapsed, no debt or a zero rate only
    last_update_time moves.
    """
    raw, terms, state = _accrued(view, symbol)
    new_raw = to_state_dict(terms, state)
    changes = [UnitStateChange(symbol, raw, new_raw)] if new_raw != raw else []
    return build_transaction(view, [], changes, _origin(terms, symbol, "ACCRUE"))


def compute_add_collateral(view: LedgerView, symbol: str, caller: str, amount: int, price: int) -> PendingTransaction:
    """
    Lock `amount` of the reserve asset as collateral.

    No ratio check: adding collateral only improves a position.

    Raises:
        InvalidAmount: If amount is not positive
    """
    _require_positive(amount, "collateral amount")
    raw, terms, state = _accrued(view, symbol)
    state = replace(state, collateral=_adjust(state.collateral, caller, amount))
    moves = [Move(amount, terms.collateral_symbol, caller, terms.engine_wallet, f"{symbol}_deposit")]
    events = [Event("CollateralAdded", terms.engine_wallet, {'user': caller, 'amount': amount, 'price': price})]
    return _build(view, symbol, raw, terms, state, moves, events, "ADD_COLLATERAL")


def compute_mint(view: LedgerView, symbol: str, caller: str, amount: int, price: int) -> PendingTransaction:
    """
    Borrow `amount` of the pegged unit against the caller's collateral.

    The debt is recorded as shares at the accrued exchange rate and the
    resulting position must stay at or above the minimum ratio.

    Raises:
        InvalidAmount: If amount is not positive
        UnsafePositionRatio: If the position would fall below the minimum ratio

    Example:
        # 1 ETH at 2500 VNDT/ETH supports at most 1666.666... VNDT at 150%
        pending = compute_mint(view, "dVNDT", "alice", 1666 * PRECISION, 2500 * PRECISION)
    """
    _require_positive(amount, "mint amount")
    raw, terms, state = _accrued(view, symbol)
    shares = mul_div(amount, PRECISION, state.debt_exchange_rate)
    state = replace(
        state,
        debt_shares=_adjust(state.debt_shares, caller, shares),
        total_debt_shares=state.total_debt_shares + shares,
    )
    _require_safe(terms, state, caller, price)
    moves = [Move(amount, terms.token_symbol, SYSTEM_WALLET, caller, f"{symbol}_mint")]
    events = [Event("DebtSharesMinted", terms.engine_wallet, {'user': caller, 'amount': amount, 'shares': shares})]
    return _build(view, symbol, raw, terms, state, moves, events, "MINT")


def compute_repay(view: LedgerView, symbol: str, caller: str, amount: int) -> PendingTransaction:
    """
    Repay up to `amount` of the caller's debt.

    Repaying more than is owed caps at the owed amount. A full repayment
    retires every debt share; a partial one retires the shares the amount
    buys at the accrued rate. The burn spends the caller's allowance to the
    engine wallet.

    Raises:
        InvalidAmount: If amount is not positive or the caller owes nothing
    """
    _require_positive(amount, "repay amount")
    raw, terms, state = _accrued(view, symbol)
    held = state.debt_shares.get(caller, 0)
    debt = calculate_debt_value(held, state.debt_exchange_rate)
    if debt == 0:
        raise InvalidAmount(f"{caller} has no debt to repay")
    actual = min(amount, debt)
    if actual == debt:
        shares = held
    else:
        shares = min(mul_div(actual, PRECISION, state.debt_exchange_rate), held)
    state = replace(
        state,
        debt_shares=_adjust(state.debt_shares, caller, -shares),
        total_debt_shares=state.total_debt_shares - shares,
    )
    moves = [Move(actual, terms.token_symbol, caller, SYSTEM_WALLET, f"{symbol}_repay",
                  spender=terms.engine_wallet)]
    events = [Event("DebtSharesBurned", terms.engine_wallet, {'user': caller, 'amount': actual, 'shares': shares})]
    return _build(view, symbol, raw, terms, state, moves, events, "REPAY")


def compute_withdraw_collateral(view: LedgerView, symbol: str, caller: str, amount: int, price: int) -> PendingTransaction:
    """
    Release `amount` of the caller's collateral.

    Raises:
        InvalidAmount: If amount is not positive
        InsufficientCollateral: If the caller has less collateral locked
        UnsafePositionRatio: If the remaining position would fall below the minimum ratio
    """
    _require_positive(amount, "withdraw amount")
    raw, terms, state = _accrued(view, symbol)
    held = state.collateral.get(caller, 0)
    if amount > held:
        raise InsufficientCollateral(f"{caller} has {held} collateral locked, cannot withdraw {amount}")
    state = replace(state, collateral=_adjust(state.collateral, caller, -amount))
    _require_safe(terms, state, caller, price)
    moves = [Move(amount, terms.collateral_symbol, terms.engine_wallet, caller, f"{symbol}_withdraw")]
    events = [Event("CollateralWithdrawn", terms.engine_wallet, {'user': caller, 'amount': amount, 'price': price})]
    return _build(view, symbol, raw, terms, state, moves, events, "WITHDRAW")


def compute_liquidation(view: LedgerView, symbol: str, caller: str, user: str, price: int) -> PendingTransaction:
    """
    Close an undercollateralized position in full.

    The liquidator repays the user's whole debt (burned from the liquidator,
    spending its allowance to the engine) and the user's collateral is paid
    out: liquidator_reward_percent to the liquidator, the rest to the
    protocol wallet. Any shortfall between collateral and debt is absorbed
    by closing the position.

    Raises:
        NotLiquidatable: If the position is at or above the minimum ratio
    """
    raw, terms, state = _accrued(view, symbol)
    position = calculate_position(state, user, price, terms.min_collateral_ratio)
    if position.ratio >= terms.min_collateral_ratio:
        raise NotLiquidatable(f"{user} is at {position.ratio}%, minimum is {terms.min_collateral_ratio}%")

    liquidator_reward = position.collateral_value * terms.liquidator_reward_percent // 100
    liquidator_collateral = position.collateral * terms.liquidator_reward_percent // 100
    protocol_collateral = position.collateral - liquidator_collateral

    state = replace(
        state,
        collateral=_adjust(state.collateral, user, -position.collateral),
        debt_shares=_adjust(state.debt_shares, user, -position.debt_shares),
        total_debt_shares=state.total_debt_shares - position.debt_shares,
    )

    moves: List[Move] = []
    if position.debt_value > 0:
        moves.append(Move(position.debt_value, terms.token_symbol, caller, SYSTEM_WALLET,
                          f"{symbol}_liquidate", spender=terms.engine_wallet))
    if liquidator_collateral > 0:
        moves.append(Move(liquidator_collateral, terms.collateral_symbol, terms.engine_wallet, caller,
                          f"{symbol}_liquidator_reward"))
    if protocol_collateral > 0:
        moves.append(Move(protocol_collateral, terms.collateral_symbol, terms.engine_wallet,
                          terms.protocol_wallet, f"{symbol}_protocol_reward"))
    events = [Event("Liquidation", terms.engine_wallet, {
        'user': user,
        'liquidator': caller,
        'liquidator_reward': liquidator_reward,
        'debt': position.debt_value,
        'price': price,
    })]
    return _build(view, symbol, raw, terms, state, moves, events, "LIQUIDATE")


def compute_set_borrow_rate(view: LedgerView, symbol: str, caller: str, new_rate: int) -> PendingTransaction:
    """
    Replace the borrow rate, accruing under the old rate first.

    Raises:
        NotAuthorized: If the caller is not the rate controller
        InvalidAmount: If new_rate is negative
    """
    terms, _ = load_debt_pool(view, symbol)
    if caller != terms.rate_controller:
        raise NotAuthorized(f"only {terms.rate_controller} may set the borrow rate, not {caller}")
    if isinstance(new_rate, bool) or not isinstance(new_rate, int) or new_rate < 0:
        raise InvalidAmount(f"borrow rate must be a non-negative int, got {new_rate!r}")
    raw, terms, state = _accrued(view, symbol)
    state = replace(state, borrow_rate=new_rate)
    events = [Event("BorrowRateUpdated", terms.engine_wallet, {'rate': new_rate})]
    return _build(view, symbol, raw, terms, state, [], events, "SET_RATE")


# ============================================================================
# FACADE
# ============================================================================

class DebtEngine:
    """
    Stateful handle on the debt pool, priced by an oracle.

    Writes hold the ledger lock across compute and commit and raise the
    domain error on failure. Reads value positions at the live oracle price
    with interest accrued up to the ledger's current time, without
    committing that accrual.

    Example:
        engine = DebtEngine(ledger, "dVNDT", oracle, vault)
        engine.add_collateral("alice", PRECISION)
        engine.mint_vndt("alice", 1000 * PRECISION)
        ledger.approve("alice", engine.wallet, "VNDT", UNLIMITED_ALLOWANCE)
        engine.repay_up_to("alice", 1000 * PRECISION)
    """

    def __init__(self, ledger, symbol: str, oracle, vault=None):
        self.ledger = ledger
        self.symbol = symbol
        self.oracle = oracle
        self.vault = vault
        self.terms, _ = load_debt_pool(ledger, symbol)

    @property
    def wallet(self) -> str:
        return self.terms.engine_wallet

    def _price(self) -> int:
        return self.oracle.get_eth_price()

    def _commit(self, compute, *args) -> Optional[Transaction]:
        with self.ledger.lock:
            return self.ledger.commit(compute(self.ledger, self.symbol, *args))

    def _accrued_state(self) -> DebtState:
        _, state = load_debt_pool(self.ledger, self.symbol)
        return calculate_accrual(state, self.ledger.current_time)

    # Writes

    def accrue_interest(self) -> Optional[Transaction]:
        return self._commit(compute_accrue_interest)

    def add_collateral(self, caller: str, amount: int) -> Transaction:
        with self.ledger.lock:
            tx = self._commit(compute_add_collateral, caller, amount, self._price())
        logger.info("%s added %d %s collateral", caller, amount, self.terms.collateral_symbol)
        return tx

    def mint_vndt(self, caller: str, amount: int) -> Transaction:
        with self.ledger.lock:
            tx = self._commit(compute_mint, caller, amount, self._price())
        logger.info("%s minted %d %s", caller, amount, self.terms.token_symbol)
        return tx

    def repay_up_to(self, caller: str, amount: int) -> Transaction:
        tx = self._commit(compute_repay, caller, amount)
        logger.info("%s repaid %d %s", caller, tx.events[0]['amount'], self.terms.token_symbol)
        return tx

    def withdraw_collateral(self, caller: str, amount: int) -> Transaction:
        with self.ledger.lock:
            tx = self._commit(compute_withdraw_collateral, caller, amount, self._price())
        logger.info("%s withdrew %d %s collateral", caller, amount, self.terms.collateral_symbol)
        return tx

    def liquidate(self, caller: str, user: str) -> Transaction:
        with self.ledger.lock:
            tx = self._commit(compute_liquidation, caller, user, self._price())
        event = tx.events[-1]
        logger.warning("%s liquidated %s: debt %d, reward %d",
                       caller, user, event['debt'], event['liquidator_reward'])
        return tx

    def set_borrow_rate(self, caller: str, new_rate: int) -> Transaction:
        tx = self._commit(compute_set_borrow_rate, caller, new_rate)
        logger.info("%s borrow rate set to %d bps", self.symbol, new_rate)
        return tx

    # Reads

    def get_position(self, user: str) -> PositionSnapshot:
        return calculate_position(self._accrued_state(), user, self._price(), self.terms.min_collateral_ratio)

    def calculate_collateral_value(self, user: str) -> int:
        return self.get_position(user).collateral_value

    def current_debt_value(self, user: str) -> int:
        return self.get_position(user).debt_value

    def calculate_position_ratio(self, user: str) -> int:
        return self.get_position(user).ratio

    def is_liquidatable(self, user: str) -> bool:
        return self.calculate_position_ratio(user) < self.terms.min_collateral_ratio

    def get_max_mintable(self, user: str) -> int:
        return self.get_position(user).max_mintable

    def total_debt_value(self) -> int:
        return self._accrued_state().total_debt_value

    @property
    def debt_exchange_rate(self) -> int:
        return self._accrued_state().debt_exchange_rate

    @property
    def borrow_rate(self) -> int:
        return load_debt_pool(self.ledger, self.symbol)[1].borrow_rate

    def positions(self) -> List[str]:
        """Wallets with collateral or debt, sorted."""
        _, state = load_debt_pool(self.ledger, self.symbol)
        return sorted(set(state.collateral) | set(state.debt_shares))

    def get_system_stats(self) -> Dict[str, int]:
        """Aggregate figures across the engine, the vault and the ledger."""
        state = self._accrued_state()
        price = self._price()
        total_collateral = sum(state.collateral.values())
        stats = {
            'eth_price': price,
            'total_collateral': total_collateral,
            'total_collateral_value': calculate_collateral_value(total_collateral, price),
            'total_debt_value': state.total_debt_value,
            'total_debt_shares': state.total_debt_shares,
            'debt_exchange_rate': state.debt_exchange_rate,
            'borrow_rate': state.borrow_rate,
            'token_supply': self.ledger.total_supply(self.terms.token_symbol),
        }
        if self.vault is not None:
            stats['total_staked_value'] = self.vault.total_value
            stats['staking_rate'] = self.vault.staking_rate
        return stats
