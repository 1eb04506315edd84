"""
staking.py - Share-Based Yield Vault for the Pegged Unit

This module provides the staking vault using the pure function architecture
shared by every pool in the package.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES (explicit inputs):
   - VaultTerms: Identities fixed at deployment (token, vault wallet, rate controller)
   - VaultState: Pool snapshot (total shares, pooled value, rate, per-wallet shares)

2. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take all inputs explicitly as parameters
   - No LedgerView, no hidden state

3. ADAPTER FUNCTIONS (load_vault, to_state_dict):
   - The ONLY place that touches LedgerView for reads

4. CONVENIENCE FUNCTIONS (compute_*):
   - Take (view, symbol, ...) and return a PendingTransaction
   - Always accrue before touching shares or the rate

5. FACADE (StakingVault):
   - Binds a ledger and a pool symbol, holds the ledger lock across
     compute and commit, and raises on failure

Key Formulas:
    shares_value(s) = s * total_value / total_shares        (0 on an empty pool)
    stake:   shares = amount * total_shares / total_value   (1:1 on an empty pool)
    unstake: value  = shares_value(shares)
    accrual: total_value += total_value * rate * elapsed / (SECONDS_PER_YEAR * 10_000)

The vault never holds stored tokens. Staked tokens are burned on the way in
and minted on the way out, and the ledger reports the vault wallet's balance
as shares_value(total_shares).
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Any, Optional, Tuple, Mapping
import logging

from .accrual import (
    elapsed_seconds, calculate_interest, accrue_pool_value,
    shares_to_value, value_to_shares,
)
from .core import (
    LedgerView, Move, Event, PendingTransaction, Transaction, Unit, UnitStateChange,
    TransactionOrigin, OriginType,
    UNIT_TYPE_STAKING_POOL,
    InvalidAmount, InsufficientShares, NotAuthorized,
    build_transaction, state_only_transfer_rule,
    _freeze_state,
)

logger = logging.getLogger(__name__)


# ============================================================================
# FROZEN DATACLASSES - Explicit Inputs for Pure Functions
# ============================================================================

@dataclass(frozen=True, slots=True)
class VaultTerms:
    """Identities fixed when the vault is deployed."""
    token_symbol: str       # Pegged unit being staked (e.g., "VNDT")
    vault_wallet: str       # Wallet whose ledger balance is the pool value
    rate_controller: str    # Only identity allowed to change the staking rate


@dataclass(frozen=True, slots=True)
class VaultState:
    """
    Immutable snapshot of the vault pool.

    Each state change creates a NEW instance (value semantics).
    """
    total_shares: int
    total_value: int
    last_update_time: datetime
    staking_rate: int                  # Annual rate in basis points
    shares: Mapping[str, int]          # wallet -> shares, zero entries removed


# ============================================================================
# ADAPTER FUNCTIONS
# ============================================================================

def load_vault(view: LedgerView, symbol: str) -> Tuple[VaultTerms, VaultState]:
    """
    Load a staking vault from ledger state as typed frozen dataclasses.

    Args:
        view: Read-only ledger access
        symbol: Staking pool unit symbol

    Returns:
        Tuple of (VaultTerms, VaultState)

    Example:
        terms, state = load_vault(view, "sVNDT")
        value = calculate_shares_value(state, state.shares.get("alice", 0))
    """
    raw = view.get_unit_state(symbol)
    terms = VaultTerms(
        token_symbol=raw['token_symbol'],
        vault_wallet=raw['vault_wallet'],
        rate_controller=raw['rate_controller'],
    )
    state = VaultState(
        total_shares=raw.get('total_shares', 0),
        total_value=raw.get('total_value', 0),
        last_update_time=raw.get('last_update_time') or view.current_time,
        staking_rate=raw.get('staking_rate', 0),
        shares=dict(raw.get('shares', {})),
    )
    return terms, state


def to_state_dict(terms: VaultTerms, state: VaultState) -> Dict[str, Any]:
    """Convert typed dataclasses back to the state dict stored on the pool unit."""
    return {
        'token_symbol': terms.token_symbol,
        'vault_wallet': terms.vault_wallet,
        'rate_controller': terms.rate_controller,
        'total_shares': state.total_shares,
        'total_value': state.total_value,
        'last_update_time': state.last_update_time,
        'staking_rate': state.staking_rate,
        'shares': dict(state.shares),
    }


# ============================================================================
# PURE CALCULATION FUNCTIONS - No LedgerView, All Inputs Explicit
# ============================================================================

def calculate_shares_value(state: VaultState, shares: int) -> int:
    """Value of `shares`; 0 for zero shares or an empty pool. No accrual."""
    return shares_to_value(shares, state.total_shares, state.total_value)


def calculate_accrual(state: VaultState, now: datetime) -> Tuple[VaultState, int]:
    """
    Bring the pool value up to `now`.

    Simple interest over the window since last_update_time. The window
    always restarts at `now`, even when no interest was added.

    Returns:
        Tuple of (new state, interest added)
    """
    elapsed = elapsed_seconds(state.last_update_time, now)
    new_value = accrue_pool_value(state.total_value, state.total_shares, state.staking_rate, elapsed)
    return replace(state, total_value=new_value, last_update_time=now), new_value - state.total_value


def calculate_stake(state: VaultState, wallet: str, amount: int) -> Tuple[VaultState, int]:
    """
    Deposit `amount` into an already-accrued pool.

    An empty pool bootstraps at 1:1 and its pooled value restarts at `amount`.

    Returns:
        Tuple of (new state, shares issued)

    Raises:
        InvalidAmount: If amount is not positive
    """
    if amount <= 0:
        raise InvalidAmount(f"stake amount must be positive, got {amount}")
    if state.total_shares == 0:
        shares = amount
        new_value = amount
    else:
        shares = value_to_shares(amount, state.total_shares, state.total_value)
        new_value = state.total_value + amount
    holdings = dict(state.shares)
    holdings[wallet] = holdings.get(wallet, 0) + shares
    if holdings[wallet] == 0:
        del holdings[wallet]
    new_state = replace(
        state,
        total_shares=state.total_shares + shares,
        total_value=new_value,
        shares=holdings,
    )
    return new_state, shares


def calculate_unstake(state: VaultState, wallet: str, shares: int) -> Tuple[VaultState, int]:
    """
    Redeem `shares` from an already-accrued pool.

    The value is taken before any total changes.

    Returns:
        Tuple of (new state, value paid out)

    Raises:
        InvalidAmount: If shares is not positive
        InsufficientShares: If the wallet holds fewer shares
    """
    if shares <= 0:
        raise InvalidAmount(f"unstake shares must be positive, got {shares}")
    held = state.shares.get(wallet, 0)
    if shares > held:
        raise InsufficientShares(f"{wallet} holds {held} shares, cannot redeem {shares}")
    value = calculate_shares_value(state, shares)
    holdings = dict(state.shares)
    if held == shares:
        del holdings[wallet]
    else:
        holdings[wallet] = held - shares
    new_state = replace(
        state,
        total_shares=state.total_shares - shares,
        total_value=state.total_value - value,
        shares=holdings,
    )
    return new_state, value


# ============================================================================
# UNIT CREATION
# ============================================================================

def create_staking_pool(
    symbol: str,
    name: str,
    token_symbol: str,
    vault_wallet: str,
    rate_controller: str,
    start_time: datetime,
    staking_rate: int = 0,
) -> Unit:
    """
    Create the unit that carries the staking vault's pool state.

    The unit itself is never transferred: shares live in its state.

    Args:
        symbol: Pool unit symbol (e.g., "sVNDT")
        name: Human-readable name
        token_symbol: Pegged unit accepted by the vault
        vault_wallet: Vault custody wallet (the ledger's virtual-balance wallet)
        rate_controller: Identity allowed to set the staking rate
        start_time: Accrual start (usually the ledger's current time)
        staking_rate: Initial annual rate in basis points

    Raises:
        ValueError: If an identity is empty or the rate is negative
    """
    if not token_symbol or not vault_wallet or not rate_controller:
        raise ValueError("token_symbol, vault_wallet and rate_controller are required")
    if staking_rate < 0:
        raise ValueError(f"staking_rate cannot be negative, got {staking_rate}")
    terms = VaultTerms(token_symbol, vault_wallet, rate_controller)
    state = VaultState(
        total_shares=0,
        total_value=0,
        last_update_time=start_time,
        staking_rate=staking_rate,
        shares={},
    )
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_STAKING_POOL,
        transfer_rule=state_only_transfer_rule,
        _frozen_state=_freeze_state(to_state_dict(terms, state)),
    )


# ============================================================================
# COMPUTE FUNCTIONS - Return PendingTransaction
# ============================================================================

def _origin(terms: VaultTerms, symbol: str, event_type: str) -> TransactionOrigin:
    return TransactionOrigin(OriginType.CONTRACT, terms.vault_wallet, symbol, event_type)


def _accrued(view: LedgerView, symbol: str):
    """Load the pool and accrue it to view.current_time; shared prologue of every write."""
    raw = view.get_unit_state(symbol)
    terms, state = load_vault(view, symbol)
    state, interest = calculate_accrual(state, view.current_time)
    events = []
    if interest > 0:
        events.append(Event("InterestAccrued", terms.vault_wallet, {'value': state.total_value}))
    return raw, terms, state, events


def compute_accrue_interest(view: LedgerView, symbol: str) -> PendingTransaction:
    """
    Accrue staking interest up to view.current_time.

    Never fails. With nothing elapsed, an empty pool or a zero rate the pool
    value is unchanged and only last_update_time moves.

    Returns:
        PendingTransaction with the pool state change and, when interest was
        added, an InterestAccrued event carrying the new pool value.
    """
    raw, terms, state, events = _accrued(view, symbol)
    new_raw = to_state_dict(terms, state)
    changes = [UnitStateChange(symbol, raw, new_raw)] if new_raw != raw else []
    return build_transaction(view, [], changes, _origin(terms, symbol, "ACCRUE"), events)


def compute_stake(view: LedgerView, symbol: str, caller: str, amount: int) -> PendingTransaction:
    """
    Stake `amount` of the pegged unit for vault shares.

    Accrues first, issues shares at the accrued price and pulls the tokens
    from the caller. The pull spends the caller's allowance to the vault
    wallet, so the caller must approve the vault beforehand.

    Raises:
        InvalidAmount: If amount is zero or negative

    Example:
        ledger.approve("alice", "vndt_staking", "VNDT", 100 * PRECISION)
        ledger.commit(compute_stake(ledger, "sVNDT", "alice", 100 * PRECISION))
    """
    if amount <= 0:
        raise InvalidAmount(f"stake amount must be positive, got {amount}")
    raw, terms, state, events = _accrued(view, symbol)
    new_state, shares = calculate_stake(state, caller, amount)
    moves = [Move(amount, terms.token_symbol, caller, terms.vault_wallet,
                  f"{symbol}_stake", spender=terms.vault_wallet)]
    events.append(Event("Staked", terms.vault_wallet, {'user': caller, 'amount': amount, 'shares': shares}))
    changes = [UnitStateChange(symbol, raw, to_state_dict(terms, new_state))]
    return build_transaction(view, moves, changes, _origin(terms, symbol, "STAKE"), events)


def compute_unstake(view: LedgerView, symbol: str, caller: str, shares: int) -> PendingTransaction:
    """
    Redeem `shares` for the pegged unit.

    Accrues first, values the shares before changing any total, and pays
    the value out of the vault. A redemption worth zero moves no tokens.

    Raises:
        InvalidAmount: If shares is zero or negative
        InsufficientShares: If the caller holds fewer shares
    """
    if shares <= 0:
        raise InvalidAmount(f"unstake shares must be positive, got {shares}")
    raw, terms, state, events = _accrued(view, symbol)
    new_state, value = calculate_unstake(state, caller, shares)
    moves = []
    if value > 0:
        moves.append(Move(value, terms.token_symbol, terms.vault_wallet, caller, f"{symbol}_unstake"))
    events.append(Event("Unstaked", terms.vault_wallet, {'user': caller, 'amount': value, 'shares': shares}))
    changes = [UnitStateChange(symbol, raw, to_state_dict(terms, new_state))]
    return build_transaction(view, moves, changes, _origin(terms, symbol, "UNSTAKE"), events)


def compute_set_staking_rate(view: LedgerView, symbol: str, caller: str, new_rate: int) -> PendingTransaction:
    """
    Replace the staking rate, accruing under the old rate first.

    Raises:
        NotAuthorized: If the caller is not the rate controller
        InvalidAmount: If new_rate is negative
    """
    terms, _ = load_vault(view, symbol)
    if caller != terms.rate_controller:
        raise NotAuthorized(f"only {terms.rate_controller} may set the staking rate, not {caller}")
    if isinstance(new_rate, bool) or not isinstance(new_rate, int) or new_rate < 0:
        raise InvalidAmount(f"staking rate must be a non-negative int, got {new_rate!r}")
    raw, terms, state, events = _accrued(view, symbol)
    new_state = replace(state, staking_rate=new_rate)
    events.append(Event("StakingRateUpdated", terms.vault_wallet, {'rate': new_rate}))
    changes = [UnitStateChange(symbol, raw, to_state_dict(terms, new_state))]
    return build_transaction(view, [], changes, _origin(terms, symbol, "SET_RATE"), events)


# ============================================================================
# FACADE
# ============================================================================

class StakingVault:
    """
    Stateful handle on a staking pool registered with a ledger.

    Every write holds the ledger lock across compute and commit and raises
    the domain error on failure; nothing is applied in that case.

    Example:
        vault = StakingVault(ledger, "sVNDT")
        ledger.approve("alice", vault.wallet, "VNDT", 100 * PRECISION)
        vault.stake("alice", 100 * PRECISION)
        vault.unstake("alice", vault.shares_of("alice"))
    """

    def __init__(self, ledger, symbol: str):
        self.ledger = ledger
        self.symbol = symbol
        self.terms, _ = load_vault(ledger, symbol)

    @property
    def wallet(self) -> str:
        return self.terms.vault_wallet

    @property
    def token_symbol(self) -> str:
        return self.terms.token_symbol

    def _state(self) -> VaultState:
        return load_vault(self.ledger, self.symbol)[1]

    def _commit(self, compute, *args) -> Optional[Transaction]:
        with self.ledger.lock:
            return self.ledger.commit(compute(self.ledger, self.symbol, *args))

    # Writes

    def accrue_interest(self) -> Optional[Transaction]:
        return self._commit(compute_accrue_interest)

    def stake(self, caller: str, amount: int) -> Transaction:
        tx = self._commit(compute_stake, caller, amount)
        logger.info("%s staked %d %s", caller, amount, self.token_symbol)
        return tx

    def unstake(self, caller: str, shares: int) -> Transaction:
        tx = self._commit(compute_unstake, caller, shares)
        logger.info("%s unstaked %d shares of %s", caller, shares, self.symbol)
        return tx

    def set_staking_rate(self, caller: str, new_rate: int) -> Transaction:
        tx = self._commit(compute_set_staking_rate, caller, new_rate)
        logger.info("%s staking rate set to %d bps", self.symbol, new_rate)
        return tx

    # Reads (stored state, no pending accrual)

    def get_shares_value(self, shares: int) -> int:
        return calculate_shares_value(self._state(), shares)

    @property
    def total_shares(self) -> int:
        return self._state().total_shares

    @property
    def total_value(self) -> int:
        return self._state().total_value

    @property
    def staking_rate(self) -> int:
        return self._state().staking_rate

    @property
    def last_update_time(self) -> datetime:
        return self._state().last_update_time

    def shares_of(self, wallet: str) -> int:
        return self._state().shares.get(wallet, 0)

    def balance_of_underlying(self, wallet: str) -> int:
        state = self._state()
        return calculate_shares_value(state, state.shares.get(wallet, 0))

    # Previews (accrued to the ledger's current time)

    def pending_interest(self) -> int:
        """Interest an accrual right now would add."""
        state = self._state()
        elapsed = elapsed_seconds(state.last_update_time, self.ledger.current_time)
        if state.total_shares == 0:
            return 0
        return calculate_interest(state.total_value, state.staking_rate, elapsed)

    def preview_stake(self, amount: int) -> int:
        """Shares a stake of `amount` would receive right now."""
        state, _ = calculate_accrual(self._state(), self.ledger.current_time)
        return calculate_stake(state, "preview", amount)[1]

    def preview_unstake(self, shares: int) -> int:
        """Value a redemption of `shares` would pay right now, ignoring holdings."""
        state, _ = calculate_accrual(self._state(), self.ledger.current_time)
        return calculate_shares_value(state, shares)
