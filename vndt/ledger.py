"""
ledger.py - Balances, allowances and pool state for ETH, VNDT and the pools

Ledger owns every piece of mutable state in a deployment. The engine, the
vault and the swap pool hand it PendingTransactions; it checks each one
(registration, issuance by the minter only, vault custody, allowances,
balance floors, stale pool state) and applies it whole or not at all.

The staking vault's VNDT balance is never read from storage. A
BalanceResolver derives it from the sVNDT share books, and postings
to that wallet go to the system wallet instead.

Receive hooks run once a transaction has landed; a hook that raises
rewinds the ledger to where it was before the transaction.
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Dict, List, Set, Optional, Tuple, Any, Protocol
import copy
import logging
import threading

from .accrual import shares_to_value
from .core import (
    # Types
    Move, Event, Transaction, Unit,
    PendingTransaction, TransactionOrigin, OriginType,
    ExecuteResult,
    Positions, UnitState, BalanceMap,
    # Constants
    SYSTEM_WALLET,
    # Exceptions
    LedgerError, InvalidAmount, InsufficientBalance, InsufficientAllowance,
    NotAuthorized, TransferFailed, BalanceConstraintViolation,
    TransferRuleViolation, StaleState, UnitNotRegistered, WalletNotRegistered,
    # Helper functions
    _freeze_state,
)

logger = logging.getLogger(__name__)

# Approving this amount grants a spender that never decreases.
UNLIMITED_ALLOWANCE = 2 ** 256 - 1

ReceiveHook = Callable[['Ledger', Move], None]


# ============================================================================
# BALANCE RESOLUTION
# ============================================================================

class BalanceResolver(Protocol):
    """
    How one wallet's balance of one unit is read and where its postings land.

    Ordinary wallets read and post to their stored balance. A virtual
    balance is computed on read and posts to the system wallet, so a move
    out of it is a mint and a move into it is a burn.
    """

    def read(self, ledger: Ledger, unit_symbol: str) -> int:
        ...

    @property
    def posting_wallet(self) -> str:
        ...


@dataclass(frozen=True, slots=True)
class StoredBalance:
    """Balance held in ledger storage."""
    wallet: str

    def read(self, ledger: Ledger, unit_symbol: str) -> int:
        return ledger.get_stored_balance(self.wallet, unit_symbol)

    @property
    def posting_wallet(self) -> str:
        return self.wallet


@dataclass(frozen=True, slots=True)
class VaultBalance:
    """Balance equal to the value of all shares of a staking pool."""
    wallet: str
    pool_symbol: str

    def read(self, ledger: Ledger, unit_symbol: str) -> int:
        if self.pool_symbol not in ledger.units:
            return 0
        pool = ledger.units[self.pool_symbol].state
        total_shares = pool.get('total_shares', 0)
        return shares_to_value(total_shares, total_shares, pool.get('total_value', 0))

    @property
    def posting_wallet(self) -> str:
        return SYSTEM_WALLET


def vault_overlay(state: UnitState) -> Optional[Tuple[str, str]]:
    """
    (vault_wallet, vault_pool) when a unit's vault balance is virtual, else None.

    Only units built by stablecoin() carry both keys. Pool units record
    their custody wallet as vault_wallet too, and that alone is no overlay.
    """
    vault, pool = state.get('vault_wallet'), state.get('vault_pool')
    if vault is None or pool is None:
        return None
    return vault, pool


class Ledger:
    """
    The write side of a VNDT deployment, and a LedgerView for compute functions.

    Applied transactions go to transaction_log and their events to
    event_log. Rejected ones leave neither. Facades hold `lock` across
    compute and commit so two pool updates never interleave.

    Example:
        ledger = Ledger("main")
        ledger.register_unit(native_asset("ETH"))
        ledger.register_wallet("alice")
        ledger.register_wallet("bob")
        ledger.mint_to(SYSTEM_WALLET, "alice", "ETH", 2 * PRECISION)
        ledger.transfer("alice", "bob", "ETH", PRECISION)
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        test_mode: bool = False
    ):
        """
        `verbose` logs applied transactions at INFO rather than DEBUG.
        `test_mode` unlocks set_balance(). The clock starts at initial_time,
        or the Unix epoch.
        """
        self.name = name
        self.balances: Dict[str, Dict[str, int]] = {}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self.event_log: List[Event] = []
        self.allowances: Dict[Tuple[str, str, str], int] = {}
        self._receive_hooks: Dict[str, ReceiveHook] = {}
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._test_mode = test_mode
        self._lock = threading.RLock()
        self._next_sequence: int = 0
        # unit -> {wallet -> stored quantity}, zero entries dropped
        self._positions_by_unit: Dict[str, Dict[str, int]] = defaultdict(dict)

        # counterparty of every mint and burn
        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(int)

    @property
    def lock(self) -> threading.RLock:
        """Re-entrant lock guarding compute-and-commit sequences."""
        return self._lock

    @property
    def _log_level(self) -> int:
        return logging.INFO if self.verbose else logging.DEBUG

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        return self._current_time

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Balance as a holder or another contract would see it.

        For the vault wallet of VNDT this is the value of every sVNDT share,
        computed from the pool books with no pending interest added.
        """
        self._require_registered(wallet_id, unit_symbol)
        return self._resolver(wallet_id, unit_symbol).read(self, unit_symbol)

    def get_stored_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """What storage holds for the wallet, ignoring the vault overlay."""
        self._require_registered(wallet_id, unit_symbol)
        return self.balances[wallet_id].get(unit_symbol, 0)

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """Deep copy of the unit's state; safe to edit and hand back in a UnitStateChange."""
        state = self.get_unit(unit_symbol).state
        return copy.deepcopy(state) if state else {}

    def get_positions(self, unit_symbol: str) -> Positions:
        return dict(self._positions_by_unit.get(unit_symbol, {}))

    def list_wallets(self) -> Set[str]:
        return self.registered_wallets.copy()

    def list_units(self) -> List[str]:
        return sorted(self.units.keys())

    def get_unit(self, symbol: str) -> Unit:
        try:
            return self.units[symbol]
        except KeyError:
            raise UnitNotRegistered(f"Unit {symbol} not registered") from None

    def get_wallet_balances(self, wallet_id: str) -> BalanceMap:
        """Stored balances of every unit the wallet has touched."""
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        return dict(self.balances[wallet_id])

    def allowance(self, owner: str, spender: str, unit_symbol: str) -> int:
        return self.allowances.get((owner, spender, unit_symbol), 0)

    def is_registered(self, wallet_id: str) -> bool:
        return wallet_id in self.registered_wallets

    # ========================================================================
    # SUPPLY AND CONSERVATION
    # ========================================================================

    def stored_supply(self, unit_symbol: str) -> int:
        """Stored holdings of every wallet but the system wallet, summed in wallet order."""
        self.get_unit(unit_symbol)
        return sum(
            self.balances[w].get(unit_symbol, 0)
            for w in sorted(self.registered_wallets)
            if w != SYSTEM_WALLET
        )

    def total_supply(self, unit_symbol: str) -> int:
        """
        Circulating supply as holders see it.

        With the vault overlay the vault contributes its share value rather
        than its stored amount:

            stored_supply - stored_balance(vault) + balance(vault)
        """
        stored = self.stored_supply(unit_symbol)
        overlay = vault_overlay(self.units[unit_symbol].state)
        if overlay is None or overlay[0] not in self.registered_wallets:
            return stored
        vault = overlay[0]
        return (
            stored
            - self.balances[vault].get(unit_symbol, 0)
            + self.get_balance(vault, unit_symbol)
        )

    def verify_double_entry(
        self,
        expected_supplies: Optional[Dict[str, int]] = None,
    ) -> Dict[str, Any]:
        """
        Check that no unit was created or destroyed outside the system wallet.

        Stored balances of a unit, the system wallet's included, always sum
        to zero. When expected_supplies is given, each listed unit's
        total_supply must equal its entry as well.

        Returns {'valid', 'supplies', 'discrepancies'}, where each
        discrepancy names the unit with its expected and actual figures.
        """
        supplies = {symbol: self.total_supply(symbol) for symbol in sorted(self.units)}
        discrepancies = []

        for symbol in supplies:
            net = sum(self.balances[w].get(symbol, 0) for w in sorted(self.registered_wallets))
            if net:
                discrepancies.append({
                    'unit': symbol, 'expected': 0, 'actual': net, 'difference': net,
                    'error': 'stored balances do not net to zero',
                })

        for symbol, expected in (expected_supplies or {}).items():
            actual = supplies.get(symbol)
            if actual is None:
                discrepancies.append({
                    'unit': symbol, 'expected': expected, 'actual': 0,
                    'difference': abs(expected), 'error': 'unit not registered',
                })
            elif actual != expected:
                discrepancies.append({
                    'unit': symbol, 'expected': expected, 'actual': actual,
                    'difference': abs(actual - expected),
                })

        return {'valid': not discrepancies, 'supplies': supplies, 'discrepancies': discrepancies}

    # ========================================================================
    # EVENTS
    # ========================================================================

    def get_events(self, name: Optional[str] = None, emitter: Optional[str] = None) -> List[Event]:
        """Events recorded so far, optionally filtered by name and emitter."""
        return [
            e for e in self.event_log
            if (name is None or e.name == name) and (emitter is None or e.emitter == emitter)
        ]

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """Move the clock to new_time. Interest accrues against this clock."""
        if new_time < self._current_time:
            raise ValueError(
                f"clock cannot run backwards from {self._current_time} to {new_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # SETUP
    # ========================================================================

    def register_wallet(self, wallet_id: str, on_receive: Optional[ReceiveHook] = None) -> str:
        """
        Add a wallet and return its id.

        on_receive(ledger, move) fires after each applied move into the
        wallet. It may call back into the ledger; if it raises, the
        transaction that paid it is undone and TransferFailed propagates.
        """
        if not wallet_id or not wallet_id.strip():
            raise ValueError("wallet_id cannot be empty")
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(int)
        if on_receive is not None:
            self._receive_hooks[wallet_id] = on_receive
        return wallet_id

    def register_unit(self, unit: Unit) -> None:
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        logger.log(self._log_level, "Registered unit %s (%s, %s)",
                   unit.symbol, unit.name, unit.unit_type)

    def set_balance(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        """
        Overwrite a stored balance without a counter-entry.

        Breaks conservation on purpose, so it only works on a ledger built
        with test_mode=True.
        """
        if not self._test_mode:
            raise LedgerError(
                f"set_balance() needs a ledger created with test_mode=True; "
                f"move {unit_symbol} with mint_to() or transfer() instead"
            )
        self._require_registered(wallet_id, unit_symbol)
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidAmount(f"balance must be int, got {type(quantity)}")
        self.balances[wallet_id][unit_symbol] = quantity
        self._update_position_index(wallet_id, unit_symbol, quantity)

    # ========================================================================
    # ALLOWANCES AND TOKEN OPERATIONS
    # ========================================================================

    def approve(self, owner: str, spender: str, unit_symbol: str, amount: int) -> None:
        """
        Let `spender` move up to `amount` of `unit_symbol` out of `owner`.

        Replaces any previous allowance. UNLIMITED_ALLOWANCE never decreases.

        Raises:
            InvalidAmount: If amount is negative or not an int
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise InvalidAmount(f"allowance must be a non-negative int, got {amount!r}")
        with self._lock:
            self._require_registered(owner, unit_symbol)
            if spender not in self.registered_wallets:
                raise WalletNotRegistered(f"Wallet {spender} not registered")
            self.allowances[(owner, spender, unit_symbol)] = amount
            logger.debug("%s approved %s for %d %s", owner, spender, amount, unit_symbol)

    def transfer(self, caller: str, to: str, unit_symbol: str, amount: int) -> Transaction:
        """Move `amount` from the caller's own balance to `to`."""
        move = Move(amount, unit_symbol, caller, to, "transfer")
        return self._commit_moves([move], caller, OriginType.USER_ACTION, "TRANSFER")

    def transfer_from(self, caller: str, owner: str, to: str, unit_symbol: str, amount: int) -> Transaction:
        """Move `amount` from `owner` to `to`, spending the caller's allowance."""
        move = Move(amount, unit_symbol, owner, to, "transfer_from", spender=caller)
        return self._commit_moves([move], caller, OriginType.USER_ACTION, "TRANSFER_FROM")

    def mint_to(self, caller: str, to: str, unit_symbol: str, amount: int) -> Transaction:
        """
        Issue `amount` new units to `to`.

        Raises:
            NotAuthorized: If the unit has a minter and the caller is not it
            InvalidAmount: If amount is not positive
        """
        move = Move(amount, unit_symbol, SYSTEM_WALLET, to, "mint")
        return self._commit_moves([move], caller, OriginType.CONTRACT, "MINT")

    def burn_from(self, caller: str, account: str, unit_symbol: str, amount: int) -> Transaction:
        """
        Redeem `amount` units held by `account`, spending its allowance to the caller.

        Raises:
            NotAuthorized: If the unit has a minter and the caller is not it
            InsufficientAllowance: If `account` has not approved the caller for amount
            InsufficientBalance: If `account` holds less than amount
        """
        move = Move(amount, unit_symbol, account, SYSTEM_WALLET, "burn", spender=caller)
        return self._commit_moves([move], caller, OriginType.CONTRACT, "BURN")

    def _commit_moves(self, moves: List[Move], caller: str, origin_type: OriginType, event_type: str) -> Transaction:
        pending = PendingTransaction(
            moves=tuple(moves),
            state_changes=(),
            origin=TransactionOrigin(origin_type, caller, event_type=event_type),
            timestamp=self._current_time,
        )
        return self.commit(pending)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        # exec:<ledger>:<zero-padded sequence>:<clock in microseconds>
        micros = int(self._current_time.timestamp() * 1_000_000)
        return f"exec:{self.name}:{sequence:012d}:{micros}"

    def commit(self, pending: PendingTransaction) -> Optional[Transaction]:
        """
        Apply `pending` or raise the LedgerError explaining why not.

        An empty pending transaction is a no-op and returns None. On any
        error, including TransferFailed from a receive hook, the ledger is
        left exactly as it was.
        """
        with self._lock:
            if pending.is_empty():
                return None
            error = self._check_pending(pending)
            if error is not None:
                logger.log(self._log_level, "REJECTED %s: %s", pending.origin, error)
                raise error
            return self._apply(pending)

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """commit() for callers that want an ExecuteResult instead of an exception."""
        try:
            self.commit(pending)
        except LedgerError:
            return ExecuteResult.REJECTED
        return ExecuteResult.APPLIED

    def _check_pending(self, pending: PendingTransaction) -> Optional[LedgerError]:
        """
        Return the first reason `pending` cannot be applied, or None.

        Order: clock, stale pool state, registration and transfer rules,
        minter and vault custody, allowances, then balance floors and caps
        on the net effect per posting wallet.
        """
        if pending.timestamp > self._current_time:
            return LedgerError(f"future timestamp: {pending.timestamp} > {self._current_time}")

        projected: Dict[str, UnitState] = {}
        for sc in pending.state_changes:
            if sc.unit not in self.units:
                return UnitNotRegistered(f"Unit {sc.unit} not registered")
            current = projected.get(sc.unit, self.units[sc.unit].state)
            if sc.old_state != current:
                changed = sorted(k for k in set(current) | set(sc.old_state or {})
                                 if current.get(k) != (sc.old_state or {}).get(k))
                return StaleState(f"{sc.unit} changed since the transaction was built: {changed}")
            projected[sc.unit] = sc.new_state

        actor = pending.origin.source_id
        spent: Dict[Tuple[str, str, str], int] = {}
        for move in pending.moves:
            if move.unit_symbol not in self.units:
                return UnitNotRegistered(f"Unit {move.unit_symbol} not registered")
            if not self.is_registered(move.source):
                return WalletNotRegistered(f"Wallet {move.source} not registered")
            if not self.is_registered(move.dest):
                return WalletNotRegistered(f"Wallet {move.dest} not registered")

            unit = self.units[move.unit_symbol]
            if unit.transfer_rule:
                try:
                    unit.transfer_rule(self, move)
                except TransferRuleViolation as e:
                    return e

            state = unit.state
            minter = state.get('minter')
            if minter and SYSTEM_WALLET in (move.source, move.dest) and actor != minter:
                return NotAuthorized(f"only {minter} may mint or burn {move.unit_symbol}, not {actor}")
            overlay = vault_overlay(state)
            if overlay and move.source == overlay[0] and actor != overlay[0]:
                return NotAuthorized(f"only {overlay[0]} may move {move.unit_symbol} out of the vault")

            if move.spender is not None and move.spender != move.source:
                if move.spender != actor:
                    return NotAuthorized(f"{actor} cannot spend as {move.spender}")
                key = (move.source, move.spender, move.unit_symbol)
                spent[key] = spent.get(key, 0) + move.quantity

        for (owner, spender, unit_sym), amount in spent.items():
            approved = self.allowance(owner, spender, unit_sym)
            if approved != UNLIMITED_ALLOWANCE and amount > approved:
                return InsufficientAllowance(
                    f"{spender} may spend {approved} {unit_sym} of {owner}, needs {amount}"
                )

        net: Dict[Tuple[str, str], int] = {}
        for move in pending.moves:
            src = self._resolver(move.source, move.unit_symbol).posting_wallet
            dst = self._resolver(move.dest, move.unit_symbol).posting_wallet
            if src == dst:
                continue
            net[(src, move.unit_symbol)] = net.get((src, move.unit_symbol), 0) - move.quantity
            net[(dst, move.unit_symbol)] = net.get((dst, move.unit_symbol), 0) + move.quantity

        # the system wallet goes negative as supply grows
        for (wallet, unit_sym), delta in sorted(net.items()):
            if wallet == SYSTEM_WALLET:
                continue
            unit = self.units[unit_sym]
            current = self.balances[wallet].get(unit_sym, 0)
            proposed = current + delta
            if proposed < unit.min_balance:
                return InsufficientBalance(
                    f"{wallet} holds {current} {unit_sym}, needs {current - proposed + unit.min_balance}"
                )
            if unit.max_balance is not None and proposed > unit.max_balance:
                return BalanceConstraintViolation(
                    f"{wallet} {unit_sym}: {proposed} > max {unit.max_balance}"
                )

        return None

    def _apply(self, pending: PendingTransaction) -> Transaction:
        """
        Write a checked transaction, then call the receive hooks it triggers.

        A snapshot is taken first when any hook will run. Restoring it
        also drops whatever the hooks themselves committed.
        """
        hooked = [m for m in pending.moves if m.dest in self._receive_hooks]
        snapshot = self._snapshot() if hooked else None

        sequence = self._next_sequence
        self._next_sequence += 1
        exec_id = self._generate_exec_id(sequence)

        tx = Transaction(
            moves=pending.moves,
            state_changes=pending.state_changes,
            events=tuple(replace(e, exec_id=exec_id) for e in pending.events),
            origin=pending.origin,
            timestamp=pending.timestamp,
            exec_id=exec_id,
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
        )

        for sc in tx.state_changes:
            new_state = copy.deepcopy(sc.new_state if isinstance(sc.new_state, dict) else {})
            self.units[sc.unit] = replace(self.units[sc.unit], _frozen_state=_freeze_state(new_state))
        self._execute_moves(tx.moves)
        self._spend_allowances(tx.moves)

        self.transaction_log.append(tx)
        self.event_log.extend(tx.events)
        if logger.isEnabledFor(self._log_level):
            logger.log(self._log_level, "APPLIED%s", tx)

        for move in hooked:
            hook = self._receive_hooks[move.dest]
            try:
                hook(self, move)
            except Exception as exc:
                self._restore(snapshot)
                logger.warning("Rolled back %s: %s refused %r (%s)", exec_id, move.dest, move, exc)
                raise TransferFailed(f"{move.dest} refused {move!r}") from exc

        return tx

    def _post(self, wallet: str, unit_symbol: str, delta: int) -> None:
        balance = self.balances[wallet][unit_symbol] + delta
        self.balances[wallet][unit_symbol] = balance
        self._update_position_index(wallet, unit_symbol, balance)

    def _update_position_index(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        if quantity:
            self._positions_by_unit[unit_symbol][wallet_id] = quantity
        else:
            self._positions_by_unit[unit_symbol].pop(wallet_id, None)

    def _execute_moves(self, moves) -> None:
        # Interest minted straight into the vault posts system -> system: no-op.
        for move in moves:
            src = self._resolver(move.source, move.unit_symbol).posting_wallet
            dst = self._resolver(move.dest, move.unit_symbol).posting_wallet
            if src != dst:
                self._post(src, move.unit_symbol, -move.quantity)
                self._post(dst, move.unit_symbol, move.quantity)

    def _spend_allowances(self, moves) -> None:
        for move in moves:
            if move.spender is None or move.spender == move.source:
                continue
            key = (move.source, move.spender, move.unit_symbol)
            approved = self.allowances.get(key, 0)
            if approved != UNLIMITED_ALLOWANCE:
                self.allowances[key] = approved - move.quantity

    # ========================================================================
    # INTERNAL HELPERS
    # ========================================================================

    def _resolver(self, wallet_id: str, unit_symbol: str) -> BalanceResolver:
        """Pick how a wallet's balance of a unit is resolved."""
        overlay = vault_overlay(self.units[unit_symbol].state)
        if overlay is not None and wallet_id == overlay[0]:
            return VaultBalance(*overlay)
        return StoredBalance(wallet_id)

    def _require_registered(self, wallet_id: str, unit_symbol: str) -> None:
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")

    def _snapshot(self) -> Dict[str, Any]:
        return {
            'balances': {w: dict(b) for w, b in self.balances.items()},
            'units': dict(self.units),
            'allowances': dict(self.allowances),
            'positions': {u: dict(p) for u, p in self._positions_by_unit.items()},
            'tx_count': len(self.transaction_log),
            'event_count': len(self.event_log),
            'sequence': self._next_sequence,
        }

    def _restore(self, snapshot: Dict[str, Any]) -> None:
        self.balances = {w: defaultdict(int, b) for w, b in snapshot['balances'].items()}
        self.units = snapshot['units']
        self.allowances = snapshot['allowances']
        self._positions_by_unit = defaultdict(dict, snapshot['positions'])
        del self.transaction_log[snapshot['tx_count']:]
        del self.event_log[snapshot['event_count']:]
        self._next_sequence = snapshot['sequence']

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> Ledger:
        """
        Independent copy for what-if runs, e.g. pricing a liquidation.

        Nothing done to the copy reaches this ledger or the reverse.
        Receive hooks are shared between the two.
        """
        twin = Ledger(self.name, self._current_time, self.verbose, self._test_mode)
        twin.registered_wallets = self.registered_wallets.copy()
        twin._receive_hooks = dict(self._receive_hooks)
        twin._restore(self._snapshot())
        twin.units = {
            symbol: replace(unit, _frozen_state=_freeze_state(copy.deepcopy(unit.state)))
            for symbol, unit in self.units.items()
        }
        twin.transaction_log = list(self.transaction_log)
        twin.event_log = list(self.event_log)
        return twin
