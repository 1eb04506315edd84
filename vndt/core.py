"""
Shared vocabulary of the VNDT ledger.

Everything the engine, the vault and the pools exchange with the ledger is
defined here:

- LedgerView, the read side every compute function receives
- Move, Event, UnitStateChange and the pending/executed transaction records
- Unit and the two factories for ETH-like reserve assets and pegged units
- the error hierarchy (LedgerError and its subclasses)
- fixed-point constants and the transfer rule for pool units

Quantities are plain ints scaled by 10**18. Division floors, and the share
accounting in accrual.py depends on that.

Nothing here writes to a ledger. Compute functions return a
PendingTransaction and the Ledger decides whether it lands.
"""

from __future__ import annotations
import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import (
    Dict, List, Set, Optional, Callable, Any, Protocol,
    Tuple, FrozenSet, runtime_checkable, Mapping
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Issuance counterparty. Minting debits it and burning credits it, so it is
# never balance-checked and always sits at minus the circulating supply.
SYSTEM_WALLET = "system"

# 18-decimal scale shared by amounts, prices and exchange rates.
PRECISION = 10 ** 18

# Annual rates are in basis points; a year is 365 days of seconds.
BPS_DENOMINATOR = 10_000
SECONDS_PER_YEAR = 365 * 24 * 60 * 60

# Positions must stay at or above 150% collateral value to debt.
MIN_COLLATERAL_RATIO = 150

# Liquidators keep this percentage of the collateral they seize.
LIQUIDATOR_REWARD_PERCENT = 10

# Reported as the ratio of a debt-free position.
MAX_RATIO = 2 ** 256 - 1

UNIT_TYPE_NATIVE = "NATIVE"
UNIT_TYPE_STABLECOIN = "STABLECOIN"
UNIT_TYPE_STAKING_POOL = "STAKING_POOL"
UNIT_TYPE_DEBT_POOL = "DEBT_POOL"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# wallet -> stored quantity, for one unit
Positions = Dict[str, int]

# unit symbol -> quantity, for one wallet
BalanceMap = Dict[str, int]

# pool totals, privileged identities and per-wallet books of a unit
UnitState = Dict[str, Any]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    What a compute function is allowed to see.

    Ledger satisfies this and adds the write path on top. Tests pass a
    FakeView built from plain dicts instead.
    """

    @property
    def current_time(self) -> datetime:
        """Logical clock used for accrual and event timestamps."""
        ...

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Balance as holders see it.

        The staking vault's VNDT balance is derived from its share pool, not
        from the stored position, once the overlay is configured.
        """
        ...

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """Detached copy of a unit's state dict."""
        ...

    def get_positions(self, unit_symbol: str) -> Positions:
        """Stored non-zero holdings of one unit, keyed by wallet."""
        ...

    def list_wallets(self) -> Set[str]:
        ...

    def get_unit(self, symbol: str) -> 'Unit':
        ...

    def allowance(self, owner: str, spender: str, unit_symbol: str) -> int:
        """Remaining amount `spender` may pull from `owner`."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """Whether Ledger.execute landed a transaction (APPLIED) or refused it (REJECTED)."""
    APPLIED = "applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """
    Kind of actor behind a transaction.

    Authorization looks at the origin's source_id, not at this kind: issuing
    VNDT needs the engine's identity and debiting the vault needs the vault's.
    """
    USER_ACTION = "user_action"           # transfers and approvals by a holder
    CONTRACT = "contract"                 # engine, vault and pool operations
    SYSTEM = "system"                     # funding and deployment
    EXTERNAL = "external"                 # oracle prices, rate pushes


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Root of every error the VNDT ledger raises on purpose."""
    pass


class InvalidAmount(LedgerError, ValueError):
    """Zero, negative or non-integer quantity."""
    pass


class InsufficientBalance(LedgerError):
    """A debit would leave the wallet under the unit's floor."""
    pass


class InsufficientAllowance(InsufficientBalance):
    """A spender pulled more than the owner approved."""
    pass


class InsufficientShares(LedgerError):
    """Redeeming vault shares the wallet does not own."""
    pass


class InsufficientCollateral(LedgerError):
    """Withdrawing collateral the wallet never deposited."""
    pass


class NotAuthorized(LedgerError):
    """Caller is not the minter, owner or controller the action needs."""
    pass


class UnsafePositionRatio(LedgerError):
    """The action would drop a position under MIN_COLLATERAL_RATIO."""
    pass


class NotLiquidatable(LedgerError):
    """The position is still at or above MIN_COLLATERAL_RATIO."""
    pass


class TransferFailed(LedgerError):
    """A receive hook refused incoming value."""
    pass


class BalanceConstraintViolation(LedgerError):
    """A credit would lift a wallet over the unit's cap."""
    pass


class TransferRuleViolation(LedgerError):
    """The unit's transfer rule refused a move."""
    pass


class StaleState(LedgerError):
    """A state change was computed against a unit state that has moved on."""
    pass


class UnitNotRegistered(LedgerError):
    """Unknown unit symbol."""
    pass


class WalletNotRegistered(LedgerError):
    """Unknown wallet id."""
    pass


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Who asked for a transaction, kept on the record for auditing.

    source_id is the acting wallet and doubles as the identity checked for
    minting and vault withdrawals. unit_symbol names the pool involved and
    event_type the operation ("MINT", "STAKE", "LIQUIDATE", ...).
    """
    origin_type: OriginType
    source_id: str
    unit_symbol: Optional[str] = None
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        text = f"Origin({self.origin_type.value}:{self.source_id}"
        if self.unit_symbol:
            text += f" on {self.unit_symbol}"
        if self.event_type:
            text += f" [{self.event_type}]"
        return text + ")"


# ============================================================================
# UNIT STATE CHANGE
# ============================================================================

@dataclass(frozen=True, slots=True)
class UnitStateChange:
    """
    Replacement of one unit's state.

    old_state is what the compute function read. If the unit no longer
    holds exactly that when the change is applied, the ledger raises
    StaleState instead of overwriting a concurrent update.
    """
    unit: str
    old_state: Any
    new_state: Any

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """Keys whose value differs, mapped to (before, after)."""
        before = self.old_state if isinstance(self.old_state, dict) else {}
        after = self.new_state if isinstance(self.new_state, dict) else {}
        return {
            key: (before.get(key), after.get(key))
            for key in before.keys() | after.keys()
            if before.get(key) != after.get(key)
        }


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Event:
    """
    Something a component announces, e.g. Staked or Liquidation.

    Events ride along in a PendingTransaction and reach the ledger's log
    only when it is applied; exec_id is stamped at that point.
    """
    name: str
    emitter: str
    data: Mapping[str, Any] = field(default_factory=dict)
    exec_id: str = ""

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v}" for k, v in self.data.items())
        return f"{self.name}({args})"


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    One debit/credit pair of a single unit.

    A move out of SYSTEM_WALLET issues new units and a move into it
    destroys them. When spender is set the debit consumes the owner's
    allowance for that spender.
    """
    quantity: int
    unit_symbol: str
    source: str
    dest: str
    contract_id: str
    spender: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        for label in ("source", "dest", "unit_symbol", "contract_id"):
            value = getattr(self, label)
            if not value or not value.strip():
                raise ValueError(f"Move needs a non-blank {label}")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise InvalidAmount(f"quantity must be int, got {type(self.quantity).__name__}")
        if self.quantity <= 0:
            raise InvalidAmount(f"quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError(f"{self.source} cannot move {self.unit_symbol} to itself")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A transaction before execution - represents INTENT.

    Bundles the moves, pool state replacements and events of one operation.
    Ledger.commit applies the whole bundle or leaves state untouched.
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: datetime
    events: Tuple[Event, ...] = ()

    def is_empty(self) -> bool:
        return not (self.moves or self.state_changes or self.events)

    def __repr__(self) -> str:
        return (
            f"PendingTransaction({self.origin}: moves={len(self.moves)}, "
            f"states={len(self.state_changes)}, events={len(self.events)})"
        )


def build_transaction(
    view: LedgerView,
    moves: List[Move],
    state_changes: Optional[List[UnitStateChange]] = None,
    origin: Optional[TransactionOrigin] = None,
    events: Optional[List[Event]] = None,
) -> PendingTransaction:
    """
    Package the output of a compute function.

    State snapshots are deep-copied so later edits to the caller's dicts
    cannot leak into the pending record. The timestamp comes from the view
    and the origin defaults to an anonymous CONTRACT caller.
    """
    if origin is None:
        origin = TransactionOrigin(OriginType.CONTRACT, "contract")

    frozen_changes = tuple(
        UnitStateChange(sc.unit, copy.deepcopy(sc.old_state), copy.deepcopy(sc.new_state))
        for sc in state_changes or ()
    )
    return PendingTransaction(
        moves=tuple(moves),
        state_changes=frozen_changes,
        origin=origin,
        timestamp=view.current_time,
        events=tuple(events or ()),
    )


def empty_pending_transaction(view: LedgerView) -> PendingTransaction:
    """Nothing-to-do result for compute functions with no effect."""
    return PendingTransaction(
        moves=(),
        state_changes=(),
        origin=TransactionOrigin(OriginType.CONTRACT, "noop"),
        timestamp=view.current_time,
    )


_BOX_WIDTH = 100


def _box_row(text: str) -> str:
    if len(text) > _BOX_WIDTH:
        text = text[:_BOX_WIDTH - 3] + "..."
    return f"│{text.ljust(_BOX_WIDTH)}│"


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Carries everything from the PendingTransaction plus the execution
    stamp: exec_id, the ledger's name, wall-clock execution_time and the
    ledger's sequence_number. contract_ids is derived from the moves.
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    events: Tuple[Event, ...]
    origin: TransactionOrigin
    timestamp: datetime
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int
    contract_ids: FrozenSet[str] = None

    def __post_init__(self):
        if not (self.moves or self.state_changes or self.events):
            raise ValueError("Transaction records nothing: no moves, state changes or events")
        if self.contract_ids is None:
            ids = frozenset(m.contract_id for m in self.moves)
            object.__setattr__(self, 'contract_ids', ids)

    def __repr__(self) -> str:
        rule = "─" * _BOX_WIDTH
        rows = [
            _box_row(f" {self.ledger_name} #{self.sequence_number}  {self.exec_id}"),
            _box_row(f"   at {self.timestamp}  by {self.origin}"),
            f"├{rule}┤",
            _box_row(f" moves: {len(self.moves)}"),
        ]
        rows += [
            _box_row(f"   {m.quantity} {m.unit_symbol}  {m.source} → {m.dest}")
            for m in self.moves
        ]
        if self.state_changes:
            rows.append(f"├{rule}┤")
            for sc in self.state_changes:
                rows.append(_box_row(f" state of {sc.unit}:"))
                rows += [
                    _box_row(f"   {key}: {old!r} → {new!r}")
                    for key, (old, new) in sc.changed_fields().items()
                ]
        if self.events:
            rows.append(f"├{rule}┤")
            rows += [_box_row(f" {event!r}") for event in self.events]
        return "\n".join(["", f"┌{rule}┐", *rows, f"└{rule}┘"])


# Checks a move against a unit's rules; raises TransferRuleViolation to refuse it.
TransferRule = Callable[[LedgerView, Move], None]


def _freeze_state(state: Optional[UnitState]) -> Tuple[Tuple[str, Any], ...]:
    """Key-sorted item tuple, so equal states compare and hash equal."""
    return tuple(sorted(state.items())) if state else ()


def _thaw_state(frozen_state: Tuple[Tuple[str, Any], ...]) -> UnitState:
    return dict(frozen_state)


@dataclass(frozen=True, slots=True)
class Unit:
    """
    A registered asset or pool.

    ETH and VNDT hold transferable balances. The sVNDT and dVNDT pool units
    keep their books in state and refuse moves via their transfer_rule.
    max_balance of None means uncapped. State lives in _frozen_state and
    is replaced wholesale, never edited in place.
    """
    symbol: str
    name: str
    unit_type: str
    decimals: int = 18
    min_balance: int = 0
    max_balance: Optional[int] = None
    transfer_rule: Optional[TransferRule] = None
    _frozen_state: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    @property
    def state(self) -> UnitState:
        """Fresh dict on every access."""
        return _thaw_state(self._frozen_state)


# ============================================================================
# TRANSFER RULES
# ============================================================================

def state_only_transfer_rule(view: LedgerView, move: Move) -> None:
    """Pool units have no transferable balances; every move is refused."""
    raise TransferRuleViolation(
        f"{move.unit_symbol} is a pool unit and cannot be transferred"
    )


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def native_asset(symbol: str = "ETH", name: str = "Ether", decimals: int = 18) -> Unit:
    """
    Reserve asset. Its minter is SYSTEM_WALLET, so only a SYSTEM origin
    acting as the system wallet (genesis funding) can issue or destroy it.
    """
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_NATIVE,
        decimals=decimals,
        _frozen_state=_freeze_state({'minter': SYSTEM_WALLET}),
    )


def stablecoin(
    symbol: str,
    name: str,
    minter: str,
    vault_wallet: Optional[str] = None,
    vault_pool: Optional[str] = None,
    decimals: int = 18,
) -> Unit:
    """
    Pegged unit whose issuance is reserved to `minter`.

    When vault_wallet and vault_pool are both given, the ledger reports
    vault_wallet's balance from the vault_pool share books instead of its
    stored position. Giving only one of them is an error.
    """
    if not minter or not minter.strip():
        raise ValueError("minter cannot be empty")
    if (vault_wallet is None) != (vault_pool is None):
        raise ValueError("vault_wallet and vault_pool must be given together")
    state = {'minter': minter, 'vault_wallet': vault_wallet, 'vault_pool': vault_pool}
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_STABLECOIN,
        decimals=decimals,
        _frozen_state=_freeze_state(state),
    )
