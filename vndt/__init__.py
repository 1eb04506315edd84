"""
vndt - Collateral-backed stable-value ledger

Users lock ETH, borrow the pegged VNDT against it as debt shares, and may
stake VNDT into a yield vault whose holdings the ledger reports as a
virtual balance.

Usage:
    from vndt import deploy_system, PRECISION, UNLIMITED_ALLOWANCE

    system = deploy_system()
    system.fund("alice", 10 * PRECISION)

    # Borrow against collateral
    system.engine.add_collateral("alice", PRECISION)
    system.engine.mint_vndt("alice", 1000 * PRECISION)

    # Stake into the vault (the vault pulls with an allowance)
    system.ledger.approve("alice", system.vault.wallet, "VNDT", UNLIMITED_ALLOWANCE)
    system.vault.stake("alice", 500 * PRECISION)

    system.ledger.get_balance(system.vault.wallet, "VNDT")   # == vault.total_value
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Event,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    empty_pending_transaction,
    Unit,
    UnitStateChange,
    ExecuteResult,
    LedgerError,
    InvalidAmount,
    InsufficientBalance,
    InsufficientAllowance,
    InsufficientShares,
    InsufficientCollateral,
    NotAuthorized,
    UnsafePositionRatio,
    NotLiquidatable,
    TransferFailed,
    BalanceConstraintViolation,
    TransferRuleViolation,
    StaleState,
    UnitNotRegistered,
    WalletNotRegistered,
    state_only_transfer_rule,
    native_asset,
    stablecoin,
    SYSTEM_WALLET,
    PRECISION,
    BPS_DENOMINATOR,
    SECONDS_PER_YEAR,
    MIN_COLLATERAL_RATIO,
    LIQUIDATOR_REWARD_PERCENT,
    MAX_RATIO,
    UNIT_TYPE_NATIVE,
    UNIT_TYPE_STABLECOIN,
    UNIT_TYPE_STAKING_POOL,
    UNIT_TYPE_DEBT_POOL,
)

# Ledger
from .ledger import (
    Ledger,
    BalanceResolver,
    StoredBalance,
    VaultBalance,
    UNLIMITED_ALLOWANCE,
)

# Interest accrual
from .accrual import (
    mul_div,
    elapsed_seconds,
    calculate_interest,
    shares_to_value,
    value_to_shares,
    accrue_pool_value,
    accrue_exchange_rate,
)

# Staking vault
from .staking import (
    StakingVault,
    VaultTerms,
    VaultState,
    load_vault,
    create_staking_pool,
    calculate_shares_value,
    calculate_stake,
    calculate_unstake,
    compute_stake,
    compute_unstake,
    compute_set_staking_rate,
)

# Debt engine
from .engine import (
    DebtEngine,
    DebtTerms,
    DebtState,
    PositionSnapshot,
    load_debt_pool,
    create_debt_pool,
    calculate_debt_value,
    calculate_collateral_value,
    calculate_position_ratio,
    calculate_max_mintable,
    calculate_position,
    compute_add_collateral,
    compute_mint,
    compute_repay,
    compute_withdraw_collateral,
    compute_liquidation,
    compute_set_borrow_rate,
)

# External collaborators
from .oracle import PriceSource, PriceOracle
from .rate_controller import RateController
from .swap_pool import SwapPool, PoolTerms, get_amount_out

# Deployment and configuration
from .config import (
    SystemConfig,
    WalletsConfig,
    TokensConfig,
    RatesConfig,
    ConfigError,
    load_config,
    parse_amount,
)
from .deploy import VndtSystem, deploy_system
from .logging_setup import configure_logging

__all__ = [
    # Core
    'LedgerView', 'Move', 'Event', 'Transaction', 'PendingTransaction',
    'TransactionOrigin', 'OriginType', 'build_transaction', 'empty_pending_transaction',
    'Unit', 'UnitStateChange', 'ExecuteResult',
    'state_only_transfer_rule', 'native_asset', 'stablecoin',
    # Errors
    'LedgerError', 'InvalidAmount', 'InsufficientBalance', 'InsufficientAllowance',
    'InsufficientShares', 'InsufficientCollateral', 'NotAuthorized',
    'UnsafePositionRatio', 'NotLiquidatable', 'TransferFailed',
    'BalanceConstraintViolation', 'TransferRuleViolation', 'StaleState',
    'UnitNotRegistered', 'WalletNotRegistered',
    # Constants
    'SYSTEM_WALLET', 'PRECISION', 'BPS_DENOMINATOR', 'SECONDS_PER_YEAR',
    'MIN_COLLATERAL_RATIO', 'LIQUIDATOR_REWARD_PERCENT', 'MAX_RATIO',
    'UNIT_TYPE_NATIVE', 'UNIT_TYPE_STABLECOIN', 'UNIT_TYPE_STAKING_POOL', 'UNIT_TYPE_DEBT_POOL',
    # Ledger
    'Ledger', 'BalanceResolver', 'StoredBalance', 'VaultBalance', 'UNLIMITED_ALLOWANCE',
    # Accrual
    'mul_div', 'elapsed_seconds', 'calculate_interest', 'shares_to_value',
    'value_to_shares', 'accrue_pool_value', 'accrue_exchange_rate',
    # Staking
    'StakingVault', 'VaultTerms', 'VaultState', 'load_vault', 'create_staking_pool',
    'calculate_shares_value', 'calculate_stake', 'calculate_unstake',
    'compute_stake', 'compute_unstake', 'compute_set_staking_rate',
    # Engine
    'DebtEngine', 'DebtTerms', 'DebtState', 'PositionSnapshot', 'load_debt_pool',
    'create_debt_pool', 'calculate_debt_value', 'calculate_collateral_value',
    'calculate_position_ratio', 'calculate_max_mintable', 'calculate_position',
    'compute_add_collateral', 'compute_mint', 'compute_repay',
    'compute_withdraw_collateral', 'compute_liquidation', 'compute_set_borrow_rate',
    # Collaborators
    'PriceSource', 'PriceOracle', 'RateController', 'SwapPool', 'PoolTerms', 'get_amount_out',
    # Deployment
    'SystemConfig', 'WalletsConfig', 'TokensConfig', 'RatesConfig', 'ConfigError',
    'load_config', 'parse_amount', 'VndtSystem', 'deploy_system', 'configure_logging',
]

__version__ = '1.0.0'
