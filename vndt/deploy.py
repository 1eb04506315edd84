"""
deploy.py - Wire up a complete VNDT system on a fresh ledger

Components are created in the order the on-chain deployment uses:
rate controller, pegged unit, swap pool, oracle, staking vault, debt engine.
The pegged unit is created knowing the engine (its minter) and the staking
vault (its virtual-balance wallet) before either exists, and the rate
controller is bound to both once they do.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
import logging

from .config import SystemConfig
from .core import (
    Move, PendingTransaction, TransactionOrigin, OriginType, SYSTEM_WALLET,
    native_asset, stablecoin,
)
from .engine import DebtEngine, create_debt_pool
from .ledger import Ledger
from .oracle import PriceOracle
from .rate_controller import RateController
from .staking import StakingVault, create_staking_pool
from .swap_pool import SwapPool

logger = logging.getLogger(__name__)


@dataclass
class VndtSystem:
    """Handles on every deployed component."""
    config: SystemConfig
    ledger: Ledger
    rate_controller: RateController
    token_symbol: str
    pool: SwapPool
    oracle: PriceOracle
    vault: StakingVault
    engine: DebtEngine

    @property
    def collateral_symbol(self) -> str:
        return self.config.tokens.collateral_symbol

    def fund(self, wallet: str, amount: int):
        """Issue reserve asset to a wallet, registering it first if needed."""
        if not self.ledger.is_registered(wallet):
            self.ledger.register_wallet(wallet)
        return self.ledger.commit(PendingTransaction(
            moves=(Move(amount, self.collateral_symbol, SYSTEM_WALLET, wallet, "genesis"),),
            state_changes=(),
            origin=TransactionOrigin(OriginType.SYSTEM, SYSTEM_WALLET, event_type="FUND"),
            timestamp=self.ledger.current_time,
        ))

    def summary(self) -> Dict[str, Any]:
        """Addresses and headline figures of the deployment."""
        wallets = self.config.wallets
        return {
            'ledger': self.ledger.name,
            'time': self.ledger.current_time.isoformat(),
            'contracts': {
                'token': self.token_symbol,
                'engine': wallets.engine,
                'oracle': wallets.oracle,
                'staking': wallets.staking,
                'dex': wallets.dex,
                'rate_controller': wallets.rate_controller,
            },
            'stats': self.engine.get_system_stats(),
        }


def deploy_system(config: Optional[SystemConfig] = None) -> VndtSystem:
    """
    Deploy every component on a new ledger.

    Args:
        config: Deployment settings (defaults: ETH at 2500 VNDT, zero rates)

    Returns:
        VndtSystem bundling the ledger and the component facades

    Example:
        system = deploy_system()
        system.fund("alice", 10 * PRECISION)
        system.engine.add_collateral("alice", PRECISION)
    """
    config = config or SystemConfig()
    wallets = config.wallets
    tokens = config.tokens
    start = config.start_time or datetime.now().replace(microsecond=0)

    ledger = Ledger(config.ledger_name, start, verbose=config.verbose)
    ledger.register_unit(native_asset(tokens.collateral_symbol, tokens.collateral_name))
    for wallet in wallets.all():
        ledger.register_wallet(wallet)

    logger.info("Deploying VNDT system on ledger %s (deployer %s)", ledger.name, wallets.deployer)

    # 1. Rate controller
    controller = RateController(wallets.rate_controller, owner=wallets.deployer)

    # 2. Pegged unit, minted by the engine, overlaid by the staking vault
    ledger.register_unit(stablecoin(
        tokens.token_symbol, tokens.token_name,
        minter=wallets.engine,
        vault_wallet=wallets.staking,
        vault_pool=tokens.staking_pool_symbol,
    ))

    # 3. Swap pool
    pool = SwapPool(ledger, wallets.dex, tokens.collateral_symbol, tokens.token_symbol)

    # 4. Oracle
    oracle = PriceOracle(wallets.deployer, config.initial_eth_price, ledger=ledger, wallet=wallets.oracle)

    # 5. Staking vault
    ledger.register_unit(create_staking_pool(
        tokens.staking_pool_symbol, f"Staked {tokens.token_symbol}",
        token_symbol=tokens.token_symbol,
        vault_wallet=wallets.staking,
        rate_controller=wallets.rate_controller,
        start_time=ledger.current_time,
    ))
    vault = StakingVault(ledger, tokens.staking_pool_symbol)

    # 6. Debt engine
    ledger.register_unit(create_debt_pool(
        tokens.debt_pool_symbol, f"{tokens.token_symbol} Debt",
        token_symbol=tokens.token_symbol,
        collateral_symbol=tokens.collateral_symbol,
        engine_wallet=wallets.engine,
        rate_controller=wallets.rate_controller,
        protocol_wallet=wallets.treasury,
        start_time=ledger.current_time,
    ))
    engine = DebtEngine(ledger, tokens.debt_pool_symbol, oracle, vault)

    controller.bind(engine, vault)
    if config.rates.borrow_rate:
        controller.update_borrow_rate(wallets.deployer, config.rates.borrow_rate)
    if config.rates.staking_rate:
        controller.update_staking_rate(wallets.deployer, config.rates.staking_rate)

    system = VndtSystem(
        config=config,
        ledger=ledger,
        rate_controller=controller,
        token_symbol=tokens.token_symbol,
        pool=pool,
        oracle=oracle,
        vault=vault,
        engine=engine,
    )
    for wallet, amount in sorted(config.accounts.items()):
        if amount:
            system.fund(wallet, amount)

    logger.info(
        "Deployed %s: engine=%s oracle=%s staking=%s dex=%s rate_controller=%s",
        tokens.token_symbol, wallets.engine, wallets.oracle, wallets.staking,
        wallets.dex, wallets.rate_controller,
    )
    return system
