"""
helpers.py - Builders shared by fixtures and property tests

Hypothesis tests cannot take function-scoped fixtures, so they build their
systems through these functions directly.
"""

from datetime import datetime

from vndt import (
    PRECISION, UNLIMITED_ALLOWANCE, SystemConfig, RatesConfig, deploy_system,
)


T0 = datetime(2025, 1, 1)


def make_system(borrow_rate: int = 0, staking_rate: int = 0, eth_price: int = 2500 * PRECISION, **accounts):
    """Deploy a system at T0 with the given rates, price and funded accounts."""
    config = SystemConfig(
        start_time=T0,
        initial_eth_price=eth_price,
        rates=RatesConfig(borrow_rate=borrow_rate, staking_rate=staking_rate),
        accounts=accounts,
    )
    return deploy_system(config)


def open_position(system, user: str, collateral: int, debt: int) -> None:
    """
    Fund `user`, lock `collateral` and borrow `debt`.

    Also approves the engine (repayments, liquidations) and the vault
    (stakes) for unlimited amounts of the pegged unit.
    """
    system.fund(user, collateral)
    system.engine.add_collateral(user, collateral)
    if debt:
        system.engine.mint_vndt(user, debt)
    system.ledger.approve(user, system.engine.wallet, system.token_symbol, UNLIMITED_ALLOWANCE)
    system.ledger.approve(user, system.vault.wallet, system.token_symbol, UNLIMITED_ALLOWANCE)


def circulating(system) -> int:
    """Pegged units held by every wallet except the vault, plus the vault's value."""
    ledger = system.ledger
    token = system.token_symbol
    return sum(
        ledger.get_balance(w, token) for w in ledger.list_wallets() if w != "system"
    )
