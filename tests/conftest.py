"""
conftest.py - Shared pytest fixtures for VNDT tests

Provides common fixtures used across unit, functional and conformance tests:
- Bare ledgers (reserve asset only, pegged unit with a vault overlay)
- Fully deployed systems (default rates, 5% rates)
- A borrowing position and a FakeView over an empty vault
"""

import pytest

from vndt import (
    Ledger, PRECISION,
    native_asset, stablecoin, create_staking_pool,
)

from tests.fake_view import FakeView
from tests.helpers import T0, make_system, open_position


# =============================================================================
# LEDGER FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Fresh ledger with no registrations."""
    return Ledger("test", T0, verbose=False, test_mode=True)


@pytest.fixture
def eth_ledger():
    """Ledger with the reserve asset and two funded wallets."""
    ledger = Ledger("test", T0, verbose=False, test_mode=True)
    ledger.register_unit(native_asset())
    ledger.register_wallet("alice")
    ledger.register_wallet("bob")
    ledger.set_balance("alice", "ETH", 10 * PRECISION)
    ledger.set_balance("system", "ETH", -10 * PRECISION)
    return ledger


@pytest.fixture
def token_ledger():
    """
    Ledger with the pegged unit, its minter and a staking vault overlay.

    Wallets: alice, bob, engine (minter), vault (virtual balance), controller.
    Alice starts with 1000 VNDT issued by the engine.
    """
    ledger = Ledger("tokens", T0, verbose=False, test_mode=True)
    ledger.register_unit(native_asset())
    ledger.register_unit(stablecoin("VNDT", "VNDT Stablecoin", minter="engine",
                                    vault_wallet="vault", vault_pool="sVNDT"))
    ledger.register_unit(create_staking_pool("sVNDT", "Staked VNDT", "VNDT", "vault", "controller", T0))
    for wallet in ("alice", "bob", "engine", "vault", "controller"):
        ledger.register_wallet(wallet)
    ledger.mint_to("engine", "alice", "VNDT", 1000 * PRECISION)
    return ledger


# =============================================================================
# SYSTEM FIXTURES
# =============================================================================

@pytest.fixture
def system():
    """Deployed system at T0 with zero rates and ETH at 2500 VNDT."""
    return make_system()


@pytest.fixture
def rated_system():
    """Deployed system with 5% borrow and staking rates."""
    return make_system(borrow_rate=500, staking_rate=500)


@pytest.fixture
def borrower(system):
    """System where alice locked 1 ETH and borrowed 1000 VNDT."""
    open_position(system, "alice", PRECISION, 1000 * PRECISION)
    return system


# =============================================================================
# FAKE VIEW FIXTURES
# =============================================================================

@pytest.fixture
def vault_view():
    """FakeView over an empty staking pool."""
    pool = create_staking_pool("sVNDT", "Staked VNDT", "VNDT", "vault", "controller", T0, staking_rate=500)
    return FakeView(
        balances={"alice": {"VNDT": 1000 * PRECISION}},
        states={"sVNDT": pool.state},
        time=T0,
    )
