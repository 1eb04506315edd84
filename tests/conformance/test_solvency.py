"""
Solvency Conformance Tests

INVARIANT: Borrowers can only act while their position stays safe.

    mint(user, x) succeeds  ⟺  ratio(user) after the mint ≥ 150%
    withdraw(user, x) succeeds ⟹ ratio(user) after the withdrawal ≥ 150%
    liquidate(user) succeeds ⟺  ratio(user) < 150%

A refused operation changes nothing.
"""

import pytest
from hypothesis import given, settings, assume
from hypothesis import strategies as st

from vndt import (
    PRECISION, MIN_COLLATERAL_RATIO, UNLIMITED_ALLOWANCE,
    UnsafePositionRatio, NotLiquidatable, InsufficientAllowance,
)
from tests.helpers import make_system, open_position


prices = st.integers(min_value=100 * PRECISION, max_value=5_000 * PRECISION)
collaterals = st.integers(min_value=PRECISION // 1000, max_value=10 * PRECISION)


class TestMintSolvency:

    @given(price=prices, collateral=collaterals, mint=st.integers(min_value=1, max_value=40_000 * PRECISION))
    @settings(max_examples=50, deadline=None)
    def test_mint_succeeds_exactly_up_to_max_mintable(self, price, collateral, mint):
        """
        PROPERTY: A mint succeeds iff it is within get_max_mintable.
        """
        system = make_system(eth_price=price)
        open_position(system, "alice", collateral, 0)
        max_mintable = system.engine.get_max_mintable("alice")

        if mint <= max_mintable:
            system.engine.mint_vndt("alice", mint)
            assert system.engine.calculate_position_ratio("alice") >= MIN_COLLATERAL_RATIO
            assert system.ledger.get_balance("alice", "VNDT") == mint
        else:
            with pytest.raises(UnsafePositionRatio):
                system.engine.mint_vndt("alice", mint)
            assert system.engine.current_debt_value("alice") == 0
            assert system.ledger.total_supply("VNDT") == 0


class TestWithdrawSolvency:

    @given(
        price=prices,
        collateral=collaterals,
        borrow_percent=st.integers(min_value=0, max_value=100),
        withdraw_percent=st.integers(min_value=1, max_value=100),
    )
    @settings(max_examples=50, deadline=None)
    def test_withdraw_never_leaves_position_unsafe(self, price, collateral, borrow_percent, withdraw_percent):
        """
        PROPERTY: A withdrawal either keeps the ratio at or above the minimum or is refused.
        """
        system = make_system(eth_price=price)
        open_position(system, "alice", collateral, 0)
        debt = system.engine.get_max_mintable("alice") * borrow_percent // 100
        if debt:
            system.engine.mint_vndt("alice", debt)
        amount = collateral * withdraw_percent // 100
        assume(amount > 0)

        try:
            system.engine.withdraw_collateral("alice", amount)
        except UnsafePositionRatio:
            assert system.engine.get_position("alice").collateral == collateral
            assert system.ledger.get_balance("alice", "ETH") == 0
        else:
            assert system.engine.calculate_position_ratio("alice") >= MIN_COLLATERAL_RATIO
            assert system.ledger.get_balance("alice", "ETH") == amount

    @given(price=prices, collateral=collaterals)
    @settings(max_examples=30, deadline=None)
    def test_debt_free_collateral_is_always_withdrawable(self, price, collateral):
        system = make_system(eth_price=price)
        open_position(system, "alice", collateral, 0)
        system.engine.withdraw_collateral("alice", collateral)
        assert system.ledger.get_balance("alice", "ETH") == collateral


class TestLiquidationGating:

    @given(
        borrow_percent=st.integers(min_value=1, max_value=100),
        new_price=st.integers(min_value=PRECISION, max_value=3_000 * PRECISION),
    )
    @settings(max_examples=50, deadline=None)
    def test_liquidation_iff_below_minimum(self, borrow_percent, new_price):
        """
        PROPERTY: liquidate succeeds exactly when the position is below 150%.
        """
        system = make_system()
        open_position(system, "alice", PRECISION, 0)
        debt = system.engine.get_max_mintable("alice") * borrow_percent // 100
        assume(debt > 0)
        system.engine.mint_vndt("alice", debt)
        open_position(system, "keeper", 100 * PRECISION, debt)
        system.oracle.set_eth_price("deployer", new_price)

        position = system.engine.get_position("alice")
        assert position.is_liquidatable == (position.ratio < MIN_COLLATERAL_RATIO)

        if position.is_liquidatable:
            system.engine.liquidate("keeper", "alice")
            assert system.engine.get_position("alice").collateral == 0
            assert system.engine.current_debt_value("alice") == 0
            assert system.ledger.get_balance("keeper", "VNDT") == 0
            assert system.ledger.get_balance("keeper", "ETH") == PRECISION // 10
        else:
            with pytest.raises(NotLiquidatable):
                system.engine.liquidate("keeper", "alice")
            assert system.engine.get_position("alice") == position

    def test_liquidator_needs_engine_allowance(self):
        system = make_system(eth_price=2 * PRECISION)
        open_position(system, "alice", 120 * PRECISION, 100 * PRECISION)
        system.fund("keeper", 200 * PRECISION)
        system.engine.add_collateral("keeper", 200 * PRECISION)
        system.engine.mint_vndt("keeper", 100 * PRECISION)
        system.oracle.set_eth_price("deployer", PRECISION)

        assert system.ledger.allowance("keeper", system.engine.wallet, "VNDT") == 0
        with pytest.raises(InsufficientAllowance):
            system.engine.liquidate("keeper", "alice")
        system.ledger.approve("keeper", system.engine.wallet, "VNDT", UNLIMITED_ALLOWANCE)
        system.engine.liquidate("keeper", "alice")
        assert system.engine.get_position("alice").collateral == 0
