"""
test_protocol_scenarios.py - End-to-end scenarios across every component

Covers:
- Minting right up to the minimum collateral ratio
- A year of staking interest with a single accrual
- Liquidation of an underwater position after a price drop
- A full borrow, stake, accrue, repay, withdraw lifecycle
- Trading the pegged unit against the reserve asset
"""

import pytest
from datetime import timedelta

from vndt import (
    PRECISION, SECONDS_PER_YEAR, MAX_RATIO, UNLIMITED_ALLOWANCE,
    UnsafePositionRatio, NotLiquidatable, InsufficientBalance,
)
from tests.helpers import T0, make_system, open_position


ONE_YEAR = T0 + timedelta(seconds=SECONDS_PER_YEAR)


class TestMintAtMinimumRatio:
    """One unit of collateral at 2500 supports exactly 1666.666... VNDT."""

    MAX_MINT = 1666666666666666666666

    def test_max_mint_lands_on_150(self):
        system = make_system()
        open_position(system, "alice", PRECISION, 0)

        assert system.engine.get_max_mintable("alice") == self.MAX_MINT
        system.engine.mint_vndt("alice", self.MAX_MINT)
        assert system.engine.calculate_position_ratio("alice") == 150
        assert not system.engine.is_liquidatable("alice")

    def test_one_more_unit_fails(self):
        system = make_system()
        open_position(system, "alice", PRECISION, 0)

        with pytest.raises(UnsafePositionRatio):
            system.engine.mint_vndt("alice", self.MAX_MINT + 1)
        assert system.engine.current_debt_value("alice") == 0
        assert system.ledger.total_supply("VNDT") == 0

    def test_minting_in_two_steps_hits_the_same_wall(self):
        system = make_system()
        open_position(system, "alice", PRECISION, 1000 * PRECISION)

        system.engine.mint_vndt("alice", self.MAX_MINT - 1000 * PRECISION)
        with pytest.raises(UnsafePositionRatio):
            system.engine.mint_vndt("alice", 1)
        assert system.engine.get_max_mintable("alice") == 0


class TestSingleWindowStakingInterest:

    def test_one_accrual_after_a_year(self):
        system = make_system(staking_rate=500)
        open_position(system, "alice", PRECISION, 100 * PRECISION)
        system.vault.stake("alice", 100 * PRECISION)

        system.ledger.advance_time(ONE_YEAR)
        system.vault.accrue_interest()

        assert system.vault.total_value == 105 * PRECISION
        assert system.ledger.get_balance(system.vault.wallet, "VNDT") == 105 * PRECISION
        assert len(system.ledger.get_events("InterestAccrued")) == 1

    def test_vault_balance_tracks_accrual_before_any_touch(self):
        """The vault's stored total only moves on a write; previews include pending interest."""
        system = make_system(staking_rate=500)
        open_position(system, "alice", PRECISION, 100 * PRECISION)
        system.vault.stake("alice", 100 * PRECISION)
        system.ledger.advance_time(ONE_YEAR)

        assert system.vault.total_value == 100 * PRECISION
        assert system.vault.preview_unstake(100 * PRECISION) == 105 * PRECISION


class TestLiquidationAfterPriceDrop:
    """Debt 100 against collateral worth 120 pays 12 to the liquidator and 108 to the treasury."""

    @pytest.fixture
    def underwater(self):
        system = make_system(eth_price=2 * PRECISION)
        open_position(system, "alice", 120 * PRECISION, 100 * PRECISION)
        open_position(system, "keeper", 100 * PRECISION, 100 * PRECISION)
        system.oracle.set_eth_price("deployer", PRECISION)
        return system

    def test_position_is_underwater(self, underwater):
        position = underwater.engine.get_position("alice")
        assert position.collateral_value == 120 * PRECISION
        assert position.debt_value == 100 * PRECISION
        assert position.ratio == 120
        assert position.is_liquidatable

    def test_liquidation_payouts(self, underwater):
        treasury = underwater.config.wallets.treasury
        ledger = underwater.ledger

        underwater.engine.liquidate("keeper", "alice")

        assert ledger.get_balance("keeper", "ETH") == 12 * PRECISION
        assert ledger.get_balance(treasury, "ETH") == 108 * PRECISION
        assert ledger.get_balance("keeper", "VNDT") == 0
        assert ledger.get_balance("alice", "VNDT") == 100 * PRECISION

        position = underwater.engine.get_position("alice")
        assert position.collateral == 0
        assert position.debt_value == 0
        assert position.ratio == MAX_RATIO
        assert "alice" not in underwater.engine.positions()

    def test_liquidation_burns_the_debt(self, underwater):
        underwater.engine.liquidate("keeper", "alice")
        assert underwater.ledger.total_supply("VNDT") == 100 * PRECISION
        assert underwater.engine.total_debt_value() == 100 * PRECISION
        assert underwater.ledger.get_balance(underwater.engine.wallet, "ETH") == 100 * PRECISION
        assert underwater.ledger.verify_double_entry()['valid']

    def test_liquidation_event(self, underwater):
        underwater.engine.liquidate("keeper", "alice")
        event = underwater.ledger.get_events("Liquidation")[-1]
        assert event['user'] == "alice"
        assert event['liquidator'] == "keeper"
        assert event['liquidator_reward'] == 12 * PRECISION
        assert event['debt'] == 100 * PRECISION
        assert event['price'] == PRECISION

    def test_liquidator_without_funds_is_rejected(self, underwater):
        underwater.fund("pauper", PRECISION)
        underwater.ledger.approve("pauper", underwater.engine.wallet, "VNDT", UNLIMITED_ALLOWANCE)
        with pytest.raises(InsufficientBalance):
            underwater.engine.liquidate("pauper", "alice")
        assert underwater.engine.get_position("alice").collateral == 120 * PRECISION

    def test_healthy_position_cannot_be_liquidated(self):
        system = make_system(eth_price=2 * PRECISION)
        open_position(system, "alice", 120 * PRECISION, 100 * PRECISION)
        open_position(system, "keeper", 100 * PRECISION, 100 * PRECISION)
        with pytest.raises(NotLiquidatable):
            system.engine.liquidate("keeper", "alice")


class TestFullLifecycle:
    """Two borrowers, one staker, a year of interest at 5% on both sides."""

    def test_borrow_stake_accrue_repay_withdraw(self):
        system = make_system(borrow_rate=500, staking_rate=500)
        ledger, engine, vault = system.ledger, system.engine, system.vault
        open_position(system, "alice", PRECISION, 1000 * PRECISION)
        open_position(system, "bob", PRECISION, 1000 * PRECISION)
        vault.stake("alice", 500 * PRECISION)

        ledger.advance_time(ONE_YEAR)
        assert engine.current_debt_value("alice") == 1050 * PRECISION
        assert vault.preview_unstake(vault.shares_of("alice")) == 525 * PRECISION

        vault.unstake("alice", vault.shares_of("alice"))
        assert ledger.get_balance("alice", "VNDT") == 1025 * PRECISION

        ledger.transfer("bob", "alice", "VNDT", 25 * PRECISION)
        engine.repay_up_to("alice", 2000 * PRECISION)
        assert ledger.get_balance("alice", "VNDT") == 0
        assert engine.current_debt_value("alice") == 0
        assert engine.calculate_position_ratio("alice") == MAX_RATIO

        engine.withdraw_collateral("alice", PRECISION)
        assert ledger.get_balance("alice", "ETH") == PRECISION

        assert engine.total_debt_value() == 1050 * PRECISION
        assert ledger.total_supply("VNDT") == 975 * PRECISION
        assert vault.total_shares == 0
        assert ledger.verify_double_entry({"VNDT": 975 * PRECISION, "ETH": 2 * PRECISION})['valid']

    def test_rate_change_mid_year(self):
        """The old rate applies up to the change, the new one after it."""
        system = make_system(borrow_rate=1000)
        open_position(system, "alice", PRECISION, 1000 * PRECISION)
        half = T0 + timedelta(seconds=SECONDS_PER_YEAR // 2)

        system.ledger.advance_time(half)
        system.rate_controller.update_borrow_rate("deployer", 0)
        assert system.engine.current_debt_value("alice") == 1050 * PRECISION

        system.ledger.advance_time(ONE_YEAR)
        assert system.engine.current_debt_value("alice") == 1050 * PRECISION


class TestPegTrading:

    def test_arbitrage_round_trip(self):
        system = make_system()
        open_position(system, "lp", 100 * PRECISION, 50_000 * PRECISION)
        system.fund("lp", 10 * PRECISION)
        system.ledger.approve("lp", system.pool.wallet, "VNDT", UNLIMITED_ALLOWANCE)
        system.pool.add_liquidity("lp", 10 * PRECISION, 25_000 * PRECISION)
        assert system.pool.get_price() == 2500 * PRECISION

        system.fund("trader", PRECISION)
        system.ledger.approve("trader", system.pool.wallet, "VNDT", UNLIMITED_ALLOWANCE)
        bought = system.pool.swap_eth_for_vndt("trader", PRECISION)
        assert system.pool.get_price() < 2500 * PRECISION

        sold_back = system.pool.swap_vndt_for_eth("trader", bought)
        assert sold_back < PRECISION
        assert system.ledger.get_balance("trader", "VNDT") == 0
        asset_reserve, token_reserve = system.pool.get_reserves()
        assert asset_reserve == 11 * PRECISION - sold_back
        assert token_reserve == 25_000 * PRECISION
        assert system.ledger.verify_double_entry()['valid']
