"""
test_deploy.py - Unit tests for wiring a complete system

Tests:
- units and wallets registered in deployment order
- pegged unit knows its minter and its vault
- rates applied through the rate controller
- genesis funding and the deployment summary
"""

from vndt import PRECISION, SystemConfig, RatesConfig, WalletsConfig, deploy_system
from tests.helpers import T0, make_system


class TestDeploySystem:

    def test_units_registered(self, system):
        assert system.ledger.list_units() == ["ETH", "VNDT", "dVNDT", "sVNDT"]

    def test_component_wallets_registered(self, system):
        for wallet in system.config.wallets.all():
            assert system.ledger.is_registered(wallet)

    def test_pegged_unit_identities(self, system):
        state = system.ledger.get_unit_state("VNDT")
        assert state['minter'] == system.engine.wallet == "vndt_engine"
        assert state['vault_wallet'] == system.vault.wallet == "vndt_staking"
        assert state['vault_pool'] == "sVNDT"

    def test_oracle_owned_by_deployer(self, system):
        assert system.oracle.owner == "deployer"
        assert system.oracle.get_eth_price() == 2500 * PRECISION

    def test_controller_bound_to_components(self, system):
        assert system.rate_controller.owner == "deployer"
        system.rate_controller.update_borrow_rate("deployer", 42)
        system.rate_controller.update_staking_rate("deployer", 24)
        assert system.engine.borrow_rate == 42
        assert system.vault.staking_rate == 24

    def test_starts_empty(self, system):
        assert system.ledger.total_supply("VNDT") == 0
        assert system.vault.total_shares == 0
        assert system.engine.total_debt_value() == 0
        assert system.ledger.current_time == T0

    def test_every_unit_reports_supply(self, system):
        for symbol in system.ledger.list_units():
            assert system.ledger.total_supply(symbol) == 0
        assert system.ledger.verify_double_entry()['valid']

    def test_pool_units_have_no_virtual_balance(self, borrower):
        """The vault wallet is virtual for VNDT only, never for the sVNDT pool unit."""
        borrower.vault.stake("alice", 300 * PRECISION)
        ledger, vault_wallet = borrower.ledger, borrower.vault.wallet
        assert ledger.get_balance(vault_wallet, "VNDT") == 300 * PRECISION
        assert ledger.get_balance(vault_wallet, "sVNDT") == 0
        assert ledger.total_supply("sVNDT") == 0
        assert ledger.verify_double_entry({"VNDT": 1000 * PRECISION})['valid']

    def test_initial_rates_applied(self, rated_system):
        assert rated_system.engine.borrow_rate == 500
        assert rated_system.vault.staking_rate == 500
        rate_events = rated_system.ledger.get_events("StakingRateUpdated")
        assert [e['rate'] for e in rate_events] == [500]

    def test_zero_rates_emit_nothing(self, system):
        assert system.ledger.get_events("StakingRateUpdated") == []

    def test_accounts_funded_at_genesis(self):
        system = make_system(alice=5 * PRECISION, bob=PRECISION)
        assert system.ledger.get_balance("alice", "ETH") == 5 * PRECISION
        assert system.ledger.get_balance("bob", "ETH") == PRECISION
        assert system.ledger.verify_double_entry()['valid']

    def test_custom_wallet_names(self):
        config = SystemConfig(
            start_time=T0,
            wallets=WalletsConfig(engine="cdp", staking="savings"),
            rates=RatesConfig(borrow_rate=100),
        )
        system = deploy_system(config)
        assert system.engine.wallet == "cdp"
        assert system.vault.wallet == "savings"
        assert system.engine.borrow_rate == 100

    def test_default_start_time_is_now(self):
        system = deploy_system()
        assert system.ledger.current_time.microsecond == 0
        assert system.ledger.current_time.year >= 2025


class TestFund:

    def test_fund_registers_new_wallet(self, system):
        system.fund("carol", 3 * PRECISION)
        assert system.ledger.is_registered("carol")
        assert system.ledger.get_balance("carol", "ETH") == 3 * PRECISION

    def test_fund_existing_wallet_accumulates(self, system):
        system.fund("carol", PRECISION)
        system.fund("carol", PRECISION)
        assert system.ledger.get_balance("carol", "ETH") == 2 * PRECISION

    def test_fund_is_recorded(self, system):
        tx = system.fund("carol", PRECISION)
        assert tx.origin.event_type == "FUND"
        assert tx in system.ledger.transaction_log


class TestSummary:

    def test_summary_shape(self, borrower):
        summary = borrower.summary()
        assert summary['ledger'] == "vndt"
        assert summary['time'] == T0.isoformat()
        assert summary['contracts']['token'] == "VNDT"
        assert summary['contracts']['rate_controller'] == "vndt_rate_controller"
        stats = summary['stats']
        assert stats['total_collateral'] == PRECISION
        assert stats['total_debt_value'] == 1000 * PRECISION
        assert stats['token_supply'] == 1000 * PRECISION
        assert stats['total_staked_value'] == 0
