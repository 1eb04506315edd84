"""
Accrual Conformance Tests

INVARIANT: Interest is a function of elapsed time and is applied at most once.

    accrue(t); accrue(t)  ≡  accrue(t)
    reads never accrue
    accrue(t₁); accrue(t₂)  ≥  accrue(t₂) - 1 wei      (touching compounds)
    zero elapsed, zero rate or an empty pool earn nothing
"""

from datetime import timedelta

from hypothesis import given, settings
from hypothesis import strategies as st

from vndt import PRECISION, SECONDS_PER_YEAR
from tests.helpers import T0, make_system, open_position


rates = st.integers(min_value=0, max_value=5_000)
waits = st.integers(min_value=0, max_value=2 * SECONDS_PER_YEAR)


def staked_system(borrow_rate, staking_rate, stake=500 * PRECISION):
    system = make_system(borrow_rate=borrow_rate, staking_rate=staking_rate)
    open_position(system, "alice", 10 * PRECISION, 1000 * PRECISION)
    system.vault.stake("alice", stake)
    return system


class TestAccrualProperties:

    @given(rates, rates, waits)
    @settings(max_examples=40, deadline=None)
    def test_second_accrual_at_same_time_is_a_noop(self, borrow_rate, staking_rate, wait):
        """
        PROPERTY: Accruing twice at one instant changes nothing the second time.
        """
        system = staked_system(borrow_rate, staking_rate)
        system.ledger.advance_time(T0 + timedelta(seconds=wait))

        system.vault.accrue_interest()
        system.engine.accrue_interest()
        vault_state = system.ledger.get_unit_state("sVNDT")
        debt_state = system.ledger.get_unit_state("dVNDT")
        log_size = len(system.ledger.transaction_log)

        assert system.vault.accrue_interest() is None
        assert system.engine.accrue_interest() is None
        assert system.ledger.get_unit_state("sVNDT") == vault_state
        assert system.ledger.get_unit_state("dVNDT") == debt_state
        assert len(system.ledger.transaction_log) == log_size

    @given(rates, rates, waits)
    @settings(max_examples=40, deadline=None)
    def test_reads_do_not_accrue(self, borrow_rate, staking_rate, wait):
        """
        PROPERTY: Previews and position reads leave stored state alone.
        """
        system = staked_system(borrow_rate, staking_rate)
        system.ledger.advance_time(T0 + timedelta(seconds=wait))
        vault_state = system.ledger.get_unit_state("sVNDT")
        debt_state = system.ledger.get_unit_state("dVNDT")

        system.engine.get_position("alice")
        system.engine.get_system_stats()
        system.vault.pending_interest()
        system.vault.preview_unstake(PRECISION)
        system.ledger.get_balance(system.vault.wallet, "VNDT")

        assert system.ledger.get_unit_state("sVNDT") == vault_state
        assert system.ledger.get_unit_state("dVNDT") == debt_state

    @given(rates, waits)
    @settings(max_examples=40, deadline=None)
    def test_preview_matches_accrual(self, staking_rate, wait):
        """
        PROPERTY: What a preview promises is what the accrual delivers.
        """
        system = staked_system(0, staking_rate)
        system.ledger.advance_time(T0 + timedelta(seconds=wait))

        pending = system.vault.pending_interest()
        preview = system.vault.preview_unstake(system.vault.total_shares)
        debt_preview = system.engine.current_debt_value("alice")

        system.vault.accrue_interest()
        system.engine.accrue_interest()
        assert system.vault.total_value == 500 * PRECISION + pending
        assert system.vault.get_shares_value(system.vault.total_shares) == preview
        assert system.engine.current_debt_value("alice") == debt_preview

    @given(rates, waits, waits)
    @settings(max_examples=40, deadline=None)
    def test_touching_compounds(self, staking_rate, first, second):
        """
        PROPERTY: Splitting a window into two accruals never earns less,
        up to the one wei each window can lose to truncation.
        """
        stepped = staked_system(0, staking_rate)
        single = staked_system(0, staking_rate)

        stepped.ledger.advance_time(T0 + timedelta(seconds=first))
        stepped.vault.accrue_interest()
        end = T0 + timedelta(seconds=first + second)
        stepped.ledger.advance_time(end)
        stepped.vault.accrue_interest()

        single.ledger.advance_time(end)
        single.vault.accrue_interest()

        assert stepped.vault.total_value + 1 >= single.vault.total_value


class TestAccrualNoops:

    def test_zero_rate_earns_nothing(self):
        system = staked_system(0, 0)
        system.ledger.advance_time(T0 + timedelta(days=365))
        assert system.vault.pending_interest() == 0
        assert system.engine.current_debt_value("alice") == 1000 * PRECISION

    def test_empty_pool_only_moves_the_clock(self):
        system = make_system(borrow_rate=500, staking_rate=500)
        later = T0 + timedelta(days=30)
        system.ledger.advance_time(later)

        tx = system.vault.accrue_interest()
        assert tx is not None
        assert system.vault.total_value == 0
        assert system.vault.last_update_time == later
        assert system.ledger.get_events("InterestAccrued") == []

        system.engine.accrue_interest()
        assert system.engine.debt_exchange_rate == PRECISION

    def test_no_elapsed_time_earns_nothing(self):
        system = staked_system(500, 500)
        assert system.vault.pending_interest() == 0
        assert system.vault.accrue_interest() is None
