"""
test_rate_controller.py - Unit tests for the owner-restricted rate controller
"""

import pytest

from vndt import RateController, LedgerError, NotAuthorized


class TestRateController:

    def test_forwards_under_own_identity(self, system):
        controller = system.rate_controller
        controller.update_borrow_rate("deployer", 250)
        controller.update_staking_rate("deployer", 400)
        assert system.engine.borrow_rate == 250
        assert system.vault.staking_rate == 400
        assert system.ledger.transaction_log[-1].origin.source_id == system.vault.wallet

    def test_only_owner(self, system):
        with pytest.raises(NotAuthorized):
            system.rate_controller.update_borrow_rate("alice", 1)
        with pytest.raises(NotAuthorized):
            system.rate_controller.update_staking_rate("alice", 1)
        assert system.engine.borrow_rate == 0

    def test_unbound_controller(self):
        controller = RateController("ctl", owner="deployer")
        with pytest.raises(LedgerError, match="no engine"):
            controller.update_borrow_rate("deployer", 1)
        with pytest.raises(LedgerError, match="no vault"):
            controller.update_staking_rate("deployer", 1)

    def test_wrong_address_is_refused_downstream(self, system):
        """A controller whose address is not the configured identity cannot set rates."""
        rogue = RateController("rogue", owner="mallory", engine=system.engine, vault=system.vault)
        with pytest.raises(NotAuthorized):
            rogue.update_borrow_rate("mallory", 9999)

    def test_repr(self):
        assert repr(RateController("ctl", owner="deployer")) == "RateController(ctl, owner=deployer)"
