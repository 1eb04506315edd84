"""
rate_controller.py - Owner-restricted rate setter for the engine and the vault

The controller holds the rate-controller identity that the debt engine and
the staking vault accept rate changes from. Its owner decides the rates;
the controller forwards them under its own identity.
"""

from __future__ import annotations
import logging

from .core import LedgerError, NotAuthorized

logger = logging.getLogger(__name__)


class RateController:
    """
    Example:
        controller = RateController("vndt_rate_controller", owner="deployer")
        controller.bind(engine, vault)
        controller.update_borrow_rate("deployer", 500)   # 5% a year
    """

    def __init__(self, address: str, owner: str, engine=None, vault=None):
        self.address = address
        self.owner = owner
        self.engine = engine
        self.vault = vault

    def bind(self, engine, vault) -> None:
        """Attach the engine and vault deployed after the controller."""
        self.engine = engine
        self.vault = vault

    def _require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise NotAuthorized(f"only {self.owner} may change rates, not {caller}")

    def update_borrow_rate(self, caller: str, new_rate: int):
        """
        Push a new borrow rate (basis points) into the debt engine.

        Raises:
            NotAuthorized: If caller is not the owner
            LedgerError: If no engine is bound
        """
        self._require_owner(caller)
        if self.engine is None:
            raise LedgerError("rate controller has no engine bound")
        logger.info("%s updating borrow rate to %d bps", caller, new_rate)
        return self.engine.set_borrow_rate(self.address, new_rate)

    def update_staking_rate(self, caller: str, new_rate: int):
        """
        Push a new staking rate (basis points) into the vault.

        Raises:
            NotAuthorized: If caller is not the owner
            LedgerError: If no vault is bound
        """
        self._require_owner(caller)
        if self.vault is None:
            raise LedgerError("rate controller has no vault bound")
        logger.info("%s updating staking rate to %d bps", caller, new_rate)
        return self.vault.set_staking_rate(self.address, new_rate)

    def __repr__(self):
        return f"RateController({self.address}, owner={self.owner})"
