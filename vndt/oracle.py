"""
oracle.py - Reserve asset price feed

Provides the single mutable price the debt engine values collateral with.

Classes:
- PriceSource: Protocol the engine depends on (get_eth_price only)
- PriceOracle: Owner-restricted price with a timestamped history

Prices are pegged units per reserve asset unit, scaled by PRECISION
(2500 VNDT per ETH is 2500 * 10**18). Values are not validated.
"""

from __future__ import annotations
from bisect import bisect_right
from datetime import datetime
from typing import List, Optional, Protocol, Tuple, runtime_checkable
import logging

from .core import (
    Event, PendingTransaction, TransactionOrigin, OriginType, NotAuthorized,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class PriceSource(Protocol):
    """Anything that quotes the reserve asset in pegged units."""

    def get_eth_price(self) -> int:
        ...


class PriceOracle:
    """
    Owner-restricted reserve asset price.

    When bound to a ledger, every update is recorded as a PriceUpdated event
    and the history is stamped with the ledger's logical time.

    Example:
        oracle = PriceOracle("deployer", 2500 * PRECISION, ledger=ledger)
        oracle.set_eth_price("deployer", 2000 * PRECISION)
        oracle.get_price_at(datetime(2025, 1, 1))
    """

    def __init__(self, owner: str, initial_price: int, ledger=None, wallet: str = "oracle"):
        """
        Args:
            owner: Only identity allowed to set the price
            initial_price: Starting price, 18 decimals
            ledger: Optional ledger providing time and the event log
            wallet: Identity recorded as the emitter of price events
        """
        self.owner = owner
        self.wallet = wallet
        self.ledger = ledger
        self._price = initial_price
        self.price_history: List[Tuple[datetime, int]] = [(self._now(), initial_price)]

    def _now(self) -> datetime:
        return self.ledger.current_time if self.ledger is not None else datetime.now()

    def get_eth_price(self) -> int:
        return self._price

    def set_eth_price(self, caller: str, price: int) -> None:
        """
        Replace the price.

        Raises:
            NotAuthorized: If caller is not the owner
        """
        if caller != self.owner:
            raise NotAuthorized(f"only {self.owner} may set the price, not {caller}")
        self._price = price
        now = self._now()
        self.price_history.append((now, price))
        logger.info("ETH price set to %d", price)
        if self.ledger is not None:
            self.ledger.commit(PendingTransaction(
                moves=(),
                state_changes=(),
                origin=TransactionOrigin(OriginType.EXTERNAL, caller, event_type="SET_PRICE"),
                timestamp=now,
                events=(Event("PriceUpdated", self.wallet, {'price': price}),),
            ))

    def get_price_at(self, timestamp: datetime) -> Optional[int]:
        """
        Price in force at timestamp: the latest update at or before it.

        Returns None before the first observation.
        """
        timestamps = [ts for ts, _ in self.price_history]
        idx = bisect_right(timestamps, timestamp)
        if idx == 0:
            return None
        return self.price_history[idx - 1][1]

    def __repr__(self):
        return f"PriceOracle(price={self._price}, owner={self.owner}, {len(self.price_history)} observations)"
