"""
Bidding arbiter: the single exclusive resource serializing price increments.

A bidder that wants to bid requests the arbiter and blocks (queues) while
another bidder holds it; contention is resolved by FIFO queuing, never by
rejection. Once granted, the holder re-validates its bid against the price
as it is now, not as it was when the bidder decided:

    1. The round must still be open.
    2. The bidder must not already be the leader.
    3. price + increment must respect the bidder's valuation.

A valid bid applies exactly one increment through ``Round.record_bid``,
which moves the price, updates the winner of record, appends the bid log
entry and signals the price change. The hold contains no suspension point,
so it is momentary in virtual time, and the request context releases the
resource on every exit path, including cancellation while queued.

The arbiter outlives rounds and carries no state between holds.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Generator

import simpy

from auction.errors import InvariantViolation
from auction.simulation import SimContext

if TYPE_CHECKING:
    from bidders.base import Bidder

logger = logging.getLogger(__name__)


class AbandonReason(str, Enum):
    ROUND_CLOSED = "round_closed"
    ALREADY_LEADING = "already_leading"
    VALUATION_EXCEEDED = "valuation_exceeded"


@dataclass(frozen=True)
class BidOutcome:
    """Result of one arbiter hold."""

    accepted: bool
    price: float
    reason: AbandonReason | None = None


class BiddingArbiter:
    """
    Exclusive-access gate in front of the round's price.

    Attributes:
        holder: Bidder currently inside the critical section (None if free)
        acquisitions: Number of completed holds
        accepted: Holds that applied an increment
        abandoned: Holds released without bidding, keyed by reason
        peak_holders: Highest number of simultaneous holders ever observed
    """

    def __init__(self, ctx: SimContext) -> None:
        self.ctx = ctx
        self._resource = simpy.Resource(ctx.env, capacity=1)
        self.holder: "Bidder | None" = None
        self._depth = 0

        self.acquisitions = 0
        self.accepted = 0
        self.abandoned: dict[AbandonReason, int] = {reason: 0 for reason in AbandonReason}
        self.peak_holders = 0

    @property
    def is_free(self) -> bool:
        return self.holder is None

    @property
    def in_use(self) -> int:
        """Granted requests not yet released (0 or 1)."""
        return self._resource.count

    @property
    def queue_length(self) -> int:
        """Bidders currently waiting for the arbiter."""
        return len(self._resource.queue)

    def submit(self, bidder: "Bidder") -> Generator[simpy.Event, object, BidOutcome]:
        """
        Acquire the arbiter, re-validate and apply one increment.

        Args:
            bidder: The submitting bidder (its round is the one bid on)

        Returns:
            BidOutcome with ``accepted`` and the price after the hold
        """
        with self._resource.request() as request:
            yield request
            self._acquire(bidder)
            try:
                return self._settle_bid(bidder)
            finally:
                self._release(bidder)

    # =========================================================================
    # CRITICAL SECTION
    # =========================================================================

    def _acquire(self, bidder: "Bidder") -> None:
        self._depth += 1
        self.peak_holders = max(self.peak_holders, self._depth)
        if self._depth > 1:
            raise InvariantViolation(
                f"bidder {bidder.bidder_id} entered the arbiter while "
                f"bidder {self.holder.bidder_id if self.holder else '?'} holds it"
            )
        self.holder = bidder

    def _release(self, bidder: "Bidder") -> None:
        self._depth -= 1
        self.holder = None
        self.acquisitions += 1

    def _settle_bid(self, bidder: "Bidder") -> BidOutcome:
        auction_round = bidder.auction_round
        now = self.ctx.now

        if not auction_round.is_open(now):
            return self._abandon(bidder, AbandonReason.ROUND_CLOSED)
        if auction_round.leader is bidder:
            return self._abandon(bidder, AbandonReason.ALREADY_LEADING)

        new_price = auction_round.next_price()
        if not bidder.can_afford(new_price):
            # Stale decision: the price moved while we were queued
            return self._abandon(bidder, AbandonReason.VALUATION_EXCEEDED)

        auction_round.record_bid(bidder, new_price)
        self.accepted += 1
        return BidOutcome(accepted=True, price=new_price)

    def _abandon(self, bidder: "Bidder", reason: AbandonReason) -> BidOutcome:
        self.abandoned[reason] += 1
        logger.debug(
            "Bidder %d abandoned bid at %.3f: %s",
            bidder.bidder_id,
            self.ctx.now,
            reason.value,
        )
        return BidOutcome(accepted=False, price=bidder.auction_round.current_price, reason=reason)
