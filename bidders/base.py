"""
Abstract base classes for bidders in the ascending auction.

Every bidder is a simpy process following the same state machine:

    DECIDING -> (sleep / patience decay) -> WANTS_TO_BID -> (contend for arbiter)
        -> accepted:  DECIDING or TERMINATED
        -> abandoned: DECIDING
    -> TERMINATED

A bidder terminates when it can no longer afford the next increment, when
its patience is exhausted, or when the round has ended. Once terminated it
never submits another bid.

Bidders never mutate round state themselves. They read the current price
from their round and submit through the BiddingArbiter, which re-validates
every submission after acquiring exclusive access.
"""

import logging
import math
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Generator

import simpy

from auction.config import PatienceConfig
from auction.simulation import SimContext
from bidders.patience import PatienceModel

if TYPE_CHECKING:
    from auction.arbiter import BiddingArbiter, BidOutcome
    from auction.auction_round import Round

logger = logging.getLogger(__name__)


class Strategy(str, Enum):
    AGENT = "agent"
    RATCHET = "ratchet"
    SNIPER = "sniper"


class BidderState(str, Enum):
    DECIDING = "deciding"
    WANTS_TO_BID = "wants_to_bid"
    TERMINATED = "terminated"


class TerminationReason(str, Enum):
    VALUATION_EXCEEDED = "valuation_exceeded"
    PATIENCE_EXHAUSTED = "patience_exhausted"
    ROUND_ENDED = "round_ended"
    SNIPE_DONE = "snipe_done"


class Bidder(ABC):
    """
    Abstract base class for all bidder strategies.

    Attributes:
        bidder_id: Unique identifier within the run (>= 1)
        valuation: Private ceiling price, fixed for the bidder's lifetime
        auction_round: The round this bidder takes part in
        end_time: Round end time, copied at creation
        leading: True while this bidder holds the highest accepted bid
            (informational; the round's leader field is authoritative)
        state: Current BidderState
        termination_reason: Why the bidder stopped (None while alive)
        bids_placed: Number of accepted bids
    """

    strategy: Strategy

    def __init__(
        self,
        bidder_id: int,
        valuation: float,
        auction_round: "Round",
        arbiter: "BiddingArbiter",
        ctx: SimContext,
        allow_equal_valuation: bool = False,
    ) -> None:
        if bidder_id < 1:
            raise ValueError(f"bidder_id must be >= 1, got {bidder_id}")
        if math.isnan(valuation) or valuation < 0:
            raise ValueError(f"valuation must be >= 0, got {valuation}")

        self.bidder_id = bidder_id
        self.valuation = valuation
        self.auction_round = auction_round
        self.arbiter = arbiter
        self.ctx = ctx
        self.allow_equal_valuation = allow_equal_valuation

        self.end_time = auction_round.end_time
        self.created_at = ctx.now
        self.leading = False
        self.state = BidderState.DECIDING
        self.termination_reason: TerminationReason | None = None
        self.bids_placed = 0

    # =========================================================================
    # PROCESS
    # =========================================================================

    def lifecycle(self) -> Generator[simpy.Event, object, None]:
        """
        Process body registered with the engine.

        Wraps ``run`` so that cancellation (an Interrupt delivered at round
        end or forced discard) is a normal termination.
        """
        try:
            yield from self.run()
        except simpy.Interrupt:
            self.terminate(TerminationReason.ROUND_ENDED)
        if not self.terminated:
            self.terminate(TerminationReason.ROUND_ENDED)

    @abstractmethod
    def run(self) -> Generator[simpy.Event, object, None]:
        """Strategy-specific decision loop."""

    def submit_bid(self) -> Generator[simpy.Event, object, "BidOutcome"]:
        """Contend for the arbiter and try to raise the price by one increment."""
        self.state = BidderState.WANTS_TO_BID
        outcome = yield from self.arbiter.submit(self)
        if self.state is BidderState.WANTS_TO_BID:
            self.state = BidderState.DECIDING
        if outcome.accepted:
            self.on_bid_accepted()
        return outcome

    # =========================================================================
    # DECISION HELPERS
    # =========================================================================

    @property
    def terminated(self) -> bool:
        return self.state is BidderState.TERMINATED

    def can_afford(self, price: float) -> bool:
        """Whether a bid at ``price`` respects this bidder's valuation."""
        if self.allow_equal_valuation:
            return price <= self.valuation
        return price < self.valuation

    def round_over(self, now: float) -> bool:
        return now >= self.end_time or not self.auction_round.is_open(now)

    def on_bid_accepted(self) -> None:
        """Hook called after the arbiter accepted one of our bids."""
        self.bids_placed += 1

    def terminate(self, reason: TerminationReason) -> None:
        if self.terminated:
            return
        self.state = BidderState.TERMINATED
        self.termination_reason = reason
        logger.debug(
            "Bidder %d (%s) terminated at %.3f: %s",
            self.bidder_id,
            self.strategy.value,
            self.ctx.now,
            reason.value,
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(id={self.bidder_id}, "
            f"valuation={self.valuation:.2f}, state={self.state.value})"
        )


class PatientBidder(Bidder):
    """
    Polling bidder driven by the shared patience curve.

    Subclasses set ``active_from`` (start of bid eligibility) and may
    override ``wait_for_next_decision`` to wake on other signals.

    Each decision tick:
        1. Stop if the round is over or the next increment is unaffordable.
        2. Recompute patience; stop if it fell below the abandon threshold.
        3. If eligible and not leading, bid when Uniform() > patience.
        4. Sleep for the poll interval (current patience, floored).
    """

    def __init__(
        self,
        bidder_id: int,
        valuation: float,
        auction_round: "Round",
        arbiter: "BiddingArbiter",
        ctx: SimContext,
        patience: PatienceConfig,
        allow_equal_valuation: bool = False,
    ) -> None:
        super().__init__(
            bidder_id,
            valuation,
            auction_round,
            arbiter,
            ctx,
            allow_equal_valuation=allow_equal_valuation,
        )
        self.patience = PatienceModel(
            patience,
            start_time=auction_round.start_time,
            duration=auction_round.duration,
            ctx=ctx,
        )
        self.active_from = auction_round.start_time

    def is_active(self, now: float) -> bool:
        return now >= self.active_from

    def run(self) -> Generator[simpy.Event, object, None]:
        while True:
            now = self.ctx.now
            if self.round_over(now):
                self.terminate(TerminationReason.ROUND_ENDED)
                return
            if not self.can_afford(self.auction_round.next_price()):
                self.terminate(TerminationReason.VALUATION_EXCEEDED)
                return

            self.patience.update(now)
            if self.patience.exhausted:
                self.terminate(TerminationReason.PATIENCE_EXHAUSTED)
                return

            if self.is_active(now) and not self.leading:
                if self.ctx.uniform() > self.patience.value:
                    yield from self.submit_bid()

            yield from self.wait_for_next_decision()

    def wait_for_next_decision(self) -> Generator[simpy.Event, object, None]:
        yield self.ctx.env.timeout(self.patience.poll_interval())

    def on_bid_accepted(self) -> None:
        super().on_bid_accepted()
        self.patience.boost(self.patience.params.confidence_boost)
