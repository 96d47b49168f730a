"""
First-bid watchdog.

Armed at round start with a grace window. It races two outcomes and acts on
whichever the engine delivers first:

    first bid arrives  -> no-op, the watchdog retires
    grace expires      -> if still no bid, force the round to DISCARDED
                          (winner None) and cancel the round's wait

Both branches are idempotent against the other: a bid arriving at the exact
expiry instant either lands first (the watchdog then sees it and retires) or
finds the round already discarded (the arbiter then abandons it).
"""

import logging
from typing import TYPE_CHECKING, Generator

import simpy

if TYPE_CHECKING:
    from auction.auction_round import Round

logger = logging.getLogger(__name__)


class FirstBidWatchdog:
    """
    Grace-period monitor for one round.

    Attributes:
        grace: Grace window length
        deadline: Absolute expiry time
        fired: True if the watchdog discarded the round
        retired: True if it stopped without acting (bid seen or cancelled)
    """

    def __init__(self, auction_round: "Round", grace: float) -> None:
        if grace <= 0:
            raise ValueError(f"grace must be > 0, got {grace}")
        self.auction_round = auction_round
        self.grace = grace
        self.deadline = auction_round.start_time + grace
        self.fired = False
        self.retired = False

    def run(self) -> Generator[simpy.Event, object, None]:
        env = self.auction_round.ctx.env
        try:
            yield env.timeout(self.grace) | self.auction_round.first_bid
        except simpy.Interrupt:
            self.retired = True
            return

        if self.auction_round.has_bids:
            self.retired = True
            return

        self.fired = self.auction_round.force_discard()
        if not self.fired:
            self.retired = True
        logger.debug(
            "Watchdog for round %d expired at %.3f (fired=%s)",
            self.auction_round.round_id,
            env.now,
            self.fired,
        )
