"""
Sniper bidder.

Dormant until its snipe time, ``end_time - Exponential(offset_mean)``, which
models human reaction plus network delay before the close. It then makes a
single attempt and always terminates, whether the bid was accepted or not.
A sniper created after its snipe time attempts immediately if the round is
still open.
"""

from typing import TYPE_CHECKING, Generator

import simpy

from auction.config import SniperConfig
from auction.simulation import SimContext
from bidders.base import Bidder, Strategy, TerminationReason

if TYPE_CHECKING:
    from auction.arbiter import BiddingArbiter
    from auction.auction_round import Round


class SniperBidder(Bidder):
    """Last-moment single-shot bidder."""

    strategy = Strategy.SNIPER

    def __init__(
        self,
        bidder_id: int,
        valuation: float,
        auction_round: "Round",
        arbiter: "BiddingArbiter",
        ctx: SimContext,
        config: SniperConfig,
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
        self.config = config
        self.snipe_time = self.end_time - ctx.exponential(config.offset_mean)
        self.attempted = False

    def run(self) -> Generator[simpy.Event, object, None]:
        delay = self.snipe_time - self.ctx.now
        if delay > 0:
            yield self.ctx.env.timeout(delay)

        if self.round_over(self.ctx.now):
            self.terminate(TerminationReason.ROUND_ENDED)
            return
        if not self.can_afford(self.auction_round.next_price()):
            self.terminate(TerminationReason.VALUATION_EXCEEDED)
            return

        self.attempted = True
        yield from self.submit_bid()
        self.terminate(TerminationReason.SNIPE_DONE)
