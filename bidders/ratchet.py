"""
Ratchet bidder.

Incremental bidder sharing the agent's polling and patience shape, but
eligible much earlier in the round (quiet_fraction defaults to a quarter).
Besides its regular decision tick it listens to the round's price-change
signal: when someone else raises the price it reacts after an exponential
reaction delay, ratcheting the price up one increment at a time.

With probability ``irrational_prob`` the bidder is created with an unbounded
valuation, modelling an irrational participant who never stops on price.
"""

import math
from typing import TYPE_CHECKING, Generator

import simpy

from auction.config import PatienceConfig, RatchetConfig
from auction.simulation import SimContext
from bidders.base import PatientBidder, Strategy

if TYPE_CHECKING:
    from auction.arbiter import BiddingArbiter
    from auction.auction_round import Round


class RatchetBidder(PatientBidder):
    """Early incremental bidder that reacts to being outbid."""

    strategy = Strategy.RATCHET

    def __init__(
        self,
        bidder_id: int,
        valuation: float,
        auction_round: "Round",
        arbiter: "BiddingArbiter",
        ctx: SimContext,
        patience: PatienceConfig,
        config: RatchetConfig,
        allow_equal_valuation: bool = False,
    ) -> None:
        self.irrational = ctx.uniform() < config.irrational_prob
        if self.irrational:
            valuation = math.inf
        super().__init__(
            bidder_id,
            valuation,
            auction_round,
            arbiter,
            ctx,
            patience,
            allow_equal_valuation=allow_equal_valuation,
        )
        self.config = config
        quiet = max(0.0, config.quiet_fraction - ctx.exponential(config.quiet_jitter))
        self.active_from = auction_round.start_time + quiet * auction_round.duration
        self.reactions = 0

    def wait_for_next_decision(self) -> Generator[simpy.Event, object, None]:
        env = self.ctx.env
        tick = env.timeout(self.patience.poll_interval())
        price_changed = self.auction_round.price_changed
        fired = yield tick | price_changed

        if tick not in fired and not self.leading:
            # Outbid: react after a short delay instead of waiting a full tick
            self.reactions += 1
            yield env.timeout(self.ctx.exponential(self.config.reaction_mean))
