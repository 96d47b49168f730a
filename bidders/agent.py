"""
Agent bidder.

Models proxy-style aggressive bidding: the bidder polls frequently (every
``patience`` time units, floored) but stays quiet through an early period of
roughly three quarters of the round. Once active, every decision tick bids
when a uniform draw exceeds the current patience, so bidding intensifies as
patience collapses in the final quarter.

The quiet period ends at

    start + duration * max(0, quiet_fraction - Exponential(quiet_jitter))
"""

from typing import TYPE_CHECKING

from auction.config import AgentConfig, PatienceConfig
from auction.simulation import SimContext
from bidders.base import PatientBidder, Strategy

if TYPE_CHECKING:
    from auction.arbiter import BiddingArbiter
    from auction.auction_round import Round


class AgentBidder(PatientBidder):
    """Aggressive late bidder driven by the patience curve."""

    strategy = Strategy.AGENT

    def __init__(
        self,
        bidder_id: int,
        valuation: float,
        auction_round: "Round",
        arbiter: "BiddingArbiter",
        ctx: SimContext,
        patience: PatienceConfig,
        config: AgentConfig,
        allow_equal_valuation: bool = False,
    ) -> None:
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
