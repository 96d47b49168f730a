"""
Bidder Factory.
"""

from typing import TYPE_CHECKING

from auction.config import BiddersConfig
from auction.simulation import SimContext
from bidders.agent import AgentBidder
from bidders.base import Bidder, Strategy
from bidders.ratchet import RatchetBidder
from bidders.sniper import SniperBidder

if TYPE_CHECKING:
    from auction.arbiter import BiddingArbiter
    from auction.auction_round import Round


def create_bidder(
    strategy: Strategy | str,
    bidder_id: int,
    valuation: float,
    auction_round: "Round",
    arbiter: "BiddingArbiter",
    ctx: SimContext,
    config: BiddersConfig | None = None,
    allow_equal_valuation: bool = False,
) -> Bidder:
    """
    Bidder instance for ``strategy`` ("agent", "ratchet" or "sniper").
    """
    if config is None:
        config = BiddersConfig()
    strategy = Strategy(strategy)

    if strategy is Strategy.AGENT:
        return AgentBidder(
            bidder_id,
            valuation,
            auction_round,
            arbiter,
            ctx,
            patience=config.patience,
            config=config.agent,
            allow_equal_valuation=allow_equal_valuation,
        )
    elif strategy is Strategy.RATCHET:
        return RatchetBidder(
            bidder_id,
            valuation,
            auction_round,
            arbiter,
            ctx,
            patience=config.patience,
            config=config.ratchet,
            allow_equal_valuation=allow_equal_valuation,
        )
    elif strategy is Strategy.SNIPER:
        return SniperBidder(
            bidder_id,
            valuation,
            auction_round,
            arbiter,
            ctx,
            config=config.sniper,
            allow_equal_valuation=allow_equal_valuation,
        )
    else:
        raise ValueError(f"Unknown bidder strategy: {strategy}")
