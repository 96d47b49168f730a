"""
Bidder population generator.

Spawns one round's bidders as independent processes:

- Size: Poisson(mean_bidders), so rounds vary around the configured mean
  and an empty round is possible.
- Strategy: categorical split, by default 40% agent / 25% ratchet /
  35% sniper, matched to a reference empirical study of online auctions.
- Valuation: item_value * Normal(valuation_mean, std), a little above the
  item's worth; snipers use the tighter ``sniper_valuation_std``.
- Arrival: exponential inter-arrival gaps with mean
  ``arrival_span * duration / size``, so the population trickles in over
  the first part of the round instead of appearing at once.

After spawning, a bidder only holds a read-only view of its round; the
generator does not synchronize with it again.
"""

import itertools
import logging
from typing import TYPE_CHECKING, Generator, Sequence

import simpy

from auction.bidder_factory import create_bidder
from auction.config import BiddersConfig, PopulationConfig
from auction.simulation import SimContext
from bidders.base import Bidder, Strategy

if TYPE_CHECKING:
    from auction.arbiter import BiddingArbiter
    from auction.auction_round import Round

logger = logging.getLogger(__name__)


class PopulationGenerator:
    """
    Creates bidders for successive rounds.

    Bidder ids are unique across the whole run.
    """

    def __init__(
        self,
        ctx: SimContext,
        arbiter: "BiddingArbiter",
        population: PopulationConfig | None = None,
        bidders: BiddersConfig | None = None,
        allow_equal_valuation: bool = False,
    ) -> None:
        self.ctx = ctx
        self.arbiter = arbiter
        self.population = population if population is not None else PopulationConfig()
        self.bidders = bidders if bidders is not None else BiddersConfig()
        self.allow_equal_valuation = allow_equal_valuation
        self._ids = itertools.count(1)

    @property
    def strategy_weights(self) -> dict[Strategy, float]:
        mix = self.population.mix
        return {
            Strategy.AGENT: mix.agent,
            Strategy.RATCHET: mix.ratchet,
            Strategy.SNIPER: mix.sniper,
        }

    # =========================================================================
    # SAMPLING
    # =========================================================================

    def sample_size(self) -> int:
        return self.ctx.poisson(self.population.mean_bidders)

    def sample_strategy(self) -> Strategy:
        return self.ctx.categorical(self.strategy_weights)

    def sample_valuation(self, strategy: Strategy, item_value: float) -> float:
        std = (
            self.population.sniper_valuation_std
            if strategy is Strategy.SNIPER
            else self.population.valuation_std
        )
        factor = self.ctx.normal(self.population.valuation_mean, std)
        return max(item_value * factor, 0.0)

    def mean_gap(self, auction_round: "Round", size: int) -> float:
        return self.population.arrival_span * auction_round.duration / max(size, 1)

    # =========================================================================
    # SPAWNING
    # =========================================================================

    def populate(
        self,
        auction_round: "Round",
        roster: Sequence[tuple[Strategy, float]] | None = None,
    ) -> Generator[simpy.Event, object, int]:
        """
        Process body spawning the round's bidders with staggered arrivals.

        Args:
            auction_round: The round being populated
            roster: Fixed (strategy, valuation) entries; sampled when None

        Returns:
            Number of bidders spawned (fewer than planned if the round
            closed or the process was cancelled first)
        """
        size = len(roster) if roster is not None else self.sample_size()
        if size == 0:
            logger.warning("Round %d: empty bidder population", auction_round.round_id)
        gap = self.mean_gap(auction_round, size)
        spawned = 0
        logger.debug("Round %d: %d bidders planned", auction_round.round_id, size)

        try:
            for index in range(size):
                yield self.ctx.env.timeout(self.ctx.exponential(gap))
                if not auction_round.is_open():
                    break
                if roster is not None:
                    strategy, valuation = roster[index]
                    strategy = Strategy(strategy)
                else:
                    strategy = self.sample_strategy()
                    valuation = self.sample_valuation(strategy, auction_round.item_value)
                self.spawn(auction_round, strategy, valuation)
                spawned += 1
        except simpy.Interrupt:
            pass
        return spawned

    def spawn(self, auction_round: "Round", strategy: Strategy, valuation: float) -> Bidder:
        """Create one bidder and start its process."""
        bidder = create_bidder(
            strategy,
            next(self._ids),
            valuation,
            auction_round,
            self.arbiter,
            self.ctx,
            config=self.bidders,
            allow_equal_valuation=self.allow_equal_valuation,
        )
        process = self.ctx.env.process(bidder.lifecycle())
        auction_round.register(bidder, process)
        return bidder
