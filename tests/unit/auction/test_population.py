# tests/unit/auction/test_population.py
"""
Tests for the PopulationGenerator and the bidder factory.
"""

import numpy as np
import pytest

from auction.auction_round import RoundStatus
from auction.bidder_factory import create_bidder
from auction.config import PopulationConfig, StrategyMixConfig
from auction.population import PopulationGenerator
from bidders.agent import AgentBidder
from bidders.base import Strategy
from bidders.ratchet import RatchetBidder
from bidders.sniper import SniperBidder


class TestSampling:
    def test_size_is_poisson_around_mean(self, population):
        sizes = [population.sample_size() for _ in range(2000)]
        assert np.mean(sizes) == pytest.approx(20.0, abs=0.5)
        assert np.var(sizes) == pytest.approx(20.0, rel=0.2)

    def test_strategy_mix_proportions(self, population):
        draws = [population.sample_strategy() for _ in range(5000)]
        shares = {s: draws.count(s) / len(draws) for s in Strategy}
        assert shares[Strategy.AGENT] == pytest.approx(0.40, abs=0.03)
        assert shares[Strategy.RATCHET] == pytest.approx(0.25, abs=0.03)
        assert shares[Strategy.SNIPER] == pytest.approx(0.35, abs=0.03)

    def test_zero_weight_strategy_never_drawn(self, ctx, arbiter):
        config = PopulationConfig(mix=StrategyMixConfig(agent=1.0, ratchet=1.0, sniper=0.0))
        generator = PopulationGenerator(ctx, arbiter, config)
        draws = {generator.sample_strategy() for _ in range(500)}
        assert Strategy.SNIPER not in draws

    def test_sniper_valuations_are_tighter(self, population):
        snipers = [population.sample_valuation(Strategy.SNIPER, 100.0) for _ in range(2000)]
        agents = [population.sample_valuation(Strategy.AGENT, 100.0) for _ in range(2000)]
        assert np.mean(snipers) == pytest.approx(120.0, rel=0.02)
        assert np.mean(agents) == pytest.approx(120.0, rel=0.03)
        assert np.std(snipers) < np.std(agents)

    def test_valuation_never_negative(self, ctx, arbiter):
        config = PopulationConfig(valuation_mean=0.0, valuation_std=1.0)
        generator = PopulationGenerator(ctx, arbiter, config)
        assert min(generator.sample_valuation(Strategy.AGENT, 10.0) for _ in range(500)) >= 0.0


class TestPopulate:
    def test_roster_spawns_in_order(self, ctx, arbiter, make_round):
        generator = PopulationGenerator(ctx, arbiter, PopulationConfig(arrival_span=0.05))
        auction_round = make_round(grace_timeout=60.0)
        auction_round.status = RoundStatus.OPEN
        roster = [(Strategy.SNIPER, 90.0), (Strategy.AGENT, 150.0), ("ratchet", 120.0)]
        spawner = ctx.env.process(generator.populate(auction_round, roster=roster))
        ctx.env.run(until=spawner)

        assert spawner.value == 3
        assert [b.strategy for b in auction_round.bidders] == [
            Strategy.SNIPER,
            Strategy.AGENT,
            Strategy.RATCHET,
        ]
        assert [b.valuation for b in auction_round.bidders][:2] == [90.0, 150.0]

    def test_arrivals_stay_inside_round(self, ctx, arbiter, make_round):
        generator = PopulationGenerator(ctx, arbiter, PopulationConfig(mean_bidders=40, arrival_span=1.0))
        auction_round = make_round(grace_timeout=60.0)
        ctx.env.process(auction_round.run(generator))
        ctx.env.run()

        assert all(
            auction_round.start_time <= b.created_at < auction_round.end_time
            for b in auction_round.bidders
        )

    def test_ids_unique_across_rounds(self, ctx, make_round, population):
        first = make_round(round_id=1, grace_timeout=60.0)
        second = make_round(round_id=2, grace_timeout=60.0)
        a = population.spawn(first, Strategy.AGENT, 120.0)
        b = population.spawn(second, Strategy.AGENT, 120.0)
        c = population.spawn(second, Strategy.SNIPER, 120.0)

        assert [a.bidder_id, b.bidder_id, c.bidder_id] == [1, 2, 3]
        assert second.bidder(3) is c

    def test_closed_round_gets_no_bidders(self, ctx, make_round, population):
        auction_round = make_round()
        # Never opened: populate must stop before spawning
        spawner = ctx.env.process(population.populate(auction_round, roster=[(Strategy.AGENT, 150.0)]))
        ctx.env.run()

        assert spawner.value == 0
        assert auction_round.bidders == []


class TestBidderFactory:
    @pytest.mark.parametrize(
        "strategy,cls",
        [("agent", AgentBidder), ("ratchet", RatchetBidder), ("sniper", SniperBidder)],
    )
    def test_creates_each_strategy(self, ctx, arbiter, make_round, strategy, cls):
        bidder = create_bidder(strategy, 1, 120.0, make_round(), arbiter, ctx)
        assert isinstance(bidder, cls)
        assert bidder.strategy.value == strategy

    def test_unknown_strategy(self, ctx, arbiter, make_round):
        with pytest.raises(ValueError):
            create_bidder("kaplan", 1, 120.0, make_round(), arbiter, ctx)

    def test_rejects_bad_identity(self, ctx, arbiter, make_round):
        with pytest.raises(ValueError):
            create_bidder(Strategy.AGENT, 0, 120.0, make_round(), arbiter, ctx)
        with pytest.raises(ValueError):
            create_bidder(Strategy.SNIPER, 1, -1.0, make_round(), arbiter, ctx)
