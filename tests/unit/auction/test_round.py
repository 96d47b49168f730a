# tests/unit/auction/test_round.py
"""
Tests for the Round lifecycle and settlement.

These tests verify:
1. End-to-end outcomes of small fixed rosters
2. Settlement happens exactly once with winner set iff SOLD
3. record_bid guards (open round, strictly increasing price)
4. Every bidder process is finished once the round settles
"""

import pytest

from auction.auction_round import TERMINAL_STATUSES, Round, RoundStatus
from auction.config import (
    AgentConfig,
    AuctionConfig,
    BiddersConfig,
    ItemValueConfig,
    PopulationConfig,
    SniperConfig,
)
from auction.errors import InvariantViolation
from auction.population import PopulationGenerator
from auction.simulation import SimContext
from bidders.base import Strategy, TerminationReason
from bidders.sniper import SniperBidder


@pytest.fixture
def fast_population(ctx, arbiter):
    """Population whose bidders all arrive within the first seconds."""
    return PopulationGenerator(ctx, arbiter, PopulationConfig(arrival_span=0.05))


def run_round(ctx, auction_round, population, roster=None):
    process = ctx.env.process(auction_round.run(population, roster=roster))
    ctx.env.run()
    return process.value


class TestRoundScenarios:
    """Small rosters with known outcomes."""

    def test_agent_wins_with_watchdog_disarmed(self, ctx, make_round, fast_population):
        """The agent stays quiet past a 30-unit grace, so the watchdog must be off."""
        auction_round = make_round(starting_price=100.0, bid_increment=0.01, grace_timeout=60.0)
        assert auction_round.config.grace_window() is None
        outcome = run_round(
            ctx,
            auction_round,
            fast_population,
            roster=[(Strategy.AGENT, 150.0), (Strategy.SNIPER, 90.0)],
        )

        assert outcome.status is RoundStatus.SOLD
        assert outcome.winner == "agent"
        assert 100.0 < outcome.final_price < 150.0
        assert outcome.num_bidders == 2

        sniper = next(b for b in auction_round.bidders if b.strategy is Strategy.SNIPER)
        assert sniper.bids_placed == 0
        assert sniper.termination_reason is TerminationReason.VALUATION_EXCEEDED

    def test_agent_scenario_discarded_under_default_grace(self, ctx, arbiter, make_round):
        """With the default grace of 30 the agent (active from 45) never bids in time."""
        bidders = BiddersConfig(agent=AgentConfig(quiet_jitter=0.0))
        population = PopulationGenerator(ctx, arbiter, PopulationConfig(arrival_span=0.05), bidders)
        auction_round = make_round(starting_price=100.0, bid_increment=0.01)
        outcome = run_round(
            ctx,
            auction_round,
            population,
            roster=[(Strategy.AGENT, 150.0), (Strategy.SNIPER, 90.0)],
        )

        assert auction_round.config.grace_window() == 30.0
        assert outcome.status is RoundStatus.DISCARDED
        assert outcome.winner is None
        assert outcome.discarded_by_watchdog
        assert outcome.closed_at == pytest.approx(30.0)
        assert all(b.terminated for b in auction_round.bidders)

    def test_empty_round_is_discarded_by_watchdog(self, ctx, make_round, fast_population):
        auction_round = make_round(grace_timeout=30.0)
        outcome = run_round(ctx, auction_round, fast_population, roster=[])

        assert outcome.status is RoundStatus.DISCARDED
        assert outcome.winner is None
        assert outcome.discarded_by_watchdog
        assert outcome.closed_at == pytest.approx(30.0)
        assert outcome.final_price == pytest.approx(100.0)
        assert auction_round.watchdog.fired

    def test_zero_sampled_population_is_discarded(self, ctx, arbiter, make_round):
        population = PopulationGenerator(ctx, arbiter, PopulationConfig(mean_bidders=0))
        auction_round = make_round()
        outcome = run_round(ctx, auction_round, population)

        assert outcome.num_bidders == 0
        assert outcome.status is RoundStatus.DISCARDED
        assert outcome.discarded_by_watchdog

    def test_disarmed_watchdog_discards_at_end_time(self, ctx, make_round, fast_population):
        auction_round = make_round(grace_timeout=90.0)
        outcome = run_round(ctx, auction_round, fast_population, roster=[])

        assert auction_round.watchdog is None
        assert outcome.status is RoundStatus.DISCARDED
        assert not outcome.discarded_by_watchdog
        assert outcome.closed_at == pytest.approx(60.0)

    def test_grace_fraction_overrides_timeout(self, ctx, make_round, fast_population):
        auction_round = make_round(grace_timeout=90.0, grace_fraction=0.25)
        outcome = run_round(ctx, auction_round, fast_population, roster=[])

        assert outcome.closed_at == pytest.approx(15.0)
        assert outcome.discarded_by_watchdog

    def test_all_bidders_finished_after_settlement(self, ctx, make_round, fast_population):
        roster = [(Strategy.AGENT, 300.0), (Strategy.RATCHET, 300.0), (Strategy.SNIPER, 300.0)]
        auction_round = make_round(grace_timeout=60.0)
        run_round(ctx, auction_round, fast_population, roster=roster)

        assert auction_round.status in TERMINAL_STATUSES
        assert auction_round.live_bidders() == []
        assert all(not p.is_alive for p in auction_round._processes.values())
        assert all(b.price < auction_round.bidder(b.bidder_id).valuation for b in auction_round.bids)


class TestSettlement:
    """Settlement rules."""

    def test_settle_twice_raises(self, ctx, make_round, fast_population):
        auction_round = make_round()
        run_round(ctx, auction_round, fast_population, roster=[])

        with pytest.raises(InvariantViolation, match="settled twice"):
            auction_round.settle()

    def test_run_twice_raises(self, ctx, make_round, fast_population):
        auction_round = make_round()
        run_round(ctx, auction_round, fast_population, roster=[])

        ctx.env.process(auction_round.run(fast_population, roster=[]))
        with pytest.raises(InvariantViolation, match="already ran"):
            ctx.env.run()

    def test_winner_only_when_sold(self, ctx, arbiter, make_round):
        auction_round = make_round()
        bidder = SniperBidder(1, 500.0, auction_round, arbiter, ctx, config=SniperConfig())
        auction_round.status = RoundStatus.OPEN
        auction_round.record_bid(bidder, 102.0)

        # Leader exists but the round is still open
        assert auction_round.leader is bidder
        assert auction_round.winner is None

        outcome = auction_round.settle()
        assert outcome.status is RoundStatus.SOLD
        assert auction_round.winner is Strategy.SNIPER
        assert outcome.winner == "sniper"
        assert outcome.first_bid_elapsed == pytest.approx(0.0)

    def test_force_discard_is_idempotent(self, make_round):
        auction_round = make_round()
        auction_round.status = RoundStatus.OPEN

        assert auction_round.force_discard()
        assert not auction_round.force_discard()
        assert auction_round.status is RoundStatus.DISCARDED

    def test_force_discard_ignored_after_bid(self, ctx, arbiter, make_round):
        auction_round = make_round()
        bidder = SniperBidder(1, 500.0, auction_round, arbiter, ctx, config=SniperConfig())
        auction_round.status = RoundStatus.OPEN
        auction_round.record_bid(bidder, 102.0)

        assert not auction_round.force_discard()
        assert auction_round.status is RoundStatus.OPEN

    def test_outcome_row_columns(self, ctx, make_round, fast_population):
        auction_round = make_round(item_value=80.0)
        outcome = run_round(ctx, auction_round, fast_population, roster=[])
        row = outcome.as_row()

        assert row["winner"] == "none"
        assert row["status"] == "discarded"
        assert row["price_ratio"] == pytest.approx(100.0 / 80.0)
        assert row["num_bids"] == 0


class TestRecordBid:
    """Guards on the single write path for price state."""

    def test_rejects_closed_round(self, ctx, arbiter, make_round):
        auction_round = make_round()
        bidder = SniperBidder(1, 500.0, auction_round, arbiter, ctx, config=SniperConfig())

        with pytest.raises(InvariantViolation):
            auction_round.record_bid(bidder, 102.0)

    def test_rejects_non_increasing_price(self, ctx, arbiter, make_round):
        auction_round = make_round()
        bidder = SniperBidder(1, 500.0, auction_round, arbiter, ctx, config=SniperConfig())
        auction_round.status = RoundStatus.OPEN

        with pytest.raises(InvariantViolation, match="must increase"):
            auction_round.record_bid(bidder, 100.0)
        assert auction_round.bids == []

    def test_leader_flag_moves(self, ctx, arbiter, make_round):
        auction_round = make_round()
        first = SniperBidder(1, 500.0, auction_round, arbiter, ctx, config=SniperConfig())
        second = SniperBidder(2, 500.0, auction_round, arbiter, ctx, config=SniperConfig())
        auction_round.status = RoundStatus.OPEN

        auction_round.record_bid(first, auction_round.next_price())
        auction_round.record_bid(second, auction_round.next_price())

        assert not first.leading
        assert second.leading
        assert auction_round.current_price == pytest.approx(100.0 * 1.02**2)


class TestSampling:
    """Latent value and opening price draws."""

    def test_sampled_value_and_price_positive(self, ctx):
        for round_id in range(1, 51):
            auction_round = Round(round_id, ctx, AuctionConfig())
            assert auction_round.item_value > 0
            assert auction_round.starting_price > 0

    def test_value_multiplier_has_own_floor(self):
        floored = ItemValueConfig(noise_mean=-1.0, noise_std=0.0, min_multiplier=0.5, min_reserve=0.9)
        neutral = ItemValueConfig(noise_mean=1.0, noise_std=0.0)

        low = Round(1, SimContext(seed=3), AuctionConfig(item=floored))
        base = Round(1, SimContext(seed=3), AuctionConfig(item=neutral))

        # Same exponential draw, multiplier floored at 0.5 rather than min_reserve
        assert low.item_value == pytest.approx(0.5 * base.item_value)

    def test_invalid_round_id(self, ctx):
        with pytest.raises(ValueError):
            Round(0, ctx, AuctionConfig())
