"""
Auction Orchestrator.

Runs rounds back-to-back with a cooldown between them until the configured
number of items has been auctioned.
"""

import logging
from pathlib import Path
from typing import Callable, Generator

import pandas as pd
import simpy
from omegaconf import DictConfig

from auction.arbiter import BiddingArbiter
from auction.auction_round import Round, RoundOutcome
from auction.config import SimulationConfig, to_settings, validate_config
from auction.event_logger import EventLogger
from auction.metrics import StatisticsCollector
from auction.population import PopulationGenerator
from auction.simulation import SimContext


class AuctionOrchestrator:
    """
    Manages the execution of a sequence of rounds.

    Rounds are strictly sequential: a round is created only after the
    previous one settled and the cooldown elapsed, so no two rounds overlap
    in time or share price state. The arbiter and the population generator
    persist across rounds.
    """

    def __init__(
        self,
        config: DictConfig | SimulationConfig,
        round_observer: Callable[[Round], None] | None = None,
    ):
        self.config = config
        self.settings = to_settings(config)
        validate_config(self.settings)
        self.logger = logging.getLogger(__name__)
        self.round_observer = round_observer

        exp = self.settings.experiment
        self.ctx = SimContext(seed=exp.rng_seed)
        self.arbiter = BiddingArbiter(self.ctx)
        self.population = PopulationGenerator(
            self.ctx,
            self.arbiter,
            population=self.settings.population,
            bidders=self.settings.bidders,
            allow_equal_valuation=self.settings.auction.allow_equal_valuation,
        )
        self.stats = StatisticsCollector()
        self.rounds_completed = 0

        if self.settings.auction.grace_window() is None:
            self.logger.warning(
                f"Grace window {self.settings.auction.grace_timeout} is not shorter than the "
                f"round ({self.settings.auction.duration}); first-bid watchdog disarmed"
            )

        # Bid log (optional)
        self.event_logger: EventLogger | None = None
        if exp.log_events:
            event_log_path = Path(exp.log_dir) / f"{exp.name}_events.jsonl"
            self.event_logger = EventLogger(event_log_path)
            self.logger.info(f"Event logging enabled: {event_log_path}")

    def run(self) -> pd.DataFrame:
        """Run all rounds and return the per-round results."""
        num_items = self.settings.experiment.num_items
        self.logger.info(
            f"Running {num_items} rounds: duration {self.settings.auction.duration}, "
            f"mean bidders {self.settings.population.mean_bidders}"
        )
        try:
            schedule = self.ctx.env.process(self.schedule(num_items))
            self.ctx.env.run(until=schedule)
        finally:
            if self.event_logger is not None:
                self.event_logger.close()
                self.logger.info("Event log saved")

        self.logger.info(f"Completed {self.rounds_completed} rounds at t={self.ctx.now:.2f}")
        for category, wins in self.stats.winners.items():
            self.logger.info(f"  {category}: {wins} wins")
        return self.stats.to_dataframe()

    def schedule(self, num_items: int) -> Generator[simpy.Event, object, int]:
        """Process body: run ``num_items`` rounds with cooldowns in between."""
        cooldown = self.settings.auction.cooldown
        while self.rounds_completed < num_items:
            yield from self.run_round(self.rounds_completed + 1)
            if self.rounds_completed < num_items and cooldown > 0:
                yield self.ctx.env.timeout(cooldown)
        return self.rounds_completed

    def run_round(self, round_id: int) -> Generator[simpy.Event, object, RoundOutcome]:
        """Create one round, run it to settlement and record its outcome."""
        auction_round = Round(
            round_id,
            self.ctx,
            self.settings.auction,
            event_logger=self.event_logger,
        )
        outcome = yield self.ctx.env.process(auction_round.run(self.population))

        self.stats.record(outcome, auction_round.bids)
        self.rounds_completed += 1
        if self.round_observer is not None:
            self.round_observer(auction_round)
        return outcome

    def summary(self) -> pd.DataFrame:
        """Wins per strategy for the rounds run so far."""
        return self.stats.summary()
