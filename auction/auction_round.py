"""
One auction round (a single item).

State machine:

    INITIALIZING -> OPEN -> SOLD
                         -> DISCARDED

On entry the round samples the item's latent value (exponential, scaled by a
noisy multiplier) and opens the price below it (value * Normal(0.8, 0.2)).
It then spawns the population generator and, when the grace window is
shorter than the round, the first-bid watchdog, and suspends until its end
time. The watchdog may interrupt that wait to force a discard.

Settlement happens exactly once: SOLD with the leader's strategy as winner
if any bid was accepted, DISCARDED with no winner otherwise. All remaining
bidder, generator and watchdog processes are then cancelled.

The round owns the only shared mutable auction state (current price, leader,
status). Bidders read it; only the arbiter writes it, through ``record_bid``.
Bidders are tracked by id in a registry so the round can cancel them at
settlement without bidders owning the round's lifetime.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Generator, Sequence

import simpy

from auction.config import AuctionConfig
from auction.errors import InvariantViolation
from auction.simulation import SimContext
from auction.watchdog import FirstBidWatchdog

if TYPE_CHECKING:
    from auction.event_logger import EventLogger
    from auction.population import PopulationGenerator
    from bidders.base import Bidder, Strategy

logger = logging.getLogger(__name__)


class RoundStatus(str, Enum):
    INITIALIZING = "initializing"
    OPEN = "open"
    SOLD = "sold"
    DISCARDED = "discarded"


TERMINAL_STATUSES = frozenset({RoundStatus.SOLD, RoundStatus.DISCARDED})


@dataclass(frozen=True)
class BidRecord:
    """One accepted bid (bid log entry)."""

    round_id: int
    time: float
    elapsed: float
    previous_price: float
    price: float
    bidder_id: int
    strategy: str


@dataclass
class RoundOutcome:
    """Per-round result handed to the statistics collector."""

    round_id: int
    start_time: float
    end_time: float
    closed_at: float
    status: RoundStatus
    winner: str | None
    item_value: float
    starting_price: float
    final_price: float
    num_bids: int
    num_bidders: int
    bidders_by_strategy: dict[str, int] = field(default_factory=dict)
    first_bid_elapsed: float | None = None
    discarded_by_watchdog: bool = False

    def as_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {
            "round": self.round_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "closed_at": self.closed_at,
            "status": self.status.value,
            "winner": self.winner if self.winner is not None else "none",
            "item_value": self.item_value,
            "starting_price": self.starting_price,
            "final_price": self.final_price,
            "price_ratio": self.final_price / self.item_value if self.item_value > 0 else 0.0,
            "num_bids": self.num_bids,
            "num_bidders": self.num_bidders,
            "first_bid_elapsed": self.first_bid_elapsed,
            "discarded_by_watchdog": self.discarded_by_watchdog,
        }
        for strategy, count in self.bidders_by_strategy.items():
            row[f"num_{strategy}"] = count
        return row


class Round:
    """
    A single fixed-duration ascending auction.

    Attributes:
        round_id: Identifier (1-indexed within a run)
        start_time: Virtual time the round was created
        end_time: Scheduled close (start_time + duration)
        item_value: Latent "real" value of the item
        starting_price: Opening price
        current_price: Highest accepted price so far
        status: Current RoundStatus
        leader: Bidder holding the highest accepted bid (None before any bid)
        bids: Accepted bids in order
        first_bid: Event triggered by the first accepted bid
        price_changed: Event triggered (and replaced) on every accepted bid
    """

    def __init__(
        self,
        round_id: int,
        ctx: SimContext,
        config: AuctionConfig,
        item_value: float | None = None,
        starting_price: float | None = None,
        event_logger: "EventLogger | None" = None,
    ) -> None:
        if round_id < 1:
            raise ValueError(f"round_id must be >= 1, got {round_id}")

        self.round_id = round_id
        self.ctx = ctx
        self.config = config
        self.event_logger = event_logger

        self.duration = config.duration
        self.increment = config.bid_increment
        self.start_time = ctx.now
        self.end_time = self.start_time + self.duration

        self.item_value = item_value if item_value is not None else self._sample_item_value()
        if starting_price is None:
            starting_price = self._sample_starting_price(self.item_value)
        if starting_price <= 0:
            raise ValueError(f"starting_price must be > 0, got {starting_price}")
        self.starting_price = starting_price
        self.current_price = starting_price

        self.status = RoundStatus.INITIALIZING
        self.leader: "Bidder | None" = None
        self.bids: list[BidRecord] = []
        self.first_bid = ctx.env.event()
        self.price_changed = ctx.env.event()

        self.process: simpy.Process | None = None
        self.watchdog: FirstBidWatchdog | None = None
        self.discarded_by_watchdog = False
        self.closed_at: float | None = None
        self.outcome: RoundOutcome | None = None

        self._bidders: dict[int, "Bidder"] = {}
        self._processes: dict[int, simpy.Process] = {}
        self._spawner: simpy.Process | None = None
        self._watchdog_process: simpy.Process | None = None

    # =========================================================================
    # SAMPLING
    # =========================================================================

    def _sample_item_value(self) -> float:
        item = self.config.item
        multiplier = max(self.ctx.normal(item.noise_mean, item.noise_std), item.min_multiplier)
        value = self.ctx.exponential(item.scale) * multiplier
        return max(value, item.scale * 1e-6)

    def _sample_starting_price(self, value: float) -> float:
        item = self.config.item
        fraction = max(self.ctx.normal(item.reserve_mean, item.reserve_std), item.min_reserve)
        return value * fraction

    # =========================================================================
    # SHARED STATE (read by bidders, written through the arbiter)
    # =========================================================================

    def is_open(self, now: float | None = None) -> bool:
        """True while bids may still be accepted."""
        if now is None:
            now = self.ctx.now
        return self.status is RoundStatus.OPEN and now < self.end_time

    @property
    def is_settled(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def has_bids(self) -> bool:
        return bool(self.bids)

    @property
    def winner(self) -> "Strategy | None":
        """Winning strategy; set if and only if the round is SOLD."""
        if self.status is RoundStatus.SOLD and self.leader is not None:
            return self.leader.strategy
        return None

    def elapsed(self, now: float | None = None) -> float:
        if now is None:
            now = self.ctx.now
        return now - self.start_time

    def next_price(self) -> float:
        """Price after one more increment."""
        return self.current_price * (1.0 + self.increment)

    def record_bid(self, bidder: "Bidder", new_price: float) -> BidRecord:
        """
        Apply one accepted bid. Called by the arbiter while it is held.

        Raises:
            InvariantViolation: If the round is not open or the price would
                not increase
        """
        now = self.ctx.now
        if not self.is_open(now):
            raise InvariantViolation(
                f"round {self.round_id} is {self.status.value}; bid by {bidder.bidder_id} rejected"
            )
        if new_price <= self.current_price:
            raise InvariantViolation(
                f"round {self.round_id}: price must increase "
                f"({self.current_price:.4f} -> {new_price:.4f})"
            )

        record = BidRecord(
            round_id=self.round_id,
            time=now,
            elapsed=now - self.start_time,
            previous_price=self.current_price,
            price=new_price,
            bidder_id=bidder.bidder_id,
            strategy=bidder.strategy.value,
        )
        if self.leader is not None:
            self.leader.leading = False
        self.leader = bidder
        bidder.leading = True
        self.current_price = new_price
        self.bids.append(record)

        if not self.first_bid.triggered:
            self.first_bid.succeed(record)
        signal, self.price_changed = self.price_changed, self.ctx.env.event()
        signal.succeed(record)

        if self.event_logger is not None:
            self.event_logger.log_bid(
                round_id=self.round_id,
                elapsed=record.elapsed,
                price=new_price,
                bidder_id=bidder.bidder_id,
                strategy=record.strategy,
            )
        logger.debug(
            "Round %d: bidder %d (%s) bid %.2f at %.3f",
            self.round_id,
            bidder.bidder_id,
            record.strategy,
            new_price,
            record.elapsed,
        )
        return record

    # =========================================================================
    # BIDDER REGISTRY
    # =========================================================================

    def register(self, bidder: "Bidder", process: simpy.Process) -> None:
        if bidder.bidder_id in self._bidders:
            raise ValueError(f"bidder {bidder.bidder_id} already registered in round {self.round_id}")
        self._bidders[bidder.bidder_id] = bidder
        self._processes[bidder.bidder_id] = process

    def bidder(self, bidder_id: int) -> "Bidder":
        """Look up a registered bidder by id."""
        return self._bidders[bidder_id]

    @property
    def bidders(self) -> list["Bidder"]:
        return list(self._bidders.values())

    def live_bidders(self) -> list["Bidder"]:
        return [b for b in self._bidders.values() if not b.terminated]

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(
        self,
        population: "PopulationGenerator",
        roster: Sequence[tuple["Strategy", float]] | None = None,
    ) -> Generator[simpy.Event, object, RoundOutcome]:
        """
        Round process body.

        Args:
            population: Generator spawning this round's bidders
            roster: Optional fixed (strategy, valuation) list replacing the
                sampled population

        Returns:
            The settled RoundOutcome
        """
        env = self.ctx.env
        if self.status is not RoundStatus.INITIALIZING:
            raise InvariantViolation(f"round {self.round_id} already ran ({self.status.value})")

        self.process = env.active_process
        self.status = RoundStatus.OPEN
        logger.info(
            "Round %d open at %.2f: value %.2f, starting price %.2f",
            self.round_id,
            self.start_time,
            self.item_value,
            self.starting_price,
        )
        if self.event_logger is not None:
            self.event_logger.log_round_start(
                round_id=self.round_id,
                start_time=self.start_time,
                end_time=self.end_time,
                item_value=self.item_value,
                starting_price=self.starting_price,
            )

        self._spawner = env.process(population.populate(self, roster=roster))
        grace = self.config.grace_window()
        if grace is not None:
            self.watchdog = FirstBidWatchdog(self, grace)
            self._watchdog_process = env.process(self.watchdog.run())

        try:
            yield env.timeout(self.end_time - env.now)
        except simpy.Interrupt:
            # Forced discard; the remaining wait is cancelled
            pass

        return self.settle()

    def force_discard(self) -> bool:
        """
        Discard an open round without bids (watchdog expiry).

        Idempotent: returns False and changes nothing if the round already
        has a bid or a terminal status.
        """
        if self.status is not RoundStatus.OPEN or self.has_bids:
            return False
        self.status = RoundStatus.DISCARDED
        self.discarded_by_watchdog = True
        logger.info("Round %d discarded: no bid within grace window", self.round_id)

        process = self.process
        if process is not None and process.is_alive and process is not self.ctx.env.active_process:
            process.interrupt("discarded")
        return True

    def settle(self) -> RoundOutcome:
        """
        Assign the terminal status, cancel remaining processes and build the
        outcome. Runs exactly once.

        Raises:
            InvariantViolation: If called twice, or if an armed watchdog
                left a bid-less round open until its end time
        """
        if self.outcome is not None:
            raise InvariantViolation(f"round {self.round_id} settled twice")

        if self.status is RoundStatus.OPEN:
            if self.has_bids:
                self.status = RoundStatus.SOLD
            elif self.watchdog is not None:
                raise InvariantViolation(
                    f"round {self.round_id} reached its end with no bid and no "
                    f"discard although the watchdog was armed"
                )
            else:
                self.status = RoundStatus.DISCARDED
        elif self.status is not RoundStatus.DISCARDED:
            raise InvariantViolation(
                f"round {self.round_id} cannot settle from status {self.status.value}"
            )

        self.closed_at = self.ctx.now
        self._cancel_processes()

        counts = Counter(b.strategy.value for b in self._bidders.values())
        winner = self.winner
        self.outcome = RoundOutcome(
            round_id=self.round_id,
            start_time=self.start_time,
            end_time=self.end_time,
            closed_at=self.closed_at,
            status=self.status,
            winner=winner.value if winner is not None else None,
            item_value=self.item_value,
            starting_price=self.starting_price,
            final_price=self.current_price,
            num_bids=len(self.bids),
            num_bidders=len(self._bidders),
            bidders_by_strategy=dict(counts),
            first_bid_elapsed=self.bids[0].elapsed if self.bids else None,
            discarded_by_watchdog=self.discarded_by_watchdog,
        )

        if self.event_logger is not None:
            self.event_logger.log_round_end(
                round_id=self.round_id,
                elapsed=self.closed_at - self.start_time,
                status=self.status.value,
                winner=self.outcome.winner,
                final_price=self.current_price,
                num_bids=len(self.bids),
            )
        logger.info(
            "Round %d %s: winner=%s price=%.2f bids=%d bidders=%d",
            self.round_id,
            self.status.value,
            self.outcome.winner or "none",
            self.current_price,
            len(self.bids),
            len(self._bidders),
        )
        return self.outcome

    def _cancel_processes(self) -> None:
        active = self.ctx.env.active_process
        handles = list(self._processes.values())
        handles.extend(p for p in (self._spawner, self._watchdog_process) if p is not None)
        for process in handles:
            if process.is_alive and process is not active:
                process.interrupt("round closed")

    def __repr__(self) -> str:
        return (
            f"Round(id={self.round_id}, status={self.status.value}, "
            f"price={self.current_price:.2f}, bids={len(self.bids)})"
        )
