"""
Auction Statistics.

The StatisticsCollector is the sink for numbers the round engine produces:
one outcome per round (recorded exactly once) plus that round's bid trace.
It exposes them as pandas DataFrames and builds the end-of-run summary of
wins per strategy, including rounds without a winner.

Win shares carry a 95% Clopper-Pearson interval from scipy's binomial test
so strategy comparisons across runs can be read with their sampling noise.
"""

from collections import Counter
from typing import Iterable

import numpy as np
import pandas as pd
from scipy import stats

from auction.auction_round import BidRecord, RoundOutcome, RoundStatus
from auction.errors import InvariantViolation

NO_WINNER = "none"
WINNER_CATEGORIES = ("agent", "ratchet", "sniper", NO_WINNER)


class StatisticsCollector:
    """
    Records per-round winners and bid traces.

    Attributes:
        outcomes: Recorded outcomes in round order
        winners: Tally of winners, keyed by strategy name or "none"
    """

    def __init__(self) -> None:
        self.outcomes: list[RoundOutcome] = []
        self.winners: Counter[str] = Counter({category: 0 for category in WINNER_CATEGORIES})
        self._bids: list[BidRecord] = []
        self._seen: set[int] = set()

    def record(self, outcome: RoundOutcome, bids: Iterable[BidRecord] = ()) -> None:
        """
        Append one round's outcome and bid trace.

        Raises:
            InvariantViolation: If the round was already recorded or its
                winner does not match its status
        """
        if outcome.round_id in self._seen:
            raise InvariantViolation(f"round {outcome.round_id} recorded twice")
        sold = outcome.status is RoundStatus.SOLD
        if sold != (outcome.winner is not None):
            raise InvariantViolation(
                f"round {outcome.round_id}: status {outcome.status.value} "
                f"with winner {outcome.winner!r}"
            )

        self._seen.add(outcome.round_id)
        self.outcomes.append(outcome)
        self.winners[outcome.winner or NO_WINNER] += 1
        self._bids.extend(bids)

    @property
    def num_rounds(self) -> int:
        return len(self.outcomes)

    def to_dataframe(self) -> pd.DataFrame:
        """Per-round results, one row per round."""
        return pd.DataFrame([outcome.as_row() for outcome in self.outcomes])

    def bids_dataframe(self) -> pd.DataFrame:
        """Bid trace across all rounds."""
        columns = ["round_id", "time", "elapsed", "previous_price", "price", "bidder_id", "strategy"]
        return pd.DataFrame(
            [
                {
                    "round_id": b.round_id,
                    "time": b.time,
                    "elapsed": b.elapsed,
                    "previous_price": b.previous_price,
                    "price": b.price,
                    "bidder_id": b.bidder_id,
                    "strategy": b.strategy,
                }
                for b in self._bids
            ],
            columns=columns,
        )

    def summary(self) -> pd.DataFrame:
        """Win counts per strategy (see ``summarize_wins``)."""
        return summarize_wins(self.to_dataframe())


def win_share_interval(wins: int, total: int, confidence: float = 0.95) -> tuple[float, float]:
    """
    Clopper-Pearson interval for a win share.

    Returns:
        (low, high); (nan, nan) when there are no rounds
    """
    if total <= 0:
        return (float("nan"), float("nan"))
    ci = stats.binomtest(wins, total).proportion_ci(confidence_level=confidence)
    return (float(ci.low), float(ci.high))


def summarize_wins(results: pd.DataFrame) -> pd.DataFrame:
    """
    End-of-run summary.

    Args:
        results: Per-round results as produced by ``StatisticsCollector.to_dataframe``

    Returns:
        One row per winner category (agent, ratchet, sniper, none) with
        columns: winner, wins, share, ci_low, ci_high, mean_price_ratio
    """
    total = len(results)
    rows = []
    for category in WINNER_CATEGORIES:
        if total:
            won = results[results["winner"] == category]
        else:
            won = pd.DataFrame()
        wins = len(won)
        low, high = win_share_interval(wins, total)
        if category != NO_WINNER and wins:
            ratio = float(np.mean(won["price_ratio"]))
        else:
            ratio = float("nan")
        rows.append(
            {
                "winner": category,
                "wins": wins,
                "share": wins / total if total else 0.0,
                "ci_low": low,
                "ci_high": high,
                "mean_price_ratio": ratio,
            }
        )
    return pd.DataFrame(rows)
