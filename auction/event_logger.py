"""
Event Logger for the append-only bid log.

Writes one JSON line per accepted bid (round id, elapsed time within the
round, new price) plus round start/end markers, for post-hoc analysis of
bidding timing and price paths.
"""

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import TextIO


@dataclass
class BidEvent:
    """An accepted bid."""

    round_id: int
    elapsed: float
    price: float
    bidder_id: int
    strategy: str


@dataclass
class RoundStartEvent:
    """Round opening with its latent value and opening price."""

    round_id: int
    start_time: float
    end_time: float
    item_value: float
    starting_price: float


@dataclass
class RoundEndEvent:
    """Round settlement."""

    round_id: int
    elapsed: float
    status: str  # "sold", "discarded"
    winner: str | None
    final_price: float
    num_bids: int


class EventLogger:
    """
    Logs auction events to JSONL format.

    Usage:
        logger = EventLogger(Path("logs/exp_events.jsonl"))
        logger.log_bid(round_id=1, elapsed=41.7, price=102.0,
                       bidder_id=3, strategy="agent")
        logger.close()
    """

    def __init__(self, output_path: Path, append: bool = False):
        """
        Initialize the event logger.

        Args:
            output_path: Path to write JSONL file
            append: Append to an existing log instead of truncating it
        """
        self.output_path = Path(output_path)
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self._file: TextIO | None = None
        self.events_written = 0
        self._open(append)

    def _open(self, append: bool) -> None:
        """Open the output file for writing."""
        self._file = open(self.output_path, "a" if append else "w")

    def log_bid(
        self,
        round_id: int,
        elapsed: float,
        price: float,
        bidder_id: int,
        strategy: str,
    ) -> None:
        """Log an accepted bid."""
        event = BidEvent(
            round_id=round_id,
            elapsed=elapsed,
            price=price,
            bidder_id=bidder_id,
            strategy=strategy,
        )
        self._write_event(event)

    def log_round_start(
        self,
        round_id: int,
        start_time: float,
        end_time: float,
        item_value: float,
        starting_price: float,
    ) -> None:
        """Log a round opening."""
        event = RoundStartEvent(
            round_id=round_id,
            start_time=start_time,
            end_time=end_time,
            item_value=item_value,
            starting_price=starting_price,
        )
        self._write_event(event)

    def log_round_end(
        self,
        round_id: int,
        elapsed: float,
        status: str,
        winner: str | None,
        final_price: float,
        num_bids: int,
    ) -> None:
        """Log a round settlement."""
        event = RoundEndEvent(
            round_id=round_id,
            elapsed=elapsed,
            status=status,
            winner=winner,
            final_price=final_price,
            num_bids=num_bids,
        )
        self._write_event(event)

    def _write_event(self, event: BidEvent | RoundStartEvent | RoundEndEvent) -> None:
        """Write an event to the JSONL file."""
        if self._file is None:
            return

        data = asdict(event)
        if isinstance(event, RoundStartEvent):
            data["event_type"] = "round_start"
        elif isinstance(event, RoundEndEvent):
            data["event_type"] = "round_end"
        else:
            data["event_type"] = "bid"
        self._file.write(json.dumps(data) + "\n")
        self.events_written += 1

    def flush(self) -> None:
        """Flush the output buffer."""
        if self._file:
            self._file.flush()

    def close(self) -> None:
        """Close the output file."""
        if self._file:
            self._file.close()
            self._file = None

    def __enter__(self) -> "EventLogger":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def load_events(log_path: Path, event_type: str | None = None) -> list[dict[str, object]]:
    """
    Load events from a JSONL file.

    Args:
        log_path: Path to the JSONL file
        event_type: Only return events of this type ("bid", "round_start",
            "round_end") when given

    Returns:
        List of event dictionaries
    """
    events = []
    with open(log_path) as f:
        for line in f:
            if line.strip():
                event = json.loads(line)
                if event_type is None or event.get("event_type") == event_type:
                    events.append(event)
    return events
