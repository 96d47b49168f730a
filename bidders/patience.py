"""
Patience model shared by agent and ratchet bidders.

Patience is a scalar in [0, 1] describing how willing a bidder still is to
wait. A decision tick bids only when a uniform draw exceeds it, so falling
patience means more aggressive bidding, and a bidder abandons the round once
patience drops below its private, exponentially distributed threshold.

Curve over normalized time t = elapsed / duration:

    t <  late_start:  patience -= Exponential(early_decay_mean) per recompute
    t >= late_start:  patience  = initial - late_drop * ((t - late_start) / (1 - late_start)) ** exponent

The late branch is a slow-then-fast drop that concentrates abandonment in
the final quarter. Patience never rises through the curve (the late value is
min-combined with the current one); only an explicit confidence boost after
an accepted bid can raise it.
"""

from auction.config import PatienceConfig
from auction.simulation import SimContext


def late_patience(normalized_time: float, params: PatienceConfig) -> float:
    """
    Closed-form late-round patience.

    Args:
        normalized_time: elapsed / duration, expected in [late_start, 1]
        params: Patience parameters

    Returns:
        Patience value clamped to [0, 1]
    """
    span = 1.0 - params.late_start
    progress = min(max((normalized_time - params.late_start) / span, 0.0), 1.0)
    value = params.initial - params.late_drop * progress**params.exponent
    return min(max(value, 0.0), 1.0)


class PatienceModel:
    """
    Per-bidder patience state.

    Attributes:
        value: Current patience in [0, 1]
        threshold: Abandon threshold, sampled once at creation
        min_interval: Minimum virtual time between two recomputations
        last_update: Time of the last recomputation (None before the first)
    """

    def __init__(
        self,
        params: PatienceConfig,
        start_time: float,
        duration: float,
        ctx: SimContext,
    ) -> None:
        self.params = params
        self.start_time = start_time
        self.duration = duration
        self.ctx = ctx

        self.value = params.initial
        self.threshold = ctx.exponential(params.abandon_mean)
        self.min_interval = duration / params.resolution
        self.last_update: float | None = None

    def normalized_time(self, now: float) -> float:
        return min(max((now - self.start_time) / self.duration, 0.0), 1.0)

    def update(self, now: float) -> float:
        """
        Recompute patience at ``now``.

        Skipped when less than ``min_interval`` has passed since the last
        recomputation or when ``now`` is not ahead of it.

        Returns:
            The (possibly unchanged) patience value
        """
        if self.last_update is not None and now - self.last_update < self.min_interval:
            return self.value

        t = self.normalized_time(now)
        if t < self.params.late_start:
            self.value -= self.ctx.exponential(self.params.early_decay_mean)
        else:
            self.value = min(self.value, late_patience(t, self.params))
        self.value = min(max(self.value, 0.0), 1.0)
        self.last_update = now
        return self.value

    @property
    def exhausted(self) -> bool:
        """True once patience has fallen below the abandon threshold."""
        return self.value < self.threshold

    def boost(self, amount: float) -> None:
        """Raise patience after an accepted bid (confidence boost policy)."""
        if amount > 0:
            self.value = min(1.0, self.value + amount)

    def poll_interval(self) -> float:
        """Time until the next decision tick: current patience, floored."""
        return max(self.value, self.params.poll_floor)

    def __repr__(self) -> str:
        return f"PatienceModel(value={self.value:.3f}, threshold={self.threshold:.3f})"
