# tests/conftest.py
"""Minimal shared fixtures for test suite."""

import numpy as np
import pytest

from auction.arbiter import BiddingArbiter
from auction.auction_round import Round
from auction.config import AuctionConfig, BiddersConfig, PopulationConfig
from auction.population import PopulationGenerator
from auction.simulation import SimContext


@pytest.fixture
def seed():
    """Fixed seed for reproducibility."""
    return 42


@pytest.fixture
def rng(seed):
    """Numpy random generator with fixed seed."""
    return np.random.default_rng(seed)


@pytest.fixture
def ctx(seed):
    """Fresh simulation context (clock at 0) with fixed seed."""
    return SimContext(seed=seed)


@pytest.fixture
def arbiter(ctx):
    return BiddingArbiter(ctx)


@pytest.fixture
def population(ctx, arbiter):
    """Population generator with default bidder parameters."""
    return PopulationGenerator(ctx, arbiter, PopulationConfig(), BiddersConfig())


def _make_round(
    ctx: SimContext,
    round_id: int = 1,
    duration: float = 60.0,
    starting_price: float = 100.0,
    item_value: float = 100.0,
    **auction_kwargs,
) -> Round:
    """Round with fixed price and value (no sampling)."""
    config = AuctionConfig(duration=duration, **auction_kwargs)
    return Round(
        round_id,
        ctx,
        config,
        item_value=item_value,
        starting_price=starting_price,
    )


@pytest.fixture
def make_round(ctx):
    """Factory for rounds bound to the test context."""

    def factory(**kwargs) -> Round:
        return _make_round(ctx, **kwargs)

    return factory
