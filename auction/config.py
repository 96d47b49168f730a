"""
Simulation configuration.

Structured OmegaConf configuration with four groups:

    experiment: run metadata (item count, seed, output and logging)
    auction:    round timing, increment, item value model and bid policies
    population: bidder population size, arrival and valuation model
    bidders:    patience curve and per-strategy timing parameters

Defaults live in the dataclasses below. ``load_config`` layers an optional
YAML file and dotlist overrides (``auction.duration=120``) on top and
validates the result.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from omegaconf import DictConfig, OmegaConf
from omegaconf.errors import OmegaConfBaseException

from auction.errors import ConfigError


@dataclass
class ExperimentConfig:
    name: str = "default"
    num_items: int = 100
    rng_seed: int = 2025
    output_dir: str = "results/default"
    log_level: str = "INFO"
    log_events: bool = False
    log_dir: str = "logs"


@dataclass
class ItemValueConfig:
    """Latent item value and opening price model."""

    scale: float = 100.0  # mean of the exponential latent value
    noise_mean: float = 1.0
    noise_std: float = 0.1
    min_multiplier: float = 0.05  # floor of the noise multiplier
    reserve_mean: float = 0.8  # opening price as a fraction of value
    reserve_std: float = 0.2
    min_reserve: float = 0.05


@dataclass
class AuctionConfig:
    duration: float = 60.0
    cooldown: float = 5.0
    grace_timeout: float = 30.0
    # Fraction of duration; replaces grace_timeout when set
    grace_fraction: Optional[float] = None
    bid_increment: float = 0.02
    # False: a bid needs price + increment < valuation. True: <=
    allow_equal_valuation: bool = False
    item: ItemValueConfig = field(default_factory=ItemValueConfig)

    def grace_window(self) -> float | None:
        """
        Effective first-bid grace window.

        Returns:
            Grace window in time units, or None when it is not shorter than
            the round (the watchdog is then disarmed and settlement alone
            decides the no-bid outcome).
        """
        grace = self.grace_timeout
        if self.grace_fraction is not None:
            grace = self.grace_fraction * self.duration
        if grace >= self.duration:
            return None
        return grace


@dataclass
class StrategyMixConfig:
    agent: float = 0.40
    ratchet: float = 0.25
    sniper: float = 0.35


@dataclass
class PopulationConfig:
    mean_bidders: float = 20.0
    # Bidders arrive within roughly this fraction of the round
    arrival_span: float = 0.5
    mix: StrategyMixConfig = field(default_factory=StrategyMixConfig)
    valuation_mean: float = 1.2
    valuation_std: float = 0.15
    sniper_valuation_std: float = 0.05


@dataclass
class PatienceConfig:
    """Shared patience curve of agent and ratchet bidders."""

    initial: float = 0.99
    early_decay_mean: float = 0.004
    late_start: float = 0.75
    late_drop: float = 0.98
    exponent: float = 5.0
    # Patience is recomputed at most once per duration / resolution
    resolution: int = 100
    abandon_mean: float = 0.1
    poll_floor: float = 0.2
    confidence_boost: float = 0.0


@dataclass
class AgentConfig:
    quiet_fraction: float = 0.75
    quiet_jitter: float = 0.05


@dataclass
class RatchetConfig:
    quiet_fraction: float = 0.25
    quiet_jitter: float = 0.05
    irrational_prob: float = 0.03
    reaction_mean: float = 0.1


@dataclass
class SniperConfig:
    offset_mean: float = 0.35


@dataclass
class BiddersConfig:
    patience: PatienceConfig = field(default_factory=PatienceConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    ratchet: RatchetConfig = field(default_factory=RatchetConfig)
    sniper: SniperConfig = field(default_factory=SniperConfig)


@dataclass
class SimulationConfig:
    experiment: ExperimentConfig = field(default_factory=ExperimentConfig)
    auction: AuctionConfig = field(default_factory=AuctionConfig)
    population: PopulationConfig = field(default_factory=PopulationConfig)
    bidders: BiddersConfig = field(default_factory=BiddersConfig)


# =============================================================================
# LOADING
# =============================================================================


def default_config() -> DictConfig:
    """Structured config holding all defaults."""
    return OmegaConf.structured(SimulationConfig)


def load_config(
    path: str | Path | None = None,
    overrides: Sequence[str] | None = None,
) -> DictConfig:
    """
    Build a validated configuration.

    Args:
        path: Optional YAML file merged over the defaults
        overrides: Optional dotlist entries such as ``auction.duration=120``

    Returns:
        The merged DictConfig (structured over SimulationConfig)

    Raises:
        ConfigError: If the file cannot be read, a key is unknown, a value
            has the wrong type, or a value is out of range
    """
    cfg = default_config()
    try:
        if path is not None:
            cfg = OmegaConf.merge(cfg, OmegaConf.load(path))
        if overrides:
            cfg = OmegaConf.merge(cfg, OmegaConf.from_dotlist(list(overrides)))
    except (OmegaConfBaseException, OSError) as exc:
        raise ConfigError(str(exc)) from exc

    validate_config(to_settings(cfg))
    return cfg


def to_settings(cfg: DictConfig | SimulationConfig) -> SimulationConfig:
    """Convert a DictConfig into plain dataclass instances."""
    if isinstance(cfg, SimulationConfig):
        return cfg
    settings = OmegaConf.to_object(cfg)
    if not isinstance(settings, SimulationConfig):
        raise ConfigError(f"expected a SimulationConfig, got {type(settings).__name__}")
    return settings


def _require(condition: bool, key: str, message: str) -> None:
    if not condition:
        raise ConfigError(f"{key}: {message}")


def validate_config(settings: SimulationConfig) -> None:
    """
    Range-check every value the engine relies on.

    Raises:
        ConfigError: Naming the first offending key
    """
    exp = settings.experiment
    _require(exp.num_items >= 0, "experiment.num_items", f"must be >= 0, got {exp.num_items}")
    _require(
        exp.log_level.upper() in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        "experiment.log_level",
        f"unknown level {exp.log_level!r}",
    )

    auc = settings.auction
    _require(auc.duration > 0, "auction.duration", f"must be > 0, got {auc.duration}")
    _require(auc.cooldown >= 0, "auction.cooldown", f"must be >= 0, got {auc.cooldown}")
    _require(auc.grace_timeout > 0, "auction.grace_timeout", f"must be > 0, got {auc.grace_timeout}")
    if auc.grace_fraction is not None:
        _require(
            auc.grace_fraction > 0,
            "auction.grace_fraction",
            f"must be > 0, got {auc.grace_fraction}",
        )
    _require(
        0 < auc.bid_increment <= 1,
        "auction.bid_increment",
        f"must be in (0, 1], got {auc.bid_increment}",
    )
    item = auc.item
    _require(item.scale > 0, "auction.item.scale", f"must be > 0, got {item.scale}")
    _require(item.noise_std >= 0, "auction.item.noise_std", "must be >= 0")
    _require(item.min_multiplier > 0, "auction.item.min_multiplier", "must be > 0")
    _require(item.reserve_std >= 0, "auction.item.reserve_std", "must be >= 0")
    _require(item.min_reserve > 0, "auction.item.min_reserve", "must be > 0")

    pop = settings.population
    _require(pop.mean_bidders >= 0, "population.mean_bidders", f"must be >= 0, got {pop.mean_bidders}")
    _require(
        0 < pop.arrival_span <= 1,
        "population.arrival_span",
        f"must be in (0, 1], got {pop.arrival_span}",
    )
    weights = (pop.mix.agent, pop.mix.ratchet, pop.mix.sniper)
    _require(all(w >= 0 for w in weights), "population.mix", "weights must be >= 0")
    _require(sum(weights) > 0, "population.mix", "weights must not all be zero")
    _require(pop.valuation_std >= 0, "population.valuation_std", "must be >= 0")
    _require(pop.sniper_valuation_std >= 0, "population.sniper_valuation_std", "must be >= 0")

    pat = settings.bidders.patience
    _require(0 < pat.initial <= 1, "bidders.patience.initial", f"must be in (0, 1], got {pat.initial}")
    _require(0 < pat.late_start < 1, "bidders.patience.late_start", "must be in (0, 1)")
    _require(0 <= pat.late_drop <= pat.initial, "bidders.patience.late_drop", "must be in [0, initial]")
    _require(pat.exponent > 0, "bidders.patience.exponent", "must be > 0")
    _require(pat.resolution >= 1, "bidders.patience.resolution", "must be >= 1")
    _require(pat.early_decay_mean >= 0, "bidders.patience.early_decay_mean", "must be >= 0")
    _require(pat.abandon_mean >= 0, "bidders.patience.abandon_mean", "must be >= 0")
    _require(pat.poll_floor > 0, "bidders.patience.poll_floor", "must be > 0")
    _require(pat.confidence_boost >= 0, "bidders.patience.confidence_boost", "must be >= 0")

    agent = settings.bidders.agent
    ratchet = settings.bidders.ratchet
    _require(0 <= agent.quiet_fraction <= 1, "bidders.agent.quiet_fraction", "must be in [0, 1]")
    _require(0 <= ratchet.quiet_fraction <= 1, "bidders.ratchet.quiet_fraction", "must be in [0, 1]")
    _require(
        0 <= ratchet.irrational_prob <= 1,
        "bidders.ratchet.irrational_prob",
        f"must be in [0, 1], got {ratchet.irrational_prob}",
    )
    _require(ratchet.reaction_mean >= 0, "bidders.ratchet.reaction_mean", "must be >= 0")
    _require(settings.bidders.sniper.offset_mean >= 0, "bidders.sniper.offset_mean", "must be >= 0")
