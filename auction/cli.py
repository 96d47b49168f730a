"""
Command-line entry point.

Usage:
    auction-sim --items 200 --bidders 25 --duration 60 --grace-timeout 20
    auction-sim --config conf/config.yaml auction.bid_increment=0.01

Flags map onto configuration keys; remaining positional arguments are
OmegaConf dotlist overrides. Malformed flags print usage and exit with
status 2; out-of-range configuration prints usage and exits with status 1.
Both happen before any simulation starts.
"""

import argparse
import logging
import os
import sys
from typing import Sequence

from omegaconf import OmegaConf

from auction.config import load_config, to_settings
from auction.errors import ConfigError
from auction.metrics import summarize_wins
from auction.orchestrator import AuctionOrchestrator

LOG_FORMAT = "[%(asctime)s][%(name)s][%(levelname)s] - %(message)s"


def non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from None
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number, got {value!r}") from None
    if not number > 0:
        raise argparse.ArgumentTypeError(f"must be > 0, got {value}")
    return number


def non_negative_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number, got {value!r}") from None
    if not number >= 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="auction-sim",
        description="Simulate ascending auctions contested by agent, ratchet and sniper bidders.",
    )
    parser.add_argument("--items", type=non_negative_int, help="number of rounds (items) to auction")
    parser.add_argument("--bidders", type=non_negative_float, help="mean bidder population per round")
    parser.add_argument("--duration", type=positive_float, help="round duration in time units")
    parser.add_argument("--grace-timeout", type=positive_float, help="first-bid grace window")
    parser.add_argument("--cooldown", type=non_negative_float, help="pause between rounds")
    parser.add_argument("--seed", type=int, help="random seed")
    parser.add_argument("--config", help="YAML file merged over the defaults")
    parser.add_argument("--output", help="directory for results.csv and summary.csv")
    parser.add_argument("--log-events", action="store_true", help="write the JSONL bid log")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="logging level",
    )
    parser.add_argument("overrides", nargs="*", help="dotlist overrides, e.g. auction.bid_increment=0.01")
    return parser


def collect_overrides(args: argparse.Namespace) -> list[str]:
    """Translate flags into dotlist overrides (flags win over positional ones)."""
    overrides = list(args.overrides)
    flag_keys = {
        "items": "experiment.num_items",
        "bidders": "population.mean_bidders",
        "duration": "auction.duration",
        "grace_timeout": "auction.grace_timeout",
        "cooldown": "auction.cooldown",
        "seed": "experiment.rng_seed",
        "output": "experiment.output_dir",
        "log_level": "experiment.log_level",
    }
    for attr, key in flag_keys.items():
        value = getattr(args, attr)
        if value is not None:
            overrides.append(f"{key}={value}")
    if args.log_events:
        overrides.append("experiment.log_events=true")
    return overrides


def configure_logging(level_name: str) -> None:
    log_level = getattr(logging, level_name.upper())
    logging.getLogger().setLevel(log_level)
    logging.getLogger("auction").setLevel(log_level)
    logging.getLogger("bidders").setLevel(log_level)
    if not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        cfg = load_config(args.config, overrides=collect_overrides(args))
    except ConfigError as exc:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {exc}", file=sys.stderr)
        return 1

    settings = to_settings(cfg)
    configure_logging(settings.experiment.log_level)
    logging.info(f"Running experiment: {settings.experiment.name}")
    logging.debug("Configuration:\n" + OmegaConf.to_yaml(cfg))

    orchestrator = AuctionOrchestrator(cfg)
    results = orchestrator.run()
    summary = summarize_wins(results)

    output_dir = settings.experiment.output_dir
    os.makedirs(output_dir, exist_ok=True)
    results.to_csv(os.path.join(output_dir, "results.csv"), index=False)
    summary.to_csv(os.path.join(output_dir, "summary.csv"), index=False)

    logging.info(f"Results saved to {output_dir}")
    logging.info("Wins by strategy:")
    print(summary.to_string(index=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
