"""Exception hierarchy for the auction engine."""


class AuctionError(Exception):
    """Base class for all auction engine errors."""


class ConfigError(AuctionError, ValueError):
    """Raised when a configuration value is missing, malformed or out of range."""


class InvariantViolation(AuctionError, RuntimeError):
    """
    Raised when a round breaks one of its structural guarantees.

    Examples are a round settling without a terminal status while its
    watchdog was armed, a price decrease, or two overlapping arbiter holds.
    These indicate a defect in the engine and are never recovered from.
    """
