"""
Error classes for aggregate_counter.
"""


class AggregateCounterError(Exception):
    """Base error for aggregate counter operations."""
    pass


class InvalidName(AggregateCounterError, ValueError):
    """Empty or malformed counter name."""
    pass


class InvalidIncrement(AggregateCounterError, ValueError):
    """Negative, non-finite or otherwise unusable increment amount."""
    pass


class InvalidWindow(AggregateCounterError, ValueError):
    """Non-positive bucket count or a window outside the calendar range."""
    pass


class InvalidTimestamp(AggregateCounterError, ValueError):
    """Event timestamp whose buckets fall outside the representable calendar range."""
    pass


class StorageUnavailable(AggregateCounterError):
    """Backing storage unreachable or failed at transport level."""
    pass


class InvalidEvent(AggregateCounterError):
    """Inbound event could not be turned into (name, amount, timestamp)."""
    pass


class ConfigError(AggregateCounterError):
    """Configuration error."""
    pass
