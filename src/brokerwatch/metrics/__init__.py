"""Counter sampling and exposition text parsing shared by the broker collectors."""

from brokerwatch.metrics.exposition import (
    ExpositionPattern,
    bytes_to_mb,
    extract,
    has_signal,
    identity,
    seconds_to_ms,
)
from brokerwatch.metrics.rate import RateSampler, RateSnapshot

__all__ = [
    "ExpositionPattern",
    "RateSampler",
    "RateSnapshot",
    "bytes_to_mb",
    "extract",
    "has_signal",
    "identity",
    "seconds_to_ms",
]
