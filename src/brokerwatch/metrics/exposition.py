"""
Prometheus exposition text scraping.

Brokers publish loosely structured metrics text whose metric names vary by
version and exporter. Each signal is described as an ordered chain of
``ExpositionPattern`` entries; the first pattern that yields a finite number
wins. Adding a metric name means adding a pattern, not a branch.

``extract`` returns ``math.nan`` when nothing matches. Callers must keep NaN
("no signal") distinct from a genuine zero reading.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Callable, Sequence

BYTES_PER_MB = 1024 * 1024

# Values above this are taken to be milliseconds already.
SECONDS_MAGNITUDE_CEILING = 10.0

_NUMBER = r"([0-9]+(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?)"
_LABELS = r"(?:\{[^}]*\})?"
_P99_LABELS = r'\{[^}]*quantile="0\.99"[^}]*\}'
_FLAGS = re.IGNORECASE | re.MULTILINE


def identity(value: float) -> float:
    return value


def bytes_to_mb(value: float) -> float:
    return value / BYTES_PER_MB


def seconds_to_ms(value: float) -> float:
    """Convert a latency that looks like seconds into milliseconds."""
    if value > SECONDS_MAGNITUDE_CEILING:
        return value
    return value * 1000


@dataclass(frozen=True)
class ExpositionPattern:
    regex: re.Pattern[str]
    normalize: Callable[[float], float] = identity

    @classmethod
    def compile(
        cls, pattern: str, normalize: Callable[[float], float] = identity
    ) -> "ExpositionPattern":
        return cls(re.compile(pattern, _FLAGS), normalize)


def extract(text: str, patterns: Sequence[ExpositionPattern]) -> float:
    """Return the first matching value from ``patterns`` or NaN."""
    if not text:
        return math.nan
    for pattern in patterns:
        match = pattern.regex.search(text)
        if not match:
            continue
        try:
            value = float(match.group(1))
        except (TypeError, ValueError):
            continue
        if math.isfinite(value):
            return pattern.normalize(value)
    return math.nan


def has_signal(value: float, floor: float = 0.0) -> bool:
    """True when ``value`` is a finite reading strictly above ``floor``."""
    return math.isfinite(value) and value > floor


PULSAR_THROUGHPUT: tuple[ExpositionPattern, ...] = (
    ExpositionPattern.compile(rf"^pulsar_publish_rate{_LABELS}\s+{_NUMBER}"),
    ExpositionPattern.compile(rf"^pulsar_rate_in{_LABELS}\s+{_NUMBER}"),
    ExpositionPattern.compile(rf"^pulsar_broker_rate_in{_LABELS}\s+{_NUMBER}"),
)

PULSAR_P99_LATENCY: tuple[ExpositionPattern, ...] = (
    ExpositionPattern.compile(rf"^pulsar_publish_latency\w*{_P99_LABELS}\s+{_NUMBER}"),
    ExpositionPattern.compile(rf"^pulsar_publish_latency\w*_p99{_LABELS}\s+{_NUMBER}"),
    ExpositionPattern.compile(
        rf"^pulsar_\w*latency\w*_seconds{_P99_LABELS}\s+{_NUMBER}", seconds_to_ms
    ),
    ExpositionPattern.compile(rf"^pulsar_\w*latency\w*{_P99_LABELS}\s+{_NUMBER}"),
)

PULSAR_MEMORY: tuple[ExpositionPattern, ...] = (
    ExpositionPattern.compile(rf"^process_resident_memory_bytes{_LABELS}\s+{_NUMBER}", bytes_to_mb),
    ExpositionPattern.compile(
        rf'^jvm_memory_bytes_used\{{[^}}]*area="heap"[^}}]*\}}\s+{_NUMBER}', bytes_to_mb
    ),
    ExpositionPattern.compile(rf"^jvm_memory_bytes_used{_LABELS}\s+{_NUMBER}", bytes_to_mb),
)

RABBITMQ_P99_LATENCY: tuple[ExpositionPattern, ...] = (
    ExpositionPattern.compile(
        rf"^rabbitmq_\w*latency\w*_seconds{_P99_LABELS}\s+{_NUMBER}", seconds_to_ms
    ),
    ExpositionPattern.compile(rf"^rabbitmq_\w*latency\w*{_P99_LABELS}\s+{_NUMBER}", seconds_to_ms),
    ExpositionPattern.compile(rf"^rabbitmq_\w*latency\w*_p99{_LABELS}\s+{_NUMBER}", seconds_to_ms),
)

KAFKA_P99_LATENCY: tuple[ExpositionPattern, ...] = (
    ExpositionPattern.compile(
        rf'^kafka_network_request_?metrics_total_?time_?ms\{{[^}}]*request="Produce"[^}}]*'
        rf'quantile="0\.99"[^}}]*\}}\s+{_NUMBER}'
    ),
    ExpositionPattern.compile(
        rf"^kafka_network_request_?metrics_total_?time_?ms{_P99_LABELS}\s+{_NUMBER}"
    ),
    ExpositionPattern.compile(
        rf"^kafka_\w*latency\w*_seconds{_P99_LABELS}\s+{_NUMBER}", seconds_to_ms
    ),
    ExpositionPattern.compile(rf"^kafka_\w*latency\w*{_P99_LABELS}\s+{_NUMBER}", seconds_to_ms),
)
