"""
Cross-broker comparison.

Deltas are only emitted when both sides are connected, the baseline is a
usable non-zero number and, in measured-only mode, both fields are tagged
``measured``. Every omitted delta leaves a reason behind.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping

from brokerwatch.domain.models import (
    BrokerMetricsSample,
    BrokerName,
    ComparisonDeltas,
    ComparisonReport,
    DataQuality,
    DataSource,
)

BASELINE_EPSILON = 1e-9


@dataclass(frozen=True)
class ComparedMetric:
    field: str
    delta_attr: str
    label: str


COMPARED_METRICS: tuple[ComparedMetric, ...] = (
    ComparedMetric("messages_per_second", "throughput_improvement", "Throughput"),
    ComparedMetric("p99_latency_ms", "latency_improvement", "Latency"),
    ComparedMetric("memory_usage_mb", "memory_efficiency", "Memory"),
)


def format_delta(baseline: float, candidate: float) -> str:
    delta = (candidate - baseline) / baseline * 100
    return f"{'+' if delta >= 0 else ''}{delta:.1f}%"


def _usable(value: float | int | None) -> bool:
    return value is not None and math.isfinite(value)


class ComparisonEngine:
    """Builds a ``ComparisonReport`` from one cycle's samples."""

    def __init__(
        self,
        baseline: BrokerName = BrokerName.rabbitmq,
        candidate: BrokerName = BrokerName.pulsar,
        *,
        measured_only: bool = True,
    ) -> None:
        self.baseline = BrokerName(baseline)
        self.candidate = BrokerName(candidate)
        self.measured_only = measured_only

    def build_report(
        self,
        samples: Mapping[BrokerName, BrokerMetricsSample],
        timestamp: datetime | None = None,
    ) -> ComparisonReport:
        deltas, reasons = self.compare(samples)
        return ComparisonReport(
            timestamp=timestamp or datetime.now(timezone.utc),
            brokers=dict(samples),
            comparison=deltas,
            suppressed_reasons=reasons,
            data_quality=summarize_quality(samples),
        )

    def compare(
        self, samples: Mapping[BrokerName, BrokerMetricsSample]
    ) -> tuple[ComparisonDeltas, list[str]]:
        deltas = ComparisonDeltas()
        reasons: list[str] = []
        base = samples.get(self.baseline)
        cand = samples.get(self.candidate)

        for metric in COMPARED_METRICS:
            reason = self._presence_reason(base, cand)
            if reason is None and base is not None and cand is not None:
                reason = self._value_reason(metric, base, cand)
                if reason is None:
                    setattr(
                        deltas,
                        metric.delta_attr,
                        format_delta(getattr(base, metric.field), getattr(cand, metric.field)),
                    )
                    continue
            reasons.append(f"{metric.label} delta suppressed: {reason}.")
        return deltas, reasons

    def _presence_reason(
        self, base: BrokerMetricsSample | None, cand: BrokerMetricsSample | None
    ) -> str | None:
        for name, sample in ((self.baseline, base), (self.candidate, cand)):
            if sample is None:
                return f"{name} not collected"
            if not sample.connected:
                return f"{name} disconnected"
        return None

    def _value_reason(
        self, metric: ComparedMetric, base: BrokerMetricsSample, cand: BrokerMetricsSample
    ) -> str | None:
        if self.measured_only:
            for name, sample in ((self.baseline, base), (self.candidate, cand)):
                quality = sample.quality_of(metric.field)
                if quality != DataSource.measured:
                    return (
                        f"{name} {metric.field} is {quality} "
                        "(requires measured data on both brokers)"
                    )

        baseline_value = getattr(base, metric.field)
        if not _usable(baseline_value) or abs(baseline_value) <= BASELINE_EPSILON:
            return f"{self.baseline} baseline {metric.field} is zero or unavailable"
        if not _usable(getattr(cand, metric.field)):
            return f"{self.candidate} {metric.field} is unavailable"
        return None


def summarize_quality(samples: Mapping[BrokerName, BrokerMetricsSample]) -> DataQuality:
    measured = [
        name
        for name, s in samples.items()
        if s.connected and (s.data_source or DataSource.missing) == DataSource.measured
    ]
    fallback = [
        name
        for name, s in samples.items()
        if s.connected and (s.data_source or DataSource.missing) == DataSource.fallback
    ]
    unmeasured = [
        name for name, s in samples.items() if s.connected and name not in measured + fallback
    ]
    if fallback:
        summary = (
            f"Fallback/simulated metrics are active for: {', '.join(fallback)}. "
            "Comparative deltas are suppressed when quality/baseline checks fail."
        )
    elif unmeasured:
        summary = (
            f"Measured data is incomplete for: {', '.join(unmeasured)}. "
            "Deltas involving missing fields are suppressed."
        )
    else:
        summary = (
            "All connected broker metrics are measured. "
            "Deltas are computed only when baseline > 0 and values are valid."
        )
    return DataQuality(
        has_fallback_data=bool(fallback),
        measured_brokers=measured,
        fallback_brokers=fallback,
        summary=summary,
    )
