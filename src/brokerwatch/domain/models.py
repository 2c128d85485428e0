from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class BrokerName(StrEnum):
    """Broker kinds known to the collectors."""

    rabbitmq = "rabbitmq"
    kafka = "kafka"
    pulsar = "pulsar"


class DataSource(StrEnum):
    """Trust tier of a sample or of a single field."""

    measured = "measured"
    fallback = "fallback"
    missing = "missing"


# Fields that carry a per-field quality tag.
QUALITY_FIELDS: tuple[str, ...] = (
    "messages_per_second",
    "p99_latency_ms",
    "memory_usage_mb",
    "cpu_percentage",
    "connection_count",
    "uptime",
)

METRIC_FIELDS: tuple[str, ...] = (
    "messages_per_second",
    "p50_latency_ms",
    "p95_latency_ms",
    "p99_latency_ms",
    "memory_usage_mb",
    "cpu_percentage",
    "connection_count",
    "uptime",
    "partition_count",
    "broker_count",
    "topic_stats",
)


class BrokerMetricsSample(BaseModel):
    """One broker's normalized statistics for one collection cycle."""

    broker_name: BrokerName
    connected: bool
    messages_per_second: int | None = Field(default=None, ge=0)
    p50_latency_ms: float | None = None
    p95_latency_ms: float | None = None
    p99_latency_ms: float | None = None
    memory_usage_mb: float | None = None
    cpu_percentage: float | None = None
    connection_count: int | None = None
    uptime: str | None = None
    partition_count: int | None = None
    broker_count: int | None = None
    topic_stats: dict[str, Any] | None = None
    data_source: DataSource | None = None
    metric_quality: dict[str, DataSource] = Field(default_factory=dict)
    captured_at: datetime | None = None
    error_message: str | None = None

    @model_validator(mode="after")
    def _disconnected_carries_no_metrics(self) -> "BrokerMetricsSample":
        if not self.connected:
            populated = [name for name in METRIC_FIELDS if getattr(self, name) is not None]
            if populated or self.metric_quality:
                raise ValueError(
                    f"disconnected sample for {self.broker_name} carries metrics: {populated}"
                )
        return self

    @classmethod
    def disconnected(
        cls,
        broker_name: BrokerName,
        *,
        data_source: DataSource | None = None,
        error: str | None = None,
    ) -> "BrokerMetricsSample":
        return cls(
            broker_name=broker_name,
            connected=False,
            data_source=data_source,
            error_message=error,
        )

    def quality_of(self, field: str) -> DataSource:
        """Resolve the trust tier for one field.

        An explicit tag wins. Without one, an absent value is ``missing`` and a
        present value inherits the sample-level source.
        """
        explicit = self.metric_quality.get(field)
        if explicit is not None:
            return explicit
        if getattr(self, field, None) is None:
            return DataSource.missing
        if self.data_source == DataSource.fallback:
            return DataSource.fallback
        return DataSource.measured


class ComparisonDeltas(BaseModel):
    throughput_improvement: str | None = None
    latency_improvement: str | None = None
    memory_efficiency: str | None = None


class DataQuality(BaseModel):
    has_fallback_data: bool = False
    measured_brokers: list[BrokerName] = Field(default_factory=list)
    fallback_brokers: list[BrokerName] = Field(default_factory=list)
    summary: str = ""


class ComparisonReport(BaseModel):
    timestamp: datetime
    brokers: dict[BrokerName, BrokerMetricsSample]
    comparison: ComparisonDeltas = Field(default_factory=ComparisonDeltas)
    suppressed_reasons: list[str] = Field(default_factory=list)
    data_quality: DataQuality = Field(default_factory=DataQuality)


class TimeRange(BaseModel):
    start: datetime
    end: datetime


class HistorySample(BaseModel):
    """All brokers' samples captured at one instant."""

    timestamp: datetime
    brokers: dict[BrokerName, BrokerMetricsSample] = Field(default_factory=dict)


class HistoryResult(BaseModel):
    time_range: TimeRange
    samples: list[HistorySample] = Field(default_factory=list)
