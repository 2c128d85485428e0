from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from brokerwatch.db import models as db_models
from brokerwatch.domain.models import BrokerMetricsSample, BrokerName, DataSource


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(slots=True)
class BrokerMetricsRepository:
    """Persistence helpers for the broker sample time series."""

    session: AsyncSession

    async def insert(self, sample: BrokerMetricsSample) -> None:
        record = db_models.BrokerMetricsRecord(
            broker_name=sample.broker_name.value,
            is_connected=sample.connected,
            messages_per_second=sample.messages_per_second,
            p50_latency_ms=sample.p50_latency_ms,
            p95_latency_ms=sample.p95_latency_ms,
            p99_latency_ms=sample.p99_latency_ms,
            memory_usage_mb=sample.memory_usage_mb,
            cpu_percentage=sample.cpu_percentage,
            connection_count=sample.connection_count,
            uptime=sample.uptime,
            partition_count=sample.partition_count,
            broker_count=sample.broker_count,
            topic_stats=sample.topic_stats,
            data_source=sample.data_source.value if sample.data_source else None,
            metric_quality={k: v.value for k, v in sample.metric_quality.items()} or None,
            error_message=sample.error_message,
        )
        if sample.captured_at is not None:
            record.captured_at = sample.captured_at
        self.session.add(record)
        await self.session.flush()

    async def find_since(self, cutoff: datetime) -> list[BrokerMetricsSample]:
        """Samples captured strictly after ``cutoff``, oldest first."""
        stmt = (
            select(db_models.BrokerMetricsRecord)
            .where(db_models.BrokerMetricsRecord.captured_at > cutoff)
            .order_by(
                db_models.BrokerMetricsRecord.captured_at.asc(),
                db_models.BrokerMetricsRecord.id.asc(),
            )
        )
        result = await self.session.execute(stmt)
        return [self._record_to_sample(r) for r in result.scalars().all()]

    async def delete_before(self, cutoff: datetime) -> int:
        stmt = delete(db_models.BrokerMetricsRecord).where(
            db_models.BrokerMetricsRecord.captured_at < cutoff
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0  # type: ignore[attr-defined]

    @staticmethod
    def _record_to_sample(record: db_models.BrokerMetricsRecord) -> BrokerMetricsSample:
        return BrokerMetricsSample(
            broker_name=BrokerName(record.broker_name),
            connected=record.is_connected,
            messages_per_second=record.messages_per_second,
            p50_latency_ms=record.p50_latency_ms,
            p95_latency_ms=record.p95_latency_ms,
            p99_latency_ms=record.p99_latency_ms,
            memory_usage_mb=record.memory_usage_mb,
            cpu_percentage=record.cpu_percentage,
            connection_count=record.connection_count,
            uptime=record.uptime,
            partition_count=record.partition_count,
            broker_count=record.broker_count,
            topic_stats=record.topic_stats,
            data_source=DataSource(record.data_source) if record.data_source else None,
            metric_quality={
                k: DataSource(v) for k, v in (record.metric_quality or {}).items()
            },
            captured_at=_as_utc(record.captured_at),
            error_message=record.error_message,
        )
