from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class BrokerMetricsRecord(Base):
    """Append-only time series of per-broker samples."""

    __tablename__ = "broker_metrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    broker_name: Mapped[str] = mapped_column(String(32), nullable=False)
    is_connected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    messages_per_second: Mapped[int | None] = mapped_column(Integer)
    p50_latency_ms: Mapped[float | None] = mapped_column(Float)
    p95_latency_ms: Mapped[float | None] = mapped_column(Float)
    p99_latency_ms: Mapped[float | None] = mapped_column(Float)
    memory_usage_mb: Mapped[float | None] = mapped_column(Float)
    cpu_percentage: Mapped[float | None] = mapped_column(Float)
    connection_count: Mapped[int | None] = mapped_column(Integer)
    uptime: Mapped[str | None] = mapped_column(String(64))
    partition_count: Mapped[int | None] = mapped_column(Integer)
    broker_count: Mapped[int | None] = mapped_column(Integer)
    topic_stats: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    data_source: Mapped[str | None] = mapped_column(String(16))
    metric_quality: Mapped[dict[str, str] | None] = mapped_column(JSON)
    error_message: Mapped[str | None] = mapped_column(Text)
    captured_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_broker_metrics_broker_captured", "broker_name", "captured_at"),
        Index("idx_broker_metrics_captured", "captured_at"),
    )
