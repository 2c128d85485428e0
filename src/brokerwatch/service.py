"""
Broker metrics service.

Read-through cache over the aggregator, per-broker persistence of every
collected sample, historical queries aligned by capture time, and retention
pruning.

Only one collection runs per cache key at a time: callers arriving while a
collection is in flight await that same task. Collectors keep rate
snapshots between cycles, and two interleaved cycles would feed them
out-of-order readings.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable

import structlog
from pydantic import ValidationError
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from brokerwatch.cache import MetricsCache, MemoryCache, build_cache
from brokerwatch.collectors.aggregator import MetricsAggregator
from brokerwatch.comparison import ComparisonEngine
from brokerwatch.config import Settings
from brokerwatch.core.errors import AggregationError, PersistenceError
from brokerwatch.db.repositories import BrokerMetricsRepository
from brokerwatch.db.session import init_engine
from brokerwatch.domain.models import (
    BrokerMetricsSample,
    BrokerName,
    ComparisonReport,
    HistoryResult,
    HistorySample,
    TimeRange,
)

logger = structlog.get_logger()

CURRENT_METRICS_KEY = "broker-metrics:current"
DEFAULT_CACHE_TTL_SECONDS = 60
MIN_HISTORY_HOURS = 1
MAX_HISTORY_HOURS = 168
DEFAULT_RETENTION_DAYS = 7

_MISSING_TABLE_MARKERS = ("no such table", "does not exist", "undefinedtable")


def clamp_hours(hours: float) -> float:
    return max(MIN_HISTORY_HOURS, min(MAX_HISTORY_HOURS, hours))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BrokerMetricsService:
    def __init__(
        self,
        aggregator: MetricsAggregator,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        comparison: ComparisonEngine | None = None,
        cache: MetricsCache | None = None,
        cache_ttl: int = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.aggregator = aggregator
        self.comparison = comparison or ComparisonEngine()
        self.cache = cache or MemoryCache()
        self.cache_ttl = cache_ttl
        self._session_factory = session_factory
        self._clock = clock
        self._inflight: dict[str, asyncio.Task[ComparisonReport]] = {}
        self._persistence_available = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "BrokerMetricsService":
        return cls(
            MetricsAggregator.from_settings(settings),
            init_engine(settings),
            comparison=ComparisonEngine(
                BrokerName(settings.comparison_baseline),
                BrokerName(settings.comparison_candidate),
                measured_only=settings.comparison_measured_only,
            ),
            cache=build_cache(settings),
            cache_ttl=settings.cache_ttl_seconds,
        )

    async def get_current_metrics(self, force_refresh: bool = False) -> ComparisonReport:
        """Return the cached comparison report, collecting a new one on miss.

        ``force_refresh`` skips the cache read but still stores the fresh
        report. Broker outages never raise here; they show up in the report.
        """
        if not force_refresh:
            cached = await self._read_cache()
            if cached is not None:
                return cached

        task = self._inflight.get(CURRENT_METRICS_KEY)
        if task is None:
            task = asyncio.create_task(self._refresh())
            self._inflight[CURRENT_METRICS_KEY] = task
            task.add_done_callback(self._forget_inflight)
        else:
            logger.debug("joining_inflight_collection", key=CURRENT_METRICS_KEY)
        return await asyncio.shield(task)

    async def clear_cache(self) -> None:
        await self.cache.delete(CURRENT_METRICS_KEY)

    async def health(self) -> dict[str, str]:
        """Per-broker ``ok``/``unavailable`` derived from the current report."""
        report = await self.get_current_metrics()
        return {
            name.value: "ok" if sample.connected else "unavailable"
            for name, sample in report.brokers.items()
        }

    async def get_historical_metrics(self, hours: float = 24) -> HistoryResult:
        hours = clamp_hours(hours)
        end = self._clock()
        start = end - timedelta(hours=hours)

        try:
            async with self._session_factory() as session:
                rows = await BrokerMetricsRepository(session).find_since(start)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"history query failed: {exc}", {"hours": hours}) from exc

        grouped: dict[datetime, dict[BrokerName, BrokerMetricsSample]] = {}
        for row in rows:
            if row.captured_at is None:
                continue
            grouped.setdefault(row.captured_at, {})[row.broker_name] = row

        return HistoryResult(
            time_range=TimeRange(start=start, end=end),
            samples=[
                HistorySample(timestamp=ts, brokers=brokers) for ts, brokers in grouped.items()
            ],
        )

    async def prune_old_metrics(self, days_to_keep: int = DEFAULT_RETENTION_DAYS) -> int:
        cutoff = self._clock() - timedelta(days=days_to_keep)
        try:
            async with self._session_factory() as session:
                deleted = await BrokerMetricsRepository(session).delete_before(cutoff)
                await session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"prune failed: {exc}", {"cutoff": cutoff.isoformat()}) from exc

        logger.info("pruned_old_metrics", deleted=deleted, cutoff=cutoff.isoformat())
        return deleted

    async def _refresh(self) -> ComparisonReport:
        try:
            samples = await self.aggregator.collect_all()
        except Exception as exc:
            logger.error("aggregation_failed", error_type=type(exc).__name__, error=str(exc))
            raise AggregationError(f"metrics aggregation failed: {exc}") from exc

        for sample in samples.values():
            await self._store(sample)

        captured = [s.captured_at for s in samples.values() if s.captured_at is not None]
        report = self.comparison.build_report(
            samples, timestamp=captured[0] if captured else self._clock()
        )
        await self._write_cache(report)
        return report

    async def _store(self, sample: BrokerMetricsSample) -> None:
        if not self._persistence_available:
            return
        try:
            async with self._session_factory() as session:
                await BrokerMetricsRepository(session).insert(sample)
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            message = str(exc)
            if any(marker in message.lower() for marker in _MISSING_TABLE_MARKERS):
                self._persistence_available = False
                logger.warning(
                    "persistence_disabled",
                    reason="broker_metrics table unavailable",
                    error=message,
                )
                return
            logger.warning("persist_sample_failed", broker=sample.broker_name.value, error=message)

    async def _read_cache(self) -> ComparisonReport | None:
        try:
            cached = await self.cache.get(CURRENT_METRICS_KEY)
        except (OSError, RedisError) as exc:
            logger.warning("cache_read_failed", error=str(exc))
            return None
        if cached is None:
            return None
        try:
            return ComparisonReport.model_validate(cached)
        except ValidationError as exc:
            logger.warning("cache_entry_invalid", error=str(exc))
            return None

    async def _write_cache(self, report: ComparisonReport) -> None:
        try:
            await self.cache.set(
                CURRENT_METRICS_KEY, report.model_dump(mode="json"), self.cache_ttl
            )
        except (OSError, RedisError) as exc:
            logger.warning("cache_write_failed", error=str(exc))

    def _forget_inflight(self, task: asyncio.Task[ComparisonReport]) -> None:
        if self._inflight.get(CURRENT_METRICS_KEY) is task:
            del self._inflight[CURRENT_METRICS_KEY]
