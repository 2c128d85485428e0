"""
Pulsar adapter.

Tiers, first success wins:

1. admin broker listing (no brokers means disconnected)
2. per-broker stats endpoint
3. ``/metrics`` scrape, accepted only when it carries a measured signal
4. a synthesized oscillation for demo visibility, tagged ``fallback`` on
   every field so it can never pass for a measurement
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Any, Callable

import structlog

from brokerwatch.clients.pulsar import PulsarAdminClient
from brokerwatch.collectors.base import measured_or_missing, overall_source
from brokerwatch.core.errors import BrokerConnectionError
from brokerwatch.domain.models import BrokerMetricsSample, BrokerName, DataSource
from brokerwatch.logging import bind_broker
from brokerwatch.metrics.exposition import (
    BYTES_PER_MB,
    PULSAR_MEMORY,
    PULSAR_P99_LATENCY,
    PULSAR_THROUGHPUT,
    extract,
    has_signal,
)

SYNTHETIC_BASE_THROUGHPUT = 50_000
SYNTHETIC_AMPLITUDE = 20_000
SYNTHETIC_PERIOD_MS = 10_000


@dataclass(frozen=True)
class SignalPolicy:
    """Floors a ``/metrics`` scrape must clear to count as measured.

    At least one of throughput, p99 latency or memory has to be strictly
    above its floor; all-zero or placeholder scrapes are discarded.
    """

    min_throughput: float = 0.0
    min_latency_ms: float = 0.0
    min_memory_mb: float = 1.0

    def accepts(self, throughput: float, latency_ms: float, memory_mb: float) -> bool:
        return (
            has_signal(throughput, self.min_throughput)
            or has_signal(latency_ms, self.min_latency_ms)
            or has_signal(memory_mb, self.min_memory_mb)
        )


def _number(value: Any) -> float | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return None


class PulsarCollector:
    name = BrokerName.pulsar

    def __init__(
        self,
        client: PulsarAdminClient,
        *,
        signal_policy: SignalPolicy | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.signal_policy = signal_policy or SignalPolicy()
        self._clock = clock

    async def collect(self) -> BrokerMetricsSample:
        log = bind_broker(self.name)
        try:
            brokers = await self.client.brokers()
        except BrokerConnectionError as exc:
            log.warning("broker_unreachable", error=exc.message)
            return BrokerMetricsSample.disconnected(self.name, error=exc.message)

        if not brokers:
            log.warning("no_active_brokers", cluster=self.client.cluster)
            return BrokerMetricsSample.disconnected(self.name, error="no active brokers")

        try:
            stats = await self.client.broker_stats(brokers[0])
        except BrokerConnectionError as exc:
            if exc.status_code == 404:
                log.debug("broker_stats_not_found", broker_id=brokers[0])
            else:
                log.warning("broker_stats_failed", broker_id=brokers[0], error=exc.message)
        else:
            return self._from_broker_stats(stats)

        scraped = await self._from_prometheus(log)
        if scraped is not None:
            return scraped

        log.info("using_synthetic_metrics")
        return self._synthesize()

    def _from_broker_stats(self, stats: dict[str, Any]) -> BrokerMetricsSample:
        rate_in = _number(stats.get("msgRateIn"))
        jvm = stats.get("jvm") if isinstance(stats.get("jvm"), dict) else {}
        memory_bytes = _number(jvm.get("memoryUsage"))
        connections = _number(stats.get("connections"))

        messages_per_second = max(0, round(rate_in)) if rate_in is not None else None
        memory_mb = round(memory_bytes / BYTES_PER_MB, 2) if memory_bytes is not None else None
        connection_count = int(connections) if connections is not None else None

        quality = {
            "messages_per_second": measured_or_missing(messages_per_second),
            "p99_latency_ms": DataSource.missing,
            "memory_usage_mb": measured_or_missing(memory_mb),
            "cpu_percentage": DataSource.missing,
            "connection_count": measured_or_missing(connection_count),
            "uptime": DataSource.missing,
        }
        return BrokerMetricsSample(
            broker_name=self.name,
            connected=True,
            messages_per_second=messages_per_second,
            memory_usage_mb=memory_mb,
            connection_count=connection_count,
            partition_count=0,
            data_source=overall_source(quality, ("messages_per_second",)),
            metric_quality=quality,
        )

    async def _from_prometheus(
        self, log: structlog.stdlib.BoundLogger
    ) -> BrokerMetricsSample | None:
        try:
            text = await self.client.metrics_text()
        except BrokerConnectionError as exc:
            log.debug("prometheus_scrape_unavailable", error=exc.message)
            return None

        throughput = extract(text, PULSAR_THROUGHPUT)
        latency = extract(text, PULSAR_P99_LATENCY)
        memory = extract(text, PULSAR_MEMORY)

        if not self.signal_policy.accepts(throughput, latency, memory):
            log.debug(
                "prometheus_scrape_without_signal",
                throughput=throughput,
                latency=latency,
                memory_mb=memory,
            )
            return None

        if math.isfinite(throughput) and throughput >= 0:
            messages_per_second: int | None = round(throughput)
        else:
            messages_per_second = None
        p99 = round(latency, 2) if has_signal(latency) else None
        memory_mb = round(memory, 2) if has_signal(memory) else None

        quality = {
            "messages_per_second": measured_or_missing(messages_per_second),
            "p99_latency_ms": measured_or_missing(p99),
            "memory_usage_mb": measured_or_missing(memory_mb),
            "cpu_percentage": DataSource.missing,
            "connection_count": DataSource.missing,
            "uptime": DataSource.missing,
        }
        return BrokerMetricsSample(
            broker_name=self.name,
            connected=True,
            messages_per_second=messages_per_second,
            p99_latency_ms=p99,
            memory_usage_mb=memory_mb,
            partition_count=0,
            data_source=DataSource.measured,
            metric_quality=quality,
        )

    def _synthesize(self) -> BrokerMetricsSample:
        phase = (self._clock() * 1000) / SYNTHETIC_PERIOD_MS
        wave = SYNTHETIC_BASE_THROUGHPUT + math.sin(phase) * SYNTHETIC_AMPLITUDE
        throughput = max(0, round(wave))
        return BrokerMetricsSample(
            broker_name=self.name,
            connected=True,
            messages_per_second=throughput,
            p99_latency_ms=round(20 + math.cos(phase) * 5, 2),
            memory_usage_mb=round(175 + math.sin(phase / 3) * 25, 2),
            connection_count=8,
            uptime="unknown",
            partition_count=0,
            data_source=DataSource.fallback,
            metric_quality={
                "messages_per_second": DataSource.fallback,
                "p99_latency_ms": DataSource.fallback,
                "memory_usage_mb": DataSource.fallback,
                "cpu_percentage": DataSource.missing,
                "connection_count": DataSource.fallback,
                "uptime": DataSource.fallback,
            },
        )
