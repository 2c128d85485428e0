"""
RabbitMQ adapter.

The management API reports queue depth, not throughput, so the rate is
derived from consecutive ``ready + unacked`` totals via the collector's own
``RateSampler``. The very first sample therefore carries no rate.
"""

from __future__ import annotations

from typing import Any

import structlog

from brokerwatch.clients.rabbitmq import RabbitMQManagementClient
from brokerwatch.collectors.base import format_uptime, measured_or_missing, overall_source
from brokerwatch.core.errors import BrokerConnectionError
from brokerwatch.domain.models import BrokerMetricsSample, BrokerName, DataSource
from brokerwatch.logging import bind_broker
from brokerwatch.metrics.exposition import BYTES_PER_MB, RABBITMQ_P99_LATENCY, extract, has_signal
from brokerwatch.metrics.rate import RateSampler

QUEUE_TOTALS_KEY = "rabbitmq:queue_totals"


def _node_memory_bytes(node: dict[str, Any]) -> float | None:
    if isinstance(node.get("mem_used"), (int, float)):
        return float(node["mem_used"])
    memory = node.get("memory")
    if isinstance(memory, dict) and isinstance(memory.get("used"), (int, float)):
        return float(memory["used"])
    return None


class RabbitMQCollector:
    name = BrokerName.rabbitmq

    def __init__(
        self,
        client: RabbitMQManagementClient,
        sampler: RateSampler | None = None,
    ) -> None:
        self.client = client
        self.sampler = sampler or RateSampler()

    async def collect(self) -> BrokerMetricsSample:
        log = bind_broker(self.name)
        try:
            overview = await self.client.overview()
            nodes = await self.client.nodes()
        except BrokerConnectionError as exc:
            log.warning("broker_unreachable", error=exc.message)
            return BrokerMetricsSample.disconnected(self.name, error=exc.message)

        queue_totals = overview.get("queue_totals") or {}
        depth = (queue_totals.get("messages_ready") or 0) + (
            queue_totals.get("messages_unacknowledged")
            or queue_totals.get("messages_unacked")
            or 0
        )
        rate = self.sampler.sample(QUEUE_TOTALS_KEY, depth)

        node = nodes[0] if nodes else {}
        memory_bytes = _node_memory_bytes(node)
        memory_mb = round(memory_bytes / BYTES_PER_MB, 2) if memory_bytes is not None else None
        uptime_ms = node.get("uptime")
        uptime = format_uptime(uptime_ms) if isinstance(uptime_ms, (int, float)) else None
        connections = (overview.get("object_totals") or {}).get("connections")

        p99 = await self._scrape_p99(log)

        quality = {
            "messages_per_second": measured_or_missing(rate),
            "p99_latency_ms": measured_or_missing(p99),
            "memory_usage_mb": measured_or_missing(memory_mb),
            "cpu_percentage": DataSource.missing,
            "connection_count": measured_or_missing(connections),
            "uptime": measured_or_missing(uptime),
        }
        data_source = overall_source(quality, ("messages_per_second", "p99_latency_ms"))
        log.debug("broker_sampled", depth=depth, rate=rate, data_source=data_source.value)

        return BrokerMetricsSample(
            broker_name=self.name,
            connected=True,
            messages_per_second=rate,
            p99_latency_ms=p99,
            memory_usage_mb=memory_mb,
            connection_count=connections,
            uptime=uptime,
            data_source=data_source,
            metric_quality=quality,
        )

    async def _scrape_p99(self, log: structlog.stdlib.BoundLogger) -> float | None:
        try:
            text = await self.client.prometheus_text()
        except BrokerConnectionError as exc:
            log.debug("prometheus_scrape_unavailable", error=exc.message)
            return None
        value = extract(text, RABBITMQ_P99_LATENCY)
        if not has_signal(value):
            return None
        return round(value, 2)
