"""
Kafka adapter.

Two sources, tried in order:

1. A REST proxy listing brokers and topics. Proxy aggregates are not direct
   broker readings, so throughput, memory and connections are tagged
   ``fallback``; latency is not exposed there at all.
2. The native admin protocol. High-water offsets of every user topic are
   summed into one cumulative counter and differenced by the collector's
   ``RateSampler``. A p99 latency is scraped from the exporter endpoint.
"""

from __future__ import annotations

import asyncio
from typing import Any, Sequence

import structlog

from brokerwatch.clients.kafka_admin import KafkaAdminGateway, is_internal_topic
from brokerwatch.clients.kafka_rest import KafkaRestClient
from brokerwatch.collectors.base import measured_or_missing, overall_source
from brokerwatch.core.errors import BrokerConnectionError
from brokerwatch.domain.models import BrokerMetricsSample, BrokerName, DataSource
from brokerwatch.logging import bind_broker
from brokerwatch.metrics.exposition import KAFKA_P99_LATENCY, extract, has_signal
from brokerwatch.metrics.rate import RateSampler

HIGH_WATER_KEY = "kafka:high_water_total"

_THROUGHPUT_KEYS = ("messagesInPerSec", "messages_in_per_sec", "throughput")
_MEMORY_KEYS = ("memoryUsageMb", "memory_mb", "memory")
_CONNECTION_KEYS = ("connectionCount", "connections")


def _first_number(stats: dict[str, Any], keys: Sequence[str]) -> float | None:
    for key in keys:
        value = stats.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    return None


def _broker_id(broker: Any) -> Any:
    if isinstance(broker, dict):
        return broker.get("broker_id", broker.get("id"))
    return broker


class KafkaCollector:
    name = BrokerName.kafka

    def __init__(
        self,
        rest_client: KafkaRestClient,
        admin: KafkaAdminGateway | None = None,
        *,
        metrics_url: str | None = None,
        sampler: RateSampler | None = None,
    ) -> None:
        self.rest_client = rest_client
        self.admin = admin
        self.metrics_url = metrics_url
        self.sampler = sampler or RateSampler()

    async def collect(self) -> BrokerMetricsSample:
        log = bind_broker(self.name)
        try:
            return await self._collect_from_rest_proxy(log)
        except BrokerConnectionError as exc:
            log.info("rest_proxy_unavailable", error=exc.message)
            last_error = exc.message

        if self.admin is not None:
            try:
                return await self._collect_from_admin(self.admin, log)
            except BrokerConnectionError as exc:
                log.warning("admin_client_unavailable", error=exc.message)
                last_error = exc.message

        return BrokerMetricsSample.disconnected(
            self.name, data_source=DataSource.missing, error=last_error
        )

    async def _collect_from_rest_proxy(
        self, log: structlog.stdlib.BoundLogger
    ) -> BrokerMetricsSample:
        brokers = await self.rest_client.brokers()
        if not brokers:
            raise BrokerConnectionError("REST proxy reported no brokers")
        topics = await self.rest_client.topics()

        stats_results = await asyncio.gather(
            *(self.rest_client.broker_stats(_broker_id(b)) for b in brokers),
            return_exceptions=True,
        )
        throughput: list[float] = []
        memory: list[float] = []
        connections: list[float] = []
        for broker, result in zip(brokers, stats_results, strict=True):
            if isinstance(result, Exception):
                log.debug("broker_stats_failed", broker_id=_broker_id(broker), error=str(result))
                continue
            if isinstance(result, BaseException):
                raise result
            for bucket, keys in (
                (throughput, _THROUGHPUT_KEYS),
                (memory, _MEMORY_KEYS),
                (connections, _CONNECTION_KEYS),
            ):
                value = _first_number(result, keys)
                if value is not None:
                    bucket.append(value)

        user_topics, partition_count = await self._partition_count(topics, log)

        # Brokers without stats count as zero in the per-broker averages.
        broker_total = len(brokers)
        messages_per_second = int(sum(throughput) // broker_total) if throughput else None
        memory_mb = round(sum(memory) / broker_total, 2) if memory else None
        connection_count = int(sum(connections)) if connections else None

        def proxy_tag(value: object) -> DataSource:
            return DataSource.missing if value is None else DataSource.fallback

        quality = {
            "messages_per_second": proxy_tag(messages_per_second),
            "p99_latency_ms": DataSource.missing,
            "memory_usage_mb": proxy_tag(memory_mb),
            "cpu_percentage": DataSource.missing,
            "connection_count": proxy_tag(connection_count),
            "uptime": DataSource.missing,
        }
        log.debug("rest_proxy_sampled", brokers=len(brokers), topics=user_topics)

        return BrokerMetricsSample(
            broker_name=self.name,
            connected=True,
            messages_per_second=messages_per_second,
            memory_usage_mb=memory_mb,
            connection_count=connection_count,
            partition_count=partition_count,
            broker_count=len(brokers),
            topic_stats={"topic_count": user_topics, "source": "rest-proxy"},
            data_source=DataSource.fallback,
            metric_quality=quality,
        )

    async def _partition_count(
        self, topics: list[Any], log: structlog.stdlib.BoundLogger
    ) -> tuple[int, int]:
        """Count user topics and their partitions.

        Topic entries may already carry partition metadata; bare names are
        described one at a time, and a failed lookup only loses that topic.
        """
        user_topics = 0
        partitions = 0
        for topic in topics:
            if isinstance(topic, dict):
                name = str(topic.get("name", ""))
                if is_internal_topic(name):
                    continue
                user_topics += 1
                partitions += len(topic.get("partitions") or [])
                continue

            name = str(topic)
            if is_internal_topic(name):
                continue
            user_topics += 1
            try:
                detail = await self.rest_client.topic(name)
            except BrokerConnectionError as exc:
                log.debug("topic_describe_failed", topic=name, error=exc.message)
                continue
            partitions += len(detail.get("partitions") or [])
        return user_topics, partitions

    async def _collect_from_admin(
        self, admin: KafkaAdminGateway, log: structlog.stdlib.BoundLogger
    ) -> BrokerMetricsSample:
        summary = await admin.offset_summary()
        rate = self.sampler.sample(HIGH_WATER_KEY, summary.high_water_total)
        p99 = await self._scrape_p99(log)

        quality = {
            "messages_per_second": measured_or_missing(rate),
            "p99_latency_ms": measured_or_missing(p99),
            "memory_usage_mb": DataSource.missing,
            "cpu_percentage": DataSource.missing,
            "connection_count": DataSource.missing,
            "uptime": DataSource.missing,
        }
        log.debug("admin_sampled", high_water_total=summary.high_water_total, rate=rate)

        return BrokerMetricsSample(
            broker_name=self.name,
            connected=True,
            messages_per_second=rate,
            p99_latency_ms=p99,
            partition_count=summary.partition_count,
            topic_stats={"topic_count": summary.topic_count, "source": "admin"},
            data_source=overall_source(quality, ("messages_per_second",)),
            metric_quality=quality,
        )

    async def _scrape_p99(self, log: structlog.stdlib.BoundLogger) -> float | None:
        if not self.metrics_url:
            return None
        try:
            text = await self.rest_client.metrics_text(self.metrics_url)
        except BrokerConnectionError as exc:
            log.debug("prometheus_scrape_unavailable", error=exc.message)
            return None
        value = extract(text, KAFKA_P99_LATENCY)
        return round(value, 2) if has_signal(value) else None
