"""
Native Kafka admin access for when no REST proxy is deployed.

kafka-python is blocking, so every call runs in a worker thread to keep the
event loop free for the other collectors.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog
from kafka import KafkaAdminClient, KafkaConsumer, TopicPartition
from kafka.errors import KafkaError

from brokerwatch.core.errors import BrokerConnectionError

logger = structlog.get_logger()


@dataclass(frozen=True)
class OffsetSummary:
    """High-water offsets summed over every partition of every user topic."""

    topic_count: int
    partition_count: int
    high_water_total: int


def is_internal_topic(name: str) -> bool:
    return name.startswith("__")


class KafkaAdminGateway:
    """Reads topic listings and high-water offsets over the Kafka protocol."""

    def __init__(
        self,
        bootstrap_servers: str,
        *,
        timeout: float = 5.0,
        client_id: str = "brokerwatch-admin",
    ) -> None:
        self._bootstrap_servers = [s.strip() for s in bootstrap_servers.split(",") if s.strip()]
        self._timeout_ms = int(timeout * 1000)
        self._client_id = client_id

    async def offset_summary(self) -> OffsetSummary:
        try:
            return await asyncio.to_thread(self._offset_summary)
        except (KafkaError, OSError) as exc:
            raise BrokerConnectionError(
                f"kafka admin request failed: {exc}",
                {"bootstrap_servers": ",".join(self._bootstrap_servers)},
            ) from exc

    def _offset_summary(self) -> OffsetSummary:
        admin = KafkaAdminClient(
            bootstrap_servers=self._bootstrap_servers,
            client_id=self._client_id,
            request_timeout_ms=self._timeout_ms,
        )
        try:
            topics = [t for t in admin.list_topics() if not is_internal_topic(t)]
        finally:
            admin.close()

        consumer = KafkaConsumer(
            bootstrap_servers=self._bootstrap_servers,
            client_id=self._client_id,
            request_timeout_ms=max(self._timeout_ms, 1000) + 1,
            enable_auto_commit=False,
        )
        try:
            partitions: list[TopicPartition] = []
            for topic in topics:
                for partition in consumer.partitions_for_topic(topic) or ():
                    partitions.append(TopicPartition(topic, partition))

            end_offsets = consumer.end_offsets(partitions) if partitions else {}
        finally:
            consumer.close()

        total = sum(int(offset or 0) for offset in end_offsets.values())
        logger.debug(
            "kafka_offsets_read",
            topics=len(topics),
            partitions=len(partitions),
            high_water_total=total,
        )
        return OffsetSummary(
            topic_count=len(topics),
            partition_count=len(partitions),
            high_water_total=total,
        )
