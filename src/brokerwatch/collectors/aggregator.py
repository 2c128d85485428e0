from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Sequence

import structlog

from brokerwatch.clients.kafka_admin import KafkaAdminGateway
from brokerwatch.clients.kafka_rest import KafkaRestClient
from brokerwatch.clients.pulsar import PulsarAdminClient
from brokerwatch.clients.rabbitmq import RabbitMQManagementClient
from brokerwatch.collectors.base import BrokerCollector
from brokerwatch.collectors.kafka import KafkaCollector
from brokerwatch.collectors.pulsar import PulsarCollector, SignalPolicy
from brokerwatch.collectors.rabbitmq import RabbitMQCollector
from brokerwatch.config import Settings
from brokerwatch.domain.models import BrokerMetricsSample, BrokerName

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MetricsAggregator:
    """Runs every enabled collector concurrently, one sample per broker.

    A collector that raises is reported as disconnected; the others are
    unaffected. Each collector is bounded only by its per-call network
    timeouts; a slow broker makes the cycle longer and is never cancelled.
    Brokers without a collector (pulsar when disabled) are absent from the
    result entirely.
    """

    def __init__(
        self,
        collectors: Sequence[BrokerCollector],
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.collectors = list(collectors)
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "MetricsAggregator":
        return cls(build_collectors(settings))

    @property
    def broker_names(self) -> list[BrokerName]:
        return [c.name for c in self.collectors]

    async def collect_all(self) -> dict[BrokerName, BrokerMetricsSample]:
        results = await asyncio.gather(
            *(c.collect() for c in self.collectors),
            return_exceptions=True,
        )
        # One capture instant per cycle keeps history rows aligned across brokers.
        captured_at = self._clock()

        samples: dict[BrokerName, BrokerMetricsSample] = {}
        for collector, result in zip(self.collectors, results, strict=True):
            if isinstance(result, Exception):
                logger.error(
                    "collector_failed",
                    broker=collector.name.value,
                    error_type=type(result).__name__,
                    error=str(result),
                )
                result = BrokerMetricsSample.disconnected(
                    collector.name, error=str(result) or type(result).__name__
                )
            elif isinstance(result, BaseException):
                raise result
            samples[collector.name] = result.model_copy(update={"captured_at": captured_at})
        return samples


def build_collectors(settings: Settings) -> list[BrokerCollector]:
    """Wire clients and collectors from configuration."""
    http_options = {
        "timeout": settings.http_timeout,
        "max_retries": settings.http_max_retries,
        "backoff_factor": settings.http_retry_backoff_factor,
    }

    collectors: list[BrokerCollector] = [
        RabbitMQCollector(
            RabbitMQManagementClient(
                settings.rabbitmq_mgmt_url,
                settings.rabbitmq_user,
                settings.rabbitmq_password,
                metrics_url=settings.rabbitmq_metrics_url,
                **http_options,
            )
        ),
        KafkaCollector(
            KafkaRestClient(settings.kafka_rest_url, **http_options),
            KafkaAdminGateway(
                settings.kafka_bootstrap_servers, timeout=settings.kafka_admin_timeout
            ),
            metrics_url=settings.kafka_metrics_url,
        ),
    ]

    if settings.pulsar_enabled:
        collectors.append(
            PulsarCollector(
                PulsarAdminClient(
                    settings.pulsar_admin_url, cluster=settings.pulsar_cluster, **http_options
                ),
                signal_policy=SignalPolicy(
                    min_throughput=settings.signal_min_throughput,
                    min_latency_ms=settings.signal_min_latency_ms,
                    min_memory_mb=settings.signal_min_memory_mb,
                ),
            )
        )
    return collectors
