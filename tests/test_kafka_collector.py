import pytest
import respx
from httpx import ConnectError, Response
from brokerwatch.clients.kafka_admin import OffsetSummary, is_internal_topic
from brokerwatch.clients.kafka_rest import KafkaRestClient
from brokerwatch.collectors.kafka import KafkaCollector
from brokerwatch.core.errors import BrokerConnectionError
from brokerwatch.domain.models import DataSource
from brokerwatch.metrics.rate import RateSampler

REST = "http://kafka-rest:8082"
METRICS = "http://kafka:9308/metrics"


class StubAdminGateway:
    def __init__(self, totals: list[int] | None = None, error: str | None = None) -> None:
        self._totals = iter(totals or [])
        self._error = error
        self.calls = 0

    async def offset_summary(self) -> OffsetSummary:
        self.calls += 1
        if self._error:
            raise BrokerConnectionError(self._error)
        return OffsetSummary(topic_count=2, partition_count=6, high_water_total=next(self._totals))


def _rest_client() -> KafkaRestClient:
    return KafkaRestClient(REST, backoff_factor=0)


@pytest.mark.asyncio
async def test_rest_proxy_values_are_tagged_fallback():
    collector = KafkaCollector(_rest_client())

    with respx.mock:
        respx.get(f"{REST}/brokers").mock(return_value=Response(200, json={"brokers": [1, 2]}))
        respx.get(f"{REST}/topics").mock(
            return_value=Response(200, json=["orders", "payments", "__consumer_offsets"])
        )
        respx.get(f"{REST}/brokers/1/stats").mock(
            return_value=Response(
                200, json={"messagesInPerSec": 400, "memoryUsageMb": 300, "connectionCount": 5}
            )
        )
        respx.get(f"{REST}/brokers/2/stats").mock(
            return_value=Response(
                200, json={"messagesInPerSec": 600, "memoryUsageMb": 500, "connectionCount": 7}
            )
        )
        respx.get(f"{REST}/topics/orders").mock(
            return_value=Response(200, json={"name": "orders", "partitions": [{}, {}, {}]})
        )
        respx.get(f"{REST}/topics/payments").mock(
            return_value=Response(200, json={"name": "payments", "partitions": [{}]})
        )

        sample = await collector.collect()

    assert sample.connected
    assert sample.data_source == DataSource.fallback
    assert sample.messages_per_second == 500
    assert sample.memory_usage_mb == 400.0
    assert sample.connection_count == 12
    assert sample.broker_count == 2
    assert sample.partition_count == 4
    assert sample.topic_stats == {"topic_count": 2, "source": "rest-proxy"}
    assert sample.p99_latency_ms is None
    assert sample.metric_quality["messages_per_second"] == DataSource.fallback
    assert sample.metric_quality["p99_latency_ms"] == DataSource.missing
    assert sample.metric_quality["uptime"] == DataSource.missing


@pytest.mark.asyncio
async def test_one_failing_broker_stats_does_not_fail_the_sample():
    collector = KafkaCollector(_rest_client())

    with respx.mock:
        respx.get(f"{REST}/brokers").mock(return_value=Response(200, json=[1, 2]))
        respx.get(f"{REST}/topics").mock(
            return_value=Response(200, json=[{"name": "orders", "partitions": [{}, {}]}])
        )
        respx.get(f"{REST}/brokers/1/stats").mock(return_value=Response(500))
        respx.get(f"{REST}/brokers/2/stats").mock(
            return_value=Response(200, json={"throughput": 250})
        )

        sample = await collector.collect()

    assert sample.connected
    assert sample.messages_per_second == 125
    assert sample.memory_usage_mb is None
    assert sample.metric_quality["memory_usage_mb"] == DataSource.missing
    assert sample.partition_count == 2


@pytest.mark.asyncio
async def test_brokers_without_stats_count_as_zero_in_averages():
    collector = KafkaCollector(_rest_client())

    with respx.mock:
        respx.get(f"{REST}/brokers").mock(return_value=Response(200, json=[1, 2, 3]))
        respx.get(f"{REST}/topics").mock(return_value=Response(200, json=[]))
        respx.get(f"{REST}/brokers/1/stats").mock(
            return_value=Response(
                200, json={"messagesInPerSec": 301, "memoryUsageMb": 300, "connectionCount": 2}
            )
        )
        respx.get(f"{REST}/brokers/2/stats").mock(side_effect=ConnectError("refused"))
        respx.get(f"{REST}/brokers/3/stats").mock(
            return_value=Response(
                200, json={"messagesInPerSec": 0, "memoryUsageMb": 150, "connectionCount": 1}
            )
        )

        sample = await collector.collect()

    assert sample.messages_per_second == 100
    assert sample.memory_usage_mb == 150.0
    assert sample.connection_count == 3
    assert sample.broker_count == 3


@pytest.mark.asyncio
async def test_admin_path_used_when_rest_proxy_down():
    clock = iter([0.0, 1_000.0])
    admin = StubAdminGateway(totals=[5_000, 5_800])
    collector = KafkaCollector(
        _rest_client(),
        admin,
        metrics_url=METRICS,
        sampler=RateSampler(clock=lambda: next(clock)),
    )

    with respx.mock:
        respx.get(f"{REST}/brokers").mock(side_effect=ConnectError("refused"))
        respx.get(METRICS).mock(
            return_value=Response(
                200,
                text=(
                    'kafka_network_requestmetrics_totaltimems'
                    '{request="Produce",quantile="0.99"} 7\n'
                ),
            )
        )

        first = await collector.collect()
        second = await collector.collect()

    assert first.connected
    assert first.messages_per_second is None
    assert first.data_source == DataSource.fallback

    assert second.messages_per_second == 800
    assert second.p99_latency_ms == 7.0
    assert second.partition_count == 6
    assert second.topic_stats == {"topic_count": 2, "source": "admin"}
    assert second.data_source == DataSource.measured
    assert admin.calls == 2


@pytest.mark.asyncio
async def test_empty_rest_broker_list_falls_through_to_admin():
    admin = StubAdminGateway(totals=[10])
    collector = KafkaCollector(_rest_client(), admin)

    with respx.mock:
        respx.get(f"{REST}/brokers").mock(return_value=Response(200, json={"brokers": []}))

        sample = await collector.collect()

    assert sample.connected
    assert sample.topic_stats["source"] == "admin"


@pytest.mark.asyncio
async def test_both_paths_failing_is_disconnected_missing():
    collector = KafkaCollector(_rest_client(), StubAdminGateway(error="no brokers available"))

    with respx.mock:
        respx.get(f"{REST}/brokers").mock(side_effect=ConnectError("refused"))

        sample = await collector.collect()

    assert sample.connected is False
    assert sample.data_source == DataSource.missing
    assert sample.error_message == "no brokers available"
    assert sample.messages_per_second is None


def test_internal_topics():
    assert is_internal_topic("__consumer_offsets")
    assert not is_internal_topic("orders")
