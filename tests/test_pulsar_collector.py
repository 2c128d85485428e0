import pytest
import respx
from httpx import ConnectError, Response
from brokerwatch.clients.pulsar import PulsarAdminClient
from brokerwatch.collectors.pulsar import PulsarCollector, SignalPolicy
from brokerwatch.domain.models import DataSource

ADMIN = "http://pulsar:8080"
BROKERS = f"{ADMIN}/admin/v2/brokers/standalone"
STATS = f"{ADMIN}/admin/v2/brokers/standalone/pulsar-0:8080/stats"


def _collector(**kwargs) -> PulsarCollector:
    return PulsarCollector(PulsarAdminClient(ADMIN, backoff_factor=0), **kwargs)


def _mock_no_stats(metrics_text: str) -> None:
    respx.get(BROKERS).mock(return_value=Response(200, json=["pulsar-0:8080"]))
    respx.get(STATS).mock(return_value=Response(404))
    respx.get(f"{ADMIN}/metrics").mock(return_value=Response(200, text=metrics_text))


@pytest.mark.asyncio
async def test_zero_signal_scrape_falls_back_to_synthetic():
    collector = _collector(clock=lambda: 0.0)

    with respx.mock:
        _mock_no_stats("pulsar_publish_rate 0\nprocess_resident_memory_bytes 512\n")

        sample = await collector.collect()

    assert sample.connected
    assert sample.data_source == DataSource.fallback
    assert sample.messages_per_second == 50_000
    assert sample.uptime == "unknown"
    assert sample.metric_quality["messages_per_second"] == DataSource.fallback
    assert sample.metric_quality["p99_latency_ms"] == DataSource.fallback
    assert sample.metric_quality["cpu_percentage"] == DataSource.missing


@pytest.mark.asyncio
async def test_scrape_with_signal_is_measured():
    collector = _collector()

    with respx.mock:
        _mock_no_stats("pulsar_publish_rate 1234\nprocess_resident_memory_bytes 104857600\n")

        sample = await collector.collect()

    assert sample.data_source == DataSource.measured
    assert sample.messages_per_second == 1234
    assert sample.memory_usage_mb == pytest.approx(100.0)
    assert sample.p99_latency_ms is None
    assert sample.metric_quality["messages_per_second"] == DataSource.measured
    assert sample.metric_quality["p99_latency_ms"] == DataSource.missing


@pytest.mark.asyncio
async def test_signal_policy_floors_are_configurable():
    text = "pulsar_publish_rate 5\n"

    with respx.mock:
        _mock_no_stats(text)
        default = await _collector().collect()
        strict = await _collector(
            signal_policy=SignalPolicy(min_throughput=10), clock=lambda: 0.0
        ).collect()

    assert default.data_source == DataSource.measured
    assert default.messages_per_second == 5
    assert strict.data_source == DataSource.fallback


@pytest.mark.asyncio
async def test_broker_stats_are_preferred():
    collector = _collector()

    with respx.mock:
        respx.get(BROKERS).mock(return_value=Response(200, json=["pulsar-0:8080"]))
        respx.get(STATS).mock(
            return_value=Response(
                200,
                json={"msgRateIn": 812.6, "connections": 3, "jvm": {"memoryUsage": 52428800}},
            )
        )
        metrics = respx.get(f"{ADMIN}/metrics").mock(return_value=Response(200, text=""))

        sample = await collector.collect()

    assert sample.data_source == DataSource.measured
    assert sample.messages_per_second == 813
    assert sample.memory_usage_mb == 50.0
    assert sample.connection_count == 3
    assert metrics.call_count == 0


@pytest.mark.asyncio
async def test_broker_stats_without_rate_are_not_measured():
    collector = _collector()

    with respx.mock:
        respx.get(BROKERS).mock(return_value=Response(200, json=["pulsar-0:8080"]))
        respx.get(STATS).mock(return_value=Response(200, json={"topics": {}}))

        sample = await collector.collect()

    assert sample.connected
    assert sample.messages_per_second is None
    assert sample.metric_quality["messages_per_second"] == DataSource.missing
    assert sample.data_source == DataSource.fallback


@pytest.mark.asyncio
async def test_metrics_scrape_failure_uses_synthetic():
    collector = _collector(clock=lambda: 0.0)

    with respx.mock:
        respx.get(BROKERS).mock(return_value=Response(200, json=["pulsar-0:8080"]))
        respx.get(STATS).mock(return_value=Response(500))
        respx.get(f"{ADMIN}/metrics").mock(side_effect=ConnectError("refused"))

        sample = await collector.collect()

    assert sample.connected
    assert sample.data_source == DataSource.fallback


@pytest.mark.asyncio
async def test_no_active_brokers_is_disconnected():
    collector = _collector()

    with respx.mock:
        respx.get(BROKERS).mock(return_value=Response(200, json=[]))

        sample = await collector.collect()

    assert sample.connected is False
    assert sample.messages_per_second is None


@pytest.mark.asyncio
async def test_unreachable_admin_api_is_disconnected():
    collector = _collector()

    with respx.mock:
        respx.get(BROKERS).mock(side_effect=ConnectError("refused"))

        sample = await collector.collect()

    assert sample.connected is False
    assert sample.error_message
