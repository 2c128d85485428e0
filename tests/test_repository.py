from datetime import datetime, timedelta, timezone

import pytest
from brokerwatch.db.repositories import BrokerMetricsRepository
from brokerwatch.domain.models import BrokerMetricsSample, BrokerName, DataSource

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _sample(name: BrokerName, captured_at: datetime, **fields) -> BrokerMetricsSample:
    return BrokerMetricsSample(
        broker_name=name, connected=True, captured_at=captured_at, **fields
    )


@pytest.mark.asyncio
async def test_insert_and_find_since(session):
    repo = BrokerMetricsRepository(session)

    await repo.insert(
        _sample(
            BrokerName.kafka,
            NOW,
            messages_per_second=800,
            p99_latency_ms=7.0,
            partition_count=6,
            topic_stats={"topic_count": 2, "source": "admin"},
            data_source=DataSource.measured,
            metric_quality={"messages_per_second": DataSource.measured},
        )
    )
    await session.commit()

    rows = await repo.find_since(NOW - timedelta(hours=1))

    assert len(rows) == 1
    sample = rows[0]
    assert sample.broker_name == BrokerName.kafka
    assert sample.messages_per_second == 800
    assert sample.topic_stats == {"topic_count": 2, "source": "admin"}
    assert sample.data_source == DataSource.measured
    assert sample.metric_quality == {"messages_per_second": DataSource.measured}
    assert sample.captured_at == NOW


@pytest.mark.asyncio
async def test_disconnected_sample_keeps_error_message(session):
    repo = BrokerMetricsRepository(session)

    disconnected = BrokerMetricsSample.disconnected(
        BrokerName.rabbitmq, error="HTTP 401 from http://rabbit:15672/api/overview"
    ).model_copy(update={"captured_at": NOW})
    await repo.insert(disconnected)
    await session.commit()

    [row] = await repo.find_since(NOW - timedelta(minutes=1))

    assert row.connected is False
    assert row.metric_quality == {}
    assert row.error_message == "HTTP 401 from http://rabbit:15672/api/overview"


@pytest.mark.asyncio
async def test_find_since_orders_oldest_first_and_excludes_cutoff(session):
    repo = BrokerMetricsRepository(session)
    for minutes in (30, 10, 20, 60):
        await repo.insert(
            _sample(
                BrokerName.rabbitmq,
                NOW - timedelta(minutes=minutes),
                messages_per_second=minutes,
            )
        )
    await session.commit()

    rows = await repo.find_since(NOW - timedelta(minutes=60))

    assert [r.messages_per_second for r in rows] == [30, 20, 10]


@pytest.mark.asyncio
async def test_delete_before(session):
    repo = BrokerMetricsRepository(session)
    await repo.insert(_sample(BrokerName.rabbitmq, NOW - timedelta(days=10)))
    await repo.insert(_sample(BrokerName.kafka, NOW - timedelta(days=8)))
    await repo.insert(_sample(BrokerName.kafka, NOW - timedelta(days=1)))
    await session.commit()

    deleted = await repo.delete_before(NOW - timedelta(days=7))
    await session.commit()

    assert deleted == 2
    remaining = await repo.find_since(NOW - timedelta(days=30))
    assert len(remaining) == 1
    assert remaining[0].broker_name == BrokerName.kafka
