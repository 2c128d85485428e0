from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from brokerwatch import cli
from brokerwatch.core.errors import ExitCode, PersistenceError
from brokerwatch.domain.models import BrokerMetricsSample, BrokerName, ComparisonReport


class StubService:
    def __init__(self, *, health=None, error=None):
        self._health = health or {}
        self._error = error

    async def get_current_metrics(self, force_refresh=False):
        return ComparisonReport(
            timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc),
            brokers={
                BrokerName.rabbitmq: BrokerMetricsSample(
                    broker_name=BrokerName.rabbitmq, connected=True, messages_per_second=10
                )
            },
        )

    async def health(self):
        return self._health

    async def prune_old_metrics(self, days_to_keep):
        if self._error:
            raise self._error
        return 3


def _run(argv, service):
    async def fake_with_service(action):
        return await action(service)

    with patch.object(cli, "_with_service", fake_with_service):
        return cli.main(argv)


def test_parser_defaults():
    args = cli.build_parser().parse_args(["history"])

    assert args.command == "history"
    assert args.hours == 24
    assert args.as_json is False


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_stats_json_output(capsys):
    assert _run(["stats", "--json"], StubService()) == 0

    out = capsys.readouterr().out
    assert '"rabbitmq"' in out
    assert '"messages_per_second": 10' in out


def test_health_exit_code_reflects_brokers():
    assert _run(["health"], StubService(health={"rabbitmq": "ok"})) == 0
    assert _run(["health"], StubService(health={"rabbitmq": "ok", "kafka": "unavailable"})) == 1


def test_prune_with_explicit_days():
    assert _run(["prune", "--days", "3"], StubService()) == 0


def test_errors_map_to_exit_codes():
    service = StubService(error=PersistenceError("prune failed"))

    assert _run(["prune", "--days", "3"], service) == ExitCode.PERSISTENCE_ERROR
