"""
brokerwatch command line.

Commands:
    brokerwatch stats [--refresh] [--json]   - Collect and compare current broker metrics
    brokerwatch history [--hours N] [--json] - Show persisted samples aligned by capture time
    brokerwatch prune [--days N]             - Delete samples older than the retention window
    brokerwatch health                       - Quick ok/unavailable per broker
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Awaitable, Callable, Sequence

from rich.console import Console
from rich.table import Table

from brokerwatch.config import get_settings
from brokerwatch.core.errors import main_with_error_handling
from brokerwatch.db.session import dispose_engine
from brokerwatch.domain.models import BrokerMetricsSample, ComparisonReport, HistoryResult
from brokerwatch.logging import configure_logging
from brokerwatch.service import BrokerMetricsService

console = Console(no_color=os.environ.get("NO_COLOR") is not None)


def _fmt(value: Any, suffix: str = "") -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:,.2f}{suffix}"
    if isinstance(value, int):
        return f"{value:,}{suffix}"
    return f"{value}{suffix}"


def _sample_row(sample: BrokerMetricsSample) -> list[str]:
    return [
        sample.broker_name.value,
        "[green]yes[/green]" if sample.connected else "[red]no[/red]",
        _fmt(sample.messages_per_second),
        _fmt(sample.p99_latency_ms, " ms"),
        _fmt(sample.memory_usage_mb, " MB"),
        _fmt(sample.connection_count),
        sample.data_source.value if sample.data_source else "-",
    ]


_SAMPLE_COLUMNS = ["Broker", "Connected", "Msg/s", "p99", "Memory", "Conns", "Source"]


def render_report(report: ComparisonReport) -> None:
    table = Table(title=f"Broker metrics @ {report.timestamp.isoformat()}")
    for column in _SAMPLE_COLUMNS:
        table.add_column(column)
    for sample in report.brokers.values():
        table.add_row(*_sample_row(sample))
    console.print(table)

    deltas = report.comparison
    console.print(f"\n[bold]Throughput:[/bold] {deltas.throughput_improvement or 'n/a'}")
    console.print(f"[bold]p99 latency:[/bold] {deltas.latency_improvement or 'n/a'}")
    console.print(f"[bold]Memory:[/bold] {deltas.memory_efficiency or 'n/a'}")
    for reason in report.suppressed_reasons:
        console.print(f"  [yellow]⚠ {reason}[/yellow]")
    console.print(f"\n{report.data_quality.summary}")


def render_history(history: HistoryResult) -> None:
    table = Table(
        title=(
            f"History {history.time_range.start.isoformat()} → "
            f"{history.time_range.end.isoformat()}"
        )
    )
    table.add_column("Captured")
    for column in _SAMPLE_COLUMNS:
        table.add_column(column)
    for entry in history.samples:
        for sample in entry.brokers.values():
            table.add_row(entry.timestamp.isoformat(), *_sample_row(sample))
    console.print(table)


async def _with_service(action: Callable[[BrokerMetricsService], Awaitable[int]]) -> int:
    service = BrokerMetricsService.from_settings(get_settings())
    try:
        return await action(service)
    finally:
        await dispose_engine()


def stats_command(refresh: bool = False, as_json: bool = False) -> int:
    async def run(service: BrokerMetricsService) -> int:
        report = await service.get_current_metrics(force_refresh=refresh)
        if as_json:
            print(report.model_dump_json(indent=2))
        else:
            render_report(report)
        return 0

    return asyncio.run(_with_service(run))


def history_command(hours: float = 24, as_json: bool = False) -> int:
    async def run(service: BrokerMetricsService) -> int:
        history = await service.get_historical_metrics(hours)
        if as_json:
            print(history.model_dump_json(indent=2))
        else:
            render_history(history)
        return 0

    return asyncio.run(_with_service(run))


def prune_command(days: int | None = None) -> int:
    days_to_keep = days if days is not None else get_settings().retention_days

    async def run(service: BrokerMetricsService) -> int:
        deleted = await service.prune_old_metrics(days_to_keep)
        console.print(f"[green]✓[/green] Pruned {deleted} samples older than {days_to_keep} days")
        return 0

    return asyncio.run(_with_service(run))


def health_command() -> int:
    async def run(service: BrokerMetricsService) -> int:
        status = await service.health()
        print(json.dumps(status, indent=2))
        return 0 if all(v == "ok" for v in status.values()) else 1

    return asyncio.run(_with_service(run))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="brokerwatch", description="Multi-broker telemetry collection and comparison"
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    stats_parser = subparsers.add_parser("stats", help="Collect and compare current metrics")
    stats_parser.add_argument("--refresh", action="store_true", help="Bypass the cache")
    stats_parser.add_argument("--json", action="store_true", dest="as_json", help="Emit JSON")

    history_parser = subparsers.add_parser("history", help="Show persisted samples")
    history_parser.add_argument(
        "--hours", type=float, default=24, help="Window (1-168, default 24)"
    )
    history_parser.add_argument("--json", action="store_true", dest="as_json", help="Emit JSON")

    prune_parser = subparsers.add_parser("prune", help="Apply the retention policy")
    prune_parser.add_argument("--days", type=int, default=None, help="Days of samples to keep")

    subparsers.add_parser("health", help="Quick per-broker health check")
    return parser


@main_with_error_handling()
def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level.upper())

    if args.command == "stats":
        return stats_command(refresh=args.refresh, as_json=args.as_json)
    if args.command == "history":
        return history_command(hours=args.hours, as_json=args.as_json)
    if args.command == "prune":
        return prune_command(days=args.days)
    if args.command == "health":
        return health_command()
    return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
