from __future__ import annotations

from typing import Iterable, Mapping, Protocol

from brokerwatch.domain.models import BrokerMetricsSample, BrokerName, DataSource


class BrokerCollector(Protocol):
    """Contract shared by every broker adapter.

    ``collect`` never raises for an unreachable broker: degraded states come
    back as data (``connected=False`` or per-field quality tags).
    """

    name: BrokerName

    async def collect(self) -> BrokerMetricsSample: ...


def format_uptime(uptime_ms: float) -> str:
    total_seconds = int(uptime_ms // 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours}h {minutes}m {seconds}s"


def measured_or_missing(value: object) -> DataSource:
    return DataSource.missing if value is None else DataSource.measured


def overall_source(
    quality: Mapping[str, DataSource], required: Iterable[str]
) -> DataSource:
    """Collapse a connected sample's per-field tags into its trust tier.

    ``measured`` only when every required field was measured, ``fallback``
    otherwise. ``missing`` is left to disconnected samples.
    """
    if all(quality.get(field) == DataSource.measured for field in required):
        return DataSource.measured
    return DataSource.fallback
