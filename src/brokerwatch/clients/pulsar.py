from __future__ import annotations

from typing import Any

from brokerwatch.clients.base import BaseHTTPClient
from brokerwatch.core.errors import BrokerConnectionError


class PulsarAdminClient(BaseHTTPClient):
    """Pulsar admin REST API (port 8080 by default)."""

    def __init__(self, base_url: str, cluster: str = "standalone", **kwargs: Any) -> None:
        super().__init__(base_url, **kwargs)
        self._cluster = cluster

    @property
    def cluster(self) -> str:
        return self._cluster

    async def brokers(self) -> list[str]:
        """List active brokers, trying the cluster-scoped endpoint first."""
        try:
            data = await self.get_json(f"/admin/v2/brokers/{self._cluster}")
        except BrokerConnectionError as exc:
            if exc.status_code is None:
                raise
            data = await self.get_json("/admin/v2/brokers")
        return [str(b) for b in data] if isinstance(data, list) else []

    async def broker_stats(self, broker: str) -> dict[str, Any]:
        data = await self.get_json(f"/admin/v2/brokers/{self._cluster}/{broker}/stats")
        return data if isinstance(data, dict) else {}

    async def metrics_text(self) -> str:
        return await self.get_text("/metrics")
