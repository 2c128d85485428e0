from __future__ import annotations

from typing import Any

from brokerwatch.clients.base import BaseHTTPClient


class RabbitMQManagementClient(BaseHTTPClient):
    """RabbitMQ management plugin HTTP API (port 15672 by default)."""

    def __init__(
        self,
        base_url: str,
        username: str = "guest",
        password: str = "guest",
        *,
        metrics_url: str | None = None,
        timeout: float = 5.0,
        max_retries: int = 2,
        backoff_factor: float = 0.5,
    ) -> None:
        super().__init__(
            base_url,
            timeout=timeout,
            max_retries=max_retries,
            backoff_factor=backoff_factor,
            auth=(username, password),
        )
        self._metrics_url = metrics_url

    async def overview(self) -> dict[str, Any]:
        data = await self.get_json("/api/overview")
        return data if isinstance(data, dict) else {}

    async def nodes(self) -> list[dict[str, Any]]:
        data = await self.get_json("/api/nodes")
        return data if isinstance(data, list) else []

    async def prometheus_text(self) -> str:
        """Scrape the rabbitmq_prometheus plugin endpoint (port 15692)."""
        return await self.get_text(self._metrics_url or "/metrics")
