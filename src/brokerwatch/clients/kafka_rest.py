from __future__ import annotations

from typing import Any

from brokerwatch.clients.base import BaseHTTPClient


class KafkaRestClient(BaseHTTPClient):
    """Kafka REST proxy client (Confluent REST API v2 style)."""

    def _headers(self) -> dict[str, str]:
        return {"Accept": "application/vnd.kafka.v2+json, application/json"}

    async def brokers(self) -> list[Any]:
        data = await self.get_json("/brokers")
        if isinstance(data, dict):
            return list(data.get("brokers") or [])
        return list(data or [])

    async def topics(self) -> list[Any]:
        data = await self.get_json("/topics")
        if isinstance(data, dict):
            return list(data.get("topics") or [])
        return list(data or [])

    async def topic(self, name: str) -> dict[str, Any]:
        data = await self.get_json(f"/topics/{name}")
        return data if isinstance(data, dict) else {}

    async def broker_stats(self, broker_id: Any) -> dict[str, Any]:
        data = await self.get_json(f"/brokers/{broker_id}/stats")
        return data if isinstance(data, dict) else {}

    async def metrics_text(self, url: str) -> str:
        return await self.get_text(url)
