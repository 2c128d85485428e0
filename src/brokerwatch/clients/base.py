from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from brokerwatch.core.errors import BrokerConnectionError

logger = structlog.get_logger()


class RetryableHTTPError(BrokerConnectionError):
    """HTTP errors that should be retried."""


def is_retryable_status(status_code: int) -> bool:
    """Determine if HTTP status code is retryable."""
    return status_code in (429, 502, 503, 504)


class BaseHTTPClient:
    """Base HTTP client for broker control planes.

    Every call carries a bounded timeout. Overloaded upstreams (429/5xx
    gateway errors) are retried with exponential backoff; anything else
    surfaces immediately as ``BrokerConnectionError`` so the caller can move to
    its next fallback tier.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        max_retries: int = 2,
        backoff_factor: float = 0.5,
        auth: tuple[str, str] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._backoff_factor = backoff_factor
        self._auth = auth

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> dict[str, str]:
        """Override to provide custom headers."""
        return {"Accept": "application/json"}

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self._base_url}{path}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RetryableHTTPError),
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=self._backoff_factor, max=2),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._send(method, path, params=params, headers=headers)
        raise BrokerConnectionError(f"{method} {path}: no attempt made")  # pragma: no cover

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        url = self._url(path)
        req_headers = self._headers()
        if headers:
            req_headers.update(headers)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, auth=self._auth) as client:
                response = await client.request(method, url, params=params, headers=req_headers)
        except httpx.TimeoutException as exc:
            logger.debug("http_timeout", method=method, url=url, timeout=self._timeout)
            raise BrokerConnectionError(f"timeout calling {url}", {"url": url}) from exc
        except httpx.HTTPError as exc:
            logger.debug("http_network_error", method=method, url=url, error=str(exc))
            raise BrokerConnectionError(str(exc) or type(exc).__name__, {"url": url}) from exc

        if is_retryable_status(response.status_code):
            logger.warning(
                "http_retryable_error",
                status=response.status_code,
                method=method,
                url=url,
            )
            raise RetryableHTTPError(
                f"HTTP {response.status_code} from {url}",
                {"url": url},
                status_code=response.status_code,
            )

        if response.is_error:
            raise BrokerConnectionError(
                f"HTTP {response.status_code} from {url}",
                {"url": url},
                status_code=response.status_code,
            )
        return response

    async def get_json(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        response = await self._request("GET", path, params=params)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise BrokerConnectionError(f"invalid JSON from {response.url}") from exc

    async def get_text(self, path: str) -> str:
        response = await self._request("GET", path, headers={"Accept": "text/plain"})
        return response.text
