"""
Base classes for external integrations.

Provides the shared error types and the HTTP client lifecycle used by the
intervals.icu and Google Drive clients.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class IntegrationError(Exception):
    """Base exception for integration errors."""

    def __init__(self, message: str, provider: str = "", code: Optional[str] = None):
        self.provider = provider
        self.code = code
        super().__init__(message)


class RateLimitError(IntegrationError):
    """Rate limit exceeded."""

    def __init__(
        self,
        message: str,
        provider: str,
        retry_after: Optional[int] = None,
    ):
        self.retry_after = retry_after
        super().__init__(message, provider, "rate_limit")


class AuthenticationError(IntegrationError):
    """Authentication failed or expired."""
    pass


class RequestTimeoutError(IntegrationError):
    """A single request took longer than the configured timeout."""

    def __init__(self, message: str, provider: str):
        super().__init__(message, provider, "timeout")


def get_retry_after(response: httpx.Response, default: int = 60) -> int:
    """Seconds to wait from a rate-limit response."""
    retry_after = response.headers.get("Retry-After")
    if retry_after:
        try:
            return int(retry_after)
        except ValueError:
            pass
    return default


def error_message(response: httpx.Response) -> str:
    """Best-effort message from an error response body."""
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if data.get("message"):
            return str(data["message"])
    return f"HTTP {response.status_code}"


class IntegrationClient(ABC):
    """
    Abstract base class for integration API clients.

    Owns a lazily created ``httpx.AsyncClient``. Pass ``transport`` to route
    requests somewhere other than the network.
    """

    provider: str = "base"
    base_url: str = ""

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _send(
        self,
        method: str,
        url: str,
        headers_extra: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request, mapping transport failures onto IntegrationError."""
        headers = self.get_auth_headers()
        if headers_extra:
            headers.update(headers_extra)

        client = await self._get_client()
        try:
            return await client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(
                f"{self.provider} request timed out after {self.timeout:.0f}s",
                self.provider,
            ) from e
        except httpx.RequestError as e:
            raise IntegrationError(
                f"Could not reach {self.provider}: {e}",
                self.provider,
                "network",
            ) from e

    @abstractmethod
    def get_auth_headers(self) -> Dict[str, str]:
        """Authorization headers for API requests."""
        pass
