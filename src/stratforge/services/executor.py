"""
Client for the remote Python execution sandbox.
"""

from __future__ import annotations

import httpx
import structlog

from stratforge.core.models import ExecutionResult
from stratforge.providers.base import ProviderError, RateLimitError

logger = structlog.get_logger()


class ExecutorService:
    """Runs a Python script in a hosted sandbox and reports its output."""

    name = "executor"

    def __init__(
        self,
        url: str,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self._client = client

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def execute(self, code: str) -> ExecutionResult:
        """
        Execute a script remotely.

        Throttling (HTTP 429) raises RateLimitError; transport and HTTP
        failures are reported as an unsuccessful result.
        """
        client = await self._get_http_client()

        try:
            response = await client.post(self.url, json={"code": code})
        except httpx.HTTPError as e:
            logger.warning("Executor request failed", url=self.url, error=str(e))
            return ExecutionResult(success=False, error=f"Execution request failed: {e}")

        if response.status_code == 429:
            raise RateLimitError("Executor API error: 429 Too Many Requests", provider=self.name)
        if response.status_code >= 400:
            return ExecutionResult(
                success=False,
                error=f"Execution API error: {response.status_code} {response.reason_phrase}",
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Malformed executor response: {e}", provider=self.name)

        return ExecutionResult(
            success=bool(data.get("success")),
            output=data.get("output") or data.get("stdout") or "",
            error=data.get("error") or data.get("stderr") or None,
        )
