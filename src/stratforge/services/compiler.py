"""
Client for the remote Solidity compiler API.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from stratforge.core.models import CompilationResult
from stratforge.providers.base import ProviderError, RateLimitError

logger = structlog.get_logger()

DEFAULT_COMPILER_SETTINGS: dict[str, Any] = {
    "optimizer": {"enabled": True, "runs": 200},
    "outputSelection": {"*": {"*": ["abi", "evm.bytecode"]}},
}


class CompilerService:
    """
    Compiles Solidity source through a solc-as-a-service endpoint.

    The endpoint accepts ``{"source": ..., "settings": ...}`` and answers with
    a standard-JSON style payload holding ``errors`` and ``contracts``.
    """

    name = "compiler"

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

    async def compile(
        self,
        source: str,
        settings: dict[str, Any] | None = None,
    ) -> CompilationResult:
        """
        Compile a contract.

        Throttling (HTTP 429) raises RateLimitError so the request queue can
        retry it; any other failure is reported as an unsuccessful result.
        """
        client = await self._get_http_client()
        payload = {"source": source, "settings": settings or DEFAULT_COMPILER_SETTINGS}

        try:
            response = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            logger.warning("Compiler request failed", url=self.url, error=str(e))
            return CompilationResult(success=False, errors=[f"Compilation request failed: {e}"])

        if response.status_code == 429:
            raise RateLimitError("Compiler API error: 429 Too Many Requests", provider=self.name)
        if response.status_code >= 400:
            return CompilationResult(
                success=False,
                errors=[f"Compilation API error: {response.status_code} {response.reason_phrase}"],
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Malformed compiler response: {e}", provider=self.name)

        return parse_compiler_output(data)


def parse_compiler_output(data: dict[str, Any]) -> CompilationResult:
    """Map a compiler JSON payload to a CompilationResult."""
    errors = [
        err.get("formattedMessage") or err.get("message") or str(err)
        for err in data.get("errors") or []
        if isinstance(err, dict) and err.get("severity", "error") == "error"
    ]
    if errors:
        return CompilationResult(success=False, errors=errors)

    contracts = data.get("contracts") or {}
    for source_contracts in contracts.values():
        for contract_name, contract_data in (source_contracts or {}).items():
            bytecode = contract_data.get("evm", {}).get("bytecode", {}).get("object", "")
            return CompilationResult(
                success=True,
                contract_name=contract_name,
                abi=contract_data.get("abi", []),
                bytecode_size=len(bytecode) // 2,
            )

    return CompilationResult(success=True)
