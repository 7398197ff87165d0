"""
Base provider interface for completion APIs.

All provider implementations must inherit from BaseProvider.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from stratforge.core.models import (
    CompletionRequest,
    CompletionResponse,
    Message,
    ModelConfig,
    UsageStats,
)

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Base exception for provider and remote service errors."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.retryable = retryable


class RateLimitError(ProviderError):
    """Raised when the upstream service throttles a request (HTTP 429)."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message, provider, status_code=429, retryable=True)
        self.retry_after = retry_after


class AuthenticationError(ProviderError):
    """Raised when authentication fails."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message, provider, status_code=401, retryable=False)


class BaseProvider(ABC):
    """
    Abstract base class for completion providers.

    Implementations must provide complete_async() and count_tokens().
    """

    name: str = "base"
    _health_check_model: str = "anthropic/claude-sonnet-4"

    def __init__(self, api_key: str | None = None, **kwargs: Any):
        self.api_key = api_key

    @abstractmethod
    async def complete_async(self, request: CompletionRequest) -> CompletionResponse:
        """
        Generate a completion asynchronously.

        Args:
            request: The completion request

        Returns:
            CompletionResponse with the generated content
        """
        ...

    @abstractmethod
    def count_tokens(self, text: str, model: str | None = None) -> int:
        """Count tokens in text for the given model."""
        ...

    def count_message_tokens(self, messages: list[Message], model: str | None = None) -> int:
        """Count tokens in a list of messages."""
        return sum(self.count_tokens(m.content, model) + 4 for m in messages)

    async def health_check(self) -> bool:
        """
        Check if the provider answers a minimal request.

        Returns:
            True if healthy, False otherwise
        """
        try:
            test_request = CompletionRequest(
                messages=[Message.user("test")],
                config=ModelConfig(model=self._health_check_model, max_tokens=1, temperature=0),
            )
            await self.complete_async(test_request)
            return True
        except ProviderError as e:
            logger.debug("Health check failed for %s: %s", self.name, str(e))
            return False

    def _create_response(
        self,
        content: str,
        model: str,
        usage: UsageStats | None = None,
        finish_reason: str | None = None,
        latency_ms: float = 0.0,
        metadata: dict[str, Any] | None = None,
    ) -> CompletionResponse:
        """Create a standardized completion response."""
        return CompletionResponse(
            id=f"sf-{uuid.uuid4().hex[:16]}",
            model=model,
            content=content,
            finish_reason=finish_reason,
            usage=usage or UsageStats(),
            latency_ms=latency_ms,
            created_at=datetime.now(timezone.utc),
            metadata=metadata or {},
        )
