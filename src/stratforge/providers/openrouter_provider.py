"""
OpenRouter provider implementation.

OpenRouter exposes an OpenAI-compatible chat completions endpoint, so the
official async OpenAI client is pointed at its base URL.
"""

from __future__ import annotations

import time
from typing import Any

import tiktoken
from openai import APIError, APIStatusError, AsyncOpenAI, RateLimitError as OpenAIRateLimitError

from stratforge.core.models import CompletionRequest, CompletionResponse, Message, UsageStats
from stratforge.providers.base import (
    AuthenticationError,
    BaseProvider,
    ProviderError,
    RateLimitError,
)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterProvider(BaseProvider):
    """
    Chat completions through OpenRouter.

    Model ids are OpenRouter slugs such as ``anthropic/claude-sonnet-4`` or
    ``perplexity/sonar-pro``.
    """

    name = "openrouter"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        app_name: str = "stratforge",
        **kwargs: Any,
    ):
        super().__init__(api_key, **kwargs)
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or DEFAULT_BASE_URL,
            default_headers={"X-Title": app_name},
            max_retries=0,  # Retries belong to the request queue
        )
        self._tokenizer: tiktoken.Encoding | None = None

    def _get_tokenizer(self) -> tiktoken.Encoding:
        """Get the shared approximation tokenizer."""
        if self._tokenizer is None:
            self._tokenizer = tiktoken.get_encoding("cl100k_base")
        return self._tokenizer

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert messages to the OpenAI wire format."""
        return [{"role": msg.role.value, "content": msg.content} for msg in messages]

    async def complete_async(self, request: CompletionRequest) -> CompletionResponse:
        """Generate a completion through OpenRouter."""
        start_time = time.perf_counter()
        model = request.config.model

        params: dict[str, Any] = {
            "model": model,
            "messages": self._convert_messages(request.messages),
            "temperature": request.config.temperature,
            "max_tokens": request.config.max_tokens,
        }

        try:
            response = await self.client.chat.completions.create(**params)
        except OpenAIRateLimitError as e:
            retry_after = e.response.headers.get("retry-after") if e.response else None
            raise RateLimitError(
                str(e),
                provider=self.name,
                retry_after=float(retry_after) if retry_after else None,
            )
        except APIStatusError as e:
            if e.status_code == 401:
                raise AuthenticationError(str(e), provider=self.name)
            raise ProviderError(
                f"OpenRouter API error: {e.status_code} {e.message}",
                provider=self.name,
                status_code=e.status_code,
                retryable=e.status_code >= 500,
            )
        except APIError as e:
            # Connection failures and timeouts
            raise ProviderError(str(e), provider=self.name, retryable=True)

        latency_ms = (time.perf_counter() - start_time) * 1000

        usage = UsageStats(
            input_tokens=response.usage.prompt_tokens if response.usage else 0,
            output_tokens=response.usage.completion_tokens if response.usage else 0,
            total_tokens=response.usage.total_tokens if response.usage else 0,
        )

        choice = response.choices[0] if response.choices else None
        return self._create_response(
            content=(choice.message.content if choice else None) or "",
            model=model,
            usage=usage,
            finish_reason=choice.finish_reason if choice else None,
            latency_ms=latency_ms,
            metadata={"openrouter_id": response.id},
        )

    def count_tokens(self, text: str, model: str | None = None) -> int:
        """Approximate token count using the cl100k_base encoding."""
        return len(self._get_tokenizer().encode(text))
