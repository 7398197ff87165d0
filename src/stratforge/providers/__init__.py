"""Completion provider implementations."""

from stratforge.providers.base import (
    AuthenticationError,
    BaseProvider,
    ProviderError,
    RateLimitError,
)
from stratforge.providers.openrouter_provider import OpenRouterProvider

__all__ = [
    "AuthenticationError",
    "BaseProvider",
    "ProviderError",
    "RateLimitError",
    "OpenRouterProvider",
]
