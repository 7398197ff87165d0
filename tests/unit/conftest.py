"""Shared fixtures for unit tests."""

from __future__ import annotations

import asyncio
import heapq
from typing import Any, Awaitable

import pytest

from stratforge.core.models import CompletionRequest, CompletionResponse
from stratforge.providers.base import BaseProvider
from stratforge.queue import RateLimitConfig, RequestQueue


class FakeClock:
    """
    Virtual time for the request queue.

    ``sleep`` parks the caller until ``run_until`` advances the clock to its
    wake time, so waits complete instantly and in wake-time order.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []
        self._sleepers: list[tuple[float, int, asyncio.Future]] = []
        self._seq = 0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        future = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self.now + max(delay, 0.0), self._seq, future))
        self._seq += 1
        await future

    async def _settle(self) -> None:
        for _ in range(50):
            await asyncio.sleep(0)

    async def run_until(self, awaitable: Awaitable[Any]) -> Any:
        """Drive virtual time until ``awaitable`` completes and return its result."""
        task = asyncio.ensure_future(awaitable)
        for _ in range(10_000):
            await self._settle()
            if task.done():
                return task.result()
            if not self._sleepers:
                continue
            wake, _, future = heapq.heappop(self._sleepers)
            self.now = max(self.now, wake)
            if not future.done():
                future.set_result(None)
        raise AssertionError("virtual time did not converge")


class FakeProvider(BaseProvider):
    """Provider that answers from a list of scripted replies."""

    name = "fake"

    def __init__(self, replies: list[Any] | None = None):
        super().__init__(api_key="test-key")
        self.replies = list(replies or [])
        self.requests: list[CompletionRequest] = []

    async def complete_async(self, request: CompletionRequest) -> CompletionResponse:
        self.requests.append(request)
        reply = self.replies.pop(0) if self.replies else "APPROVED"
        if isinstance(reply, Exception):
            raise reply
        return self._create_response(content=reply, model=request.config.model)

    def count_tokens(self, text: str, model: str | None = None) -> int:
        return len(text) // 4


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_queue(clock):
    """Build a queue on virtual time."""

    def factory(**config: Any) -> RequestQueue:
        return RequestQueue(RateLimitConfig(**config), clock=clock, sleep=clock.sleep)

    return factory


@pytest.fixture
def fast_queue() -> RequestQueue:
    """Real-time queue with negligible spacing, for service tests."""
    return RequestQueue(RateLimitConfig(retry_delay_seconds=0.001))


@pytest.fixture
def provider_factory():
    """Build a FakeProvider with scripted replies."""
    return FakeProvider
