"""
Rate limiting and request queue management.

Serializes outbound API calls through a single FIFO queue, keeps them inside a
requests-per-minute budget with a minimum spacing between dispatches, and
retries units that the upstream service throttled with exponential backoff.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any, Awaitable, Callable, Generic, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger()

T = TypeVar("T")

WINDOW_SECONDS = 60.0

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[Any]]


class ErrorKind(str, Enum):
    """How the queue treats a failed action."""

    THROTTLED = "throttled"  # Upstream asked us to slow down, retryable
    TERMINAL = "terminal"


class DrainState(str, Enum):
    """State of the queue's driver loop."""

    IDLE = "idle"
    DRAINING = "draining"


_THROTTLE_MARKERS = ("429", "too many requests", "rate limit")


def _status_of(error: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def classify_error(error: BaseException) -> ErrorKind:
    """
    Decide whether an error is an upstream throttling signal.

    An error is throttled if it carries an HTTP 429 status (on the error or
    its attached response) or its message mentions "429", "too many
    requests" or "rate limit". Everything else is terminal.
    """
    if _status_of(error) == 429:
        return ErrorKind.THROTTLED

    message = str(error).lower()
    if any(marker in message for marker in _THROTTLE_MARKERS):
        return ErrorKind.THROTTLED

    return ErrorKind.TERMINAL


class RateLimitConfig(BaseModel):
    """Configuration for a request queue."""

    model_config = ConfigDict(frozen=True)

    requests_per_minute: int = Field(default=100, gt=0, description="Dispatch budget per rolling minute")
    retry_delay_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Backoff base and minimum spacing between dispatches",
    )
    max_retries: int = Field(default=3, ge=0, description="Throttling retries per unit")

    def backoff_delay(self, retry_count: int) -> float:
        """Delay before retry number ``retry_count`` (1-indexed)."""
        return self.retry_delay_seconds * (2 ** (retry_count - 1))


@dataclass
class QueuedUnit(Generic[T]):
    """A unit of work waiting in the queue."""

    id: str
    action: Callable[[], Awaitable[T]]
    future: asyncio.Future
    submitted_at: float
    retry_count: int = 0


@dataclass
class RateWindow:
    """
    Consumption against the per-minute budget.

    Keeps the dispatch times of the counted requests that are still inside
    the rolling window, so no 60 second span ever holds more than the budget.
    Expired entries are dropped lazily by ``expire``.
    """

    dispatches: deque[float] = field(default_factory=deque)
    last_request_at: float | None = None

    @property
    def window_start(self) -> float | None:
        return self.dispatches[0] if self.dispatches else None

    @property
    def requests_in_window(self) -> int:
        return len(self.dispatches)

    def expire(self, now: float) -> None:
        while self.dispatches and now - self.dispatches[0] >= WINDOW_SECONDS:
            self.dispatches.popleft()

    def live_count(self, now: float) -> int:
        """Requests still inside the window at ``now``, without expiring."""
        return sum(1 for t in self.dispatches if now - t < WINDOW_SECONDS)

    def time_until_reset(self, now: float) -> float:
        """Seconds until the oldest live request leaves the window."""
        for t in self.dispatches:
            remaining = WINDOW_SECONDS - (now - t)
            if remaining > 0:
                return remaining
        return 0.0

    def record(self, dispatched_at: float) -> None:
        self.dispatches.append(dispatched_at)


class QueueStatus(BaseModel):
    """Point-in-time snapshot of a queue, for status displays."""

    model_config = ConfigDict(frozen=True)

    queue_length: int
    is_processing: bool
    requests_in_window: int
    time_until_window_reset: float
    time_since_last_dispatch: float | None
    pending_retries: int = 0
    estimated_wait_time: float = 0.0

    @property
    def has_queue(self) -> bool:
        return self.queue_length > 0

    @property
    def is_waiting(self) -> bool:
        return self.is_processing or self.queue_length > 0 or self.pending_retries > 0


def format_duration(seconds: float) -> str:
    """Format a duration for display, e.g. ``45s`` or ``2m 5s``."""
    total = max(0, int(-(-seconds // 1)))  # ceil
    if total < 60:
        return f"{total}s"
    minutes, rest = divmod(total, 60)
    return f"{minutes}m {rest}s"


@dataclass
class QueueStats:
    """Cumulative queue statistics."""

    total_submitted: int = 0
    total_succeeded: int = 0
    total_failed: int = 0
    total_retries: int = 0
    window_waits: int = 0
    spacing_waits: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_submitted": self.total_submitted,
            "total_succeeded": self.total_succeeded,
            "total_failed": self.total_failed,
            "total_retries": self.total_retries,
            "window_waits": self.window_waits,
            "spacing_waits": self.spacing_waits,
        }


class RequestQueue:
    """
    FIFO queue that runs one request at a time inside a rate budget.

    Features:
    - Single in-flight request, strict FIFO order
    - Rolling requests-per-minute budget
    - Minimum spacing between dispatches
    - Exponential backoff retry for throttled requests, reinserted at the front

    Example:
        queue = RequestQueue(RateLimitConfig(requests_per_minute=20))

        text = await queue.submit(lambda: provider.complete_async(request), "architect")

    ``clock`` and ``sleep`` default to ``time.monotonic`` and
    ``asyncio.sleep`` and can be replaced to drive the queue on virtual time.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        clock: Clock | None = None,
        sleep: Sleep | None = None,
    ):
        self.config = config or RateLimitConfig()
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep

        self._queue: deque[QueuedUnit[Any]] = deque()
        self._window = RateWindow()
        self._state = DrainState.IDLE
        self._driver: asyncio.Task | None = None
        self._retry_tasks: set[asyncio.Task] = set()
        self._stats = QueueStats()

    @property
    def state(self) -> DrainState:
        return self._state

    def submit(
        self,
        action: Callable[[], Awaitable[T]],
        unit_id: str | None = None,
    ) -> asyncio.Future[T]:
        """
        Queue an action and return a future for its result.

        Args:
            action: Zero-argument coroutine function to run
            unit_id: Identifier used in logs (defaults to a time-derived id)

        Returns:
            Future resolving to the action's result, or failing with its
            terminal error
        """
        loop = asyncio.get_running_loop()
        now = self._clock()
        unit: QueuedUnit[T] = QueuedUnit(
            id=unit_id or f"req_{int(time.time() * 1000)}",
            action=action,
            future=loop.create_future(),
            submitted_at=now,
        )

        self._queue.append(unit)
        self._stats.total_submitted += 1
        logger.debug("Request queued", unit_id=unit.id, queue_length=len(self._queue))

        self._kick()
        return unit.future

    def _kick(self) -> None:
        """Start the driver if it is not already running."""
        if self._state == DrainState.DRAINING:
            return
        self._state = DrainState.DRAINING
        self._driver = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        """Driver loop: run queued units until the queue is empty."""
        try:
            while self._queue:
                unit = self._queue.popleft()
                if unit.future.done():
                    # Cancelled by the caller while waiting
                    continue
                await self._run_unit(unit)
        finally:
            # No await between the empty check and this transition, so a
            # delayed reinsertion either lands before the check or sees IDLE.
            self._state = DrainState.IDLE

    async def _run_unit(self, unit: QueuedUnit[Any]) -> None:
        try:
            await self._wait_for_slot()
            dispatched_at = self._clock()
            self._window.last_request_at = dispatched_at
            result = await unit.action()
        except asyncio.CancelledError:
            unit.future.cancel()
            raise
        except Exception as e:
            self._handle_failure(unit, e)
            return

        self._window.record(dispatched_at)
        self._stats.total_succeeded += 1
        if not unit.future.done():
            unit.future.set_result(result)

    async def _wait_for_slot(self) -> None:
        """Suspend until the budget has headroom, then until spacing allows."""
        now = self._clock()
        self._window.expire(now)

        # Loop since a timer may fire a hair before the oldest entry expires
        while self._window.requests_in_window >= self.config.requests_per_minute:
            wait = self._window.time_until_reset(now)
            logger.info(
                "Rate limit reached, waiting for window",
                wait_seconds=round(wait, 2),
                requests_in_window=self._window.requests_in_window,
            )
            self._stats.window_waits += 1
            await self._sleep(wait)
            now = self._clock()
            self._window.expire(now)

        last = self._window.last_request_at
        if last is not None:
            since_last = self._clock() - last
            min_spacing = self.config.retry_delay_seconds
            if since_last < min_spacing:
                wait = min_spacing - since_last
                logger.debug("Enforcing minimum spacing", wait_seconds=round(wait, 2))
                self._stats.spacing_waits += 1
                await self._sleep(wait)

    def _handle_failure(self, unit: QueuedUnit[Any], error: Exception) -> None:
        kind = classify_error(error)

        if kind == ErrorKind.THROTTLED and unit.retry_count < self.config.max_retries:
            unit.retry_count += 1
            delay = self.config.backoff_delay(unit.retry_count)
            self._stats.total_retries += 1
            logger.warning(
                "Rate limit hit, retrying request",
                unit_id=unit.id,
                delay=delay,
                attempt=unit.retry_count,
                max_retries=self.config.max_retries,
            )
            task = asyncio.get_running_loop().create_task(self._requeue_after(unit, delay))
            self._retry_tasks.add(task)
            task.add_done_callback(self._retry_tasks.discard)
            return

        self._stats.total_failed += 1
        logger.warning(
            "Request failed",
            unit_id=unit.id,
            error=str(error),
            error_kind=kind.value,
            retries=unit.retry_count,
        )
        if not unit.future.done():
            unit.future.set_exception(error)

    async def _requeue_after(self, unit: QueuedUnit[Any], delay: float) -> None:
        try:
            await self._sleep(delay)
        except asyncio.CancelledError:
            unit.future.cancel()
            raise
        self._queue.appendleft(unit)
        self._kick()

    def queue_status(self) -> QueueStatus:
        """Get a snapshot of the queue state (does not modify it)."""
        now = self._clock()
        last = self._window.last_request_at
        return QueueStatus(
            queue_length=len(self._queue),
            is_processing=self._state == DrainState.DRAINING,
            requests_in_window=self._window.live_count(now),
            time_until_window_reset=self._window.time_until_reset(now),
            time_since_last_dispatch=None if last is None else now - last,
            pending_retries=len(self._retry_tasks),
            estimated_wait_time=self.estimated_wait_time(),
        )

    def estimated_wait_time(self) -> float:
        """
        Rough wait in seconds for a newly submitted request.

        Queue length times the minimum spacing; an approximation that ignores
        the window budget and pending retries.
        """
        return len(self._queue) * self.config.retry_delay_seconds

    def get_stats(self) -> QueueStats:
        """Get queue statistics."""
        return self._stats

    async def join(self) -> None:
        """Wait until the queue is empty, idle and has no retries scheduled."""
        while self._state == DrainState.DRAINING or self._retry_tasks:
            pending = [t for t in (self._driver, *self._retry_tasks) if t is not None]
            await asyncio.gather(*pending, return_exceptions=True)


@lru_cache()
def get_default_queue() -> RequestQueue:
    """
    Shared queue built from settings.

    A convenience alias over an explicit ``RequestQueue``; callers that need
    their own budget should construct one.
    """
    from stratforge.core.config import get_settings

    settings = get_settings().queue
    return RequestQueue(
        RateLimitConfig(
            requests_per_minute=settings.requests_per_minute,
            retry_delay_seconds=settings.retry_delay_seconds,
            max_retries=settings.max_retries,
        )
    )
