"""
Rate limiting and request queuing module.

Serializes outbound API calls inside a per-minute budget and retries
throttled requests with exponential backoff.
"""

from stratforge.queue.rate_limiter import (
    DrainState,
    ErrorKind,
    QueuedUnit,
    QueueStats,
    QueueStatus,
    RateLimitConfig,
    RateWindow,
    RequestQueue,
    classify_error,
    format_duration,
    get_default_queue,
)

__all__ = [
    "DrainState",
    "ErrorKind",
    "QueuedUnit",
    "QueueStats",
    "QueueStatus",
    "RateLimitConfig",
    "RateWindow",
    "RequestQueue",
    "classify_error",
    "format_duration",
    "get_default_queue",
]
