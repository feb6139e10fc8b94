"""Rate limiting: retrying executor and sequential batch runner."""

from themesync.throttle.batch import run_batched
from themesync.throttle.executor import (
    RateLimitedExecutor,
    classify_rate_limit,
    server_wait_hint,
)
from themesync.throttle.models import BatchPolicy, RateLimitKind, RetryPolicy

__all__ = [
    "BatchPolicy",
    "RateLimitKind",
    "RateLimitedExecutor",
    "RetryPolicy",
    "classify_rate_limit",
    "run_batched",
    "server_wait_hint",
]
