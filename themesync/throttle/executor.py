"""Retry wrapper for GitHub API calls that hit primary or secondary rate limits.

GitHub answers 403 or 429 in both cases. A primary limit carries
``x-ratelimit-remaining: 0`` (and usually ``x-ratelimit-reset``); a secondary
limit is only recognisable by its message. Everything else passes straight
through to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from themesync.throttle.models import RateLimitKind, RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]

SECONDARY_MARKERS = ("secondary rate limit", "abuse detection", "rate limit exceeded")


def _error_message(exc: BaseException) -> str:
    data = getattr(exc, "data", None)
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return str(exc)


def _error_headers(exc: BaseException) -> dict[str, str]:
    headers = getattr(exc, "headers", None) or {}
    return {str(k).lower(): str(v) for k, v in dict(headers).items()}


def classify_rate_limit(exc: BaseException) -> RateLimitKind | None:
    """Return the rate-limit kind for *exc*, or None if it is not one."""
    if getattr(exc, "status", None) not in (403, 429):
        return None
    message = _error_message(exc).lower()
    if any(marker in message for marker in SECONDARY_MARKERS):
        return RateLimitKind.secondary
    if _error_headers(exc).get("x-ratelimit-remaining") == "0":
        return RateLimitKind.primary
    return None


def server_wait_hint(exc: BaseException, now: float) -> float | None:
    """Seconds the server asked us to wait, from retry-after or x-ratelimit-reset."""
    headers = _error_headers(exc)
    retry_after = headers.get("retry-after")
    if retry_after:
        try:
            return max(float(retry_after), 0.0)
        except ValueError:
            pass
    reset = headers.get("x-ratelimit-reset")
    if reset:
        try:
            wait = float(reset) - now
        except ValueError:
            return None
        if wait > 0:
            return wait
    return None


class RateLimitedExecutor:
    """Runs awaitables with spacing, rate-limit classification and backoff.

    ``sleep`` and ``clock`` are injectable so tests never actually wait.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        label: str = "",
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._clock = clock
        self._prefix = f"[{label}] " if label else ""

    def retry_delay(self, kind: RateLimitKind, exc: BaseException, attempt: int) -> float:
        """Compute the wait before retry number ``attempt + 1``."""
        hint = server_wait_hint(exc, self._clock())
        if hint is not None and hint > 0:
            return hint
        delay = min(self.policy.base_delay * (2**attempt), self.policy.max_delay)
        if kind is RateLimitKind.secondary:
            delay = max(delay, self.policy.secondary_min_wait)
        return delay

    async def execute(
        self,
        request_fn: Callable[[], Awaitable[T]],
        *,
        operation: str = "API request",
    ) -> T:
        policy = self.policy
        attempts = policy.max_retries + 1
        # Spacing before the first attempt keeps bursts under the secondary limit.
        await self._sleep(policy.spacing)
        attempt = 0
        while True:
            try:
                return await request_fn()
            except Exception as exc:
                kind = classify_rate_limit(exc)
                if kind is None:
                    raise
                if attempt >= policy.max_retries:
                    logger.error(
                        "%s%s rate limit exceeded for %s after %d attempts, giving up",
                        self._prefix, kind.value.capitalize(), operation, attempts,
                    )
                    raise
                delay = self.retry_delay(kind, exc, attempt)
                logger.warning(
                    "%s%s rate limit hit for %s, retrying in %.1fs (attempt %d/%d)",
                    self._prefix, kind.value.capitalize(), operation, delay,
                    attempt + 2, attempts,
                )
                await self._sleep(delay)
            attempt += 1
