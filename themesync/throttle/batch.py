"""Sequential batch runner for content-creating requests.

GitHub budgets content creation per minute (80/min, 500/h), not per
connection, so items are processed one at a time with fixed gaps.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from themesync.throttle.models import BatchPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def run_batched(
    items: Sequence[T],
    worker: Callable[[T, int], Awaitable[R]],
    policy: BatchPolicy | None = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str = "",
) -> list[R]:
    """Run ``worker(item, index)`` for every item, strictly in order.

    Sleeps ``delay_between_items`` inside a batch and ``delay_between_batches``
    between batches, never after the last item. A worker error stops the run
    and propagates.
    """
    policy = policy or BatchPolicy()
    prefix = f"[{label}] " if label else ""
    results: list[R] = []
    total = len(items)
    total_batches = (total + policy.batch_size - 1) // policy.batch_size

    for start in range(0, total, policy.batch_size):
        batch = items[start:start + policy.batch_size]
        if total_batches > 1:
            logger.info(
                "%sProcessing batch %d/%d (%d items)",
                prefix, start // policy.batch_size + 1, total_batches, len(batch),
            )
        for offset, item in enumerate(batch):
            index = start + offset
            try:
                results.append(await worker(item, index))
            except Exception:
                logger.error("%sError processing item %d of %d", prefix, index + 1, total)
                raise
            if offset < len(batch) - 1:
                await sleep(policy.delay_between_items)
        if start + policy.batch_size < total:
            await sleep(policy.delay_between_batches)

    return results
