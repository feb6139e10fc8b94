"""Collect the in-scope files of a branch for upload to the theme store."""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel

from themesync.github.base import ObjectStore
from themesync.github.models import BlobData, TreeEntry
from themesync.sync.scope import SyncScope
from themesync.sync.snapshot import read_branch_snapshot
from themesync.throttle import BatchPolicy, run_batched

logger = logging.getLogger(__name__)


class ThemeFile(BaseModel):
    path: str
    content: bytes


def decode_blob(blob: BlobData) -> bytes:
    if blob.encoding == "base64":
        return base64.b64decode(blob.content)
    return blob.content.encode("utf-8")


async def collect_theme_files(
    store: ObjectStore,
    ref: str,
    scope: SyncScope,
    batch: BatchPolicy | None = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> list[ThemeFile]:
    """Fetch every in-scope blob of branch *ref*, sorted by path."""
    snapshot = await read_branch_snapshot(store, ref)
    entries = [snapshot.entries[path] for path in sorted(snapshot.entries) if scope.includes(path)]
    logger.info("Collecting %d theme files from %s", len(entries), ref)

    async def _fetch(entry: TreeEntry, _index: int) -> ThemeFile:
        blob = await store.get_blob(entry.sha)
        return ThemeFile(path=entry.path, content=decode_blob(blob))

    return await run_batched(entries, _fetch, batch, sleep=sleep, label=ref)
