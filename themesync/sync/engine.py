"""Tree diff and publish engine.

Syncs the in-scope files of one branch onto another as a single commit:
read both heads, diff by blob SHA, copy missing blobs, overlay the changes on
the destination tree and fast-forward the destination ref. When the platform
rejects the publish as a conflict, fall back once to a server-side merge.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from themesync.errors import is_conflict_error
from themesync.github.base import ObjectStore
from themesync.github.models import TreeUpdate
from themesync.sync.blobs import BlobTransfer
from themesync.sync.models import (
    BranchSnapshot,
    FileChange,
    SyncPlan,
    SyncResult,
    SyncStatus,
)
from themesync.sync.scope import SyncScope
from themesync.sync.snapshot import read_branch_snapshot
from themesync.throttle import BatchPolicy, run_batched

logger = logging.getLogger(__name__)

SYNC_MESSAGE_PREFIX = "Sync files from"


def plan_sync(
    source: BranchSnapshot,
    destination: BranchSnapshot,
    scope: SyncScope,
    allow_deletes: bool = False,
) -> SyncPlan:
    """Diff two snapshots by blob SHA. Pure; no I/O.

    Only paths inside *scope* are considered on both sides, so a path the
    scope hides is never added, updated or deleted.
    """
    changes: list[FileChange] = []
    source_paths: set[str] = set()

    for path in sorted(source.entries):
        if not scope.includes(path):
            continue
        source_paths.add(path)
        entry = source.entries[path]
        existing = destination.entries.get(path)
        if existing is not None and existing.sha == entry.sha:
            continue
        changes.append(
            FileChange(
                path=path,
                mode=entry.mode,
                action="add" if existing is None else "update",
                source_sha=entry.sha,
            )
        )

    if allow_deletes:
        for path in sorted(destination.entries):
            if scope.includes(path) and path not in source_paths:
                changes.append(
                    FileChange(path=path, mode=destination.entries[path].mode, action="delete")
                )

    return SyncPlan(source=source.branch, destination=destination.branch, changes=changes)


def sync_commit_message(plan: SyncPlan) -> str:
    parts = [
        f"{count} {label}"
        for count, label in (
            (plan.added, "added"),
            (plan.updated, "updated"),
            (plan.deleted, "deleted"),
        )
        if count
    ]
    return f"{SYNC_MESSAGE_PREFIX} {plan.source} ({', '.join(parts)})"


class TreeSyncEngine:
    """Publishes the diff between two branches as one commit on the destination.

    Args:
        store: Store holding the destination branch.
        source_store: Store holding the source branch; defaults to *store*.
        batch: Spacing for blob uploads.
        sleep: Injected into the batch scheduler (tests pass a no-op).
        label: Log prefix, usually ``owner/repo``.
    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        source_store: ObjectStore | None = None,
        batch: BatchPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        label: str = "",
    ) -> None:
        self._store = store
        self._source_store = source_store or store
        self._batch = batch or BatchPolicy()
        self._sleep = sleep
        self._label = label
        self._prefix = f"[{label}] " if label else ""

    async def plan(
        self,
        source: str,
        destination: str,
        scope: SyncScope,
        allow_deletes: bool = False,
    ) -> SyncPlan:
        """Read both branches and return the plan without writing anything."""
        source_snap, destination_snap = await self._read_snapshots(source, destination)
        return plan_sync(source_snap, destination_snap, scope, allow_deletes)

    async def _read_snapshots(
        self, source: str, destination: str
    ) -> tuple[BranchSnapshot, BranchSnapshot]:
        source_snap = await read_branch_snapshot(self._source_store, source)
        destination_snap = await read_branch_snapshot(self._store, destination)
        return source_snap, destination_snap

    async def sync_branch(
        self,
        source: str,
        destination: str,
        scope: SyncScope,
        allow_deletes: bool = False,
    ) -> SyncResult:
        """Make *destination*'s in-scope files match *source*'s.

        Returns a ``noop`` result when nothing differs, ``committed`` after a
        normal publish, ``merged`` when the merge fallback succeeded and
        ``failed`` when it did not. Errors that are not conflicts propagate.
        """
        logger.info("%sSyncing %s -> %s", self._prefix, source, destination)
        source_snap, destination_snap = await self._read_snapshots(source, destination)
        plan = plan_sync(source_snap, destination_snap, scope, allow_deletes)

        if plan.is_empty:
            logger.info("%sNo changes to sync from %s to %s", self._prefix, source, destination)
            return SyncResult(source=source, destination=destination, status=SyncStatus.noop)

        logger.info(
            "%sFound %d added, %d updated, %d deleted files",
            self._prefix, plan.added, plan.updated, plan.deleted,
        )

        transfer = BlobTransfer(
            self._source_store, self._store, destination_snap.blob_shas()
        )
        updates = await self._prepare_updates(plan, transfer)

        try:
            commit_sha = await self._publish(plan, destination_snap, updates)
        except Exception as e:
            if not is_conflict_error(e):
                raise
            logger.warning(
                "%sConflict publishing %s -> %s (%s); falling back to merge",
                self._prefix, source, destination, e,
            )
            return await self._merge_fallback(plan, transfer, e)

        logger.info(
            "%sCommitted %s to %s: %s",
            self._prefix, commit_sha[:7], destination, sync_commit_message(plan),
        )
        return SyncResult(
            source=source,
            destination=destination,
            status=SyncStatus.committed,
            added=plan.added,
            updated=plan.updated,
            deleted=plan.deleted,
            commit_sha=commit_sha,
            blobs_created=transfer.uploads,
        )

    async def _prepare_updates(
        self, plan: SyncPlan, transfer: BlobTransfer
    ) -> list[TreeUpdate]:
        missing: list[FileChange] = []
        seen: set[str] = set()
        for change in plan.changes:
            sha = change.source_sha
            if sha is None or sha in seen or transfer.is_known(sha):
                continue
            seen.add(sha)
            missing.append(change)

        if missing:
            logger.info("%sCopying %d blobs", self._prefix, len(missing))
            await run_batched(
                missing,
                lambda change, _index: transfer.ensure_blob(change.source_sha, change.path),
                self._batch,
                sleep=self._sleep,
                label=self._label,
            )

        updates: list[TreeUpdate] = []
        for change in plan.changes:
            if change.action == "delete":
                updates.append(TreeUpdate(path=change.path, mode=change.mode, sha=None))
            else:
                sha = await transfer.ensure_blob(change.source_sha, change.path)
                updates.append(TreeUpdate(path=change.path, mode=change.mode, sha=sha))
        return updates

    async def _publish(
        self,
        plan: SyncPlan,
        destination: BranchSnapshot,
        updates: list[TreeUpdate],
    ) -> str:
        tree_sha = await self._store.create_tree(destination.tree_sha, updates)
        commit_sha = await self._store.create_commit(
            sync_commit_message(plan), tree_sha, [destination.commit_sha]
        )
        await self._store.update_ref(destination.branch, commit_sha, force=False)
        return commit_sha

    async def _merge_fallback(
        self, plan: SyncPlan, transfer: BlobTransfer, original: Exception
    ) -> SyncResult:
        """Merge *source* into *destination* server-side after a publish conflict.

        Never raises: a failed merge is logged with the conflict that caused
        it and reported as ``failed``. File counts stay at zero because the
        merge result is not diffed.
        """
        message = f"Merge {plan.source} into {plan.destination} (fallback from file sync)"
        try:
            merge_sha = await self._store.create_merge(plan.destination, plan.source, message)
        except Exception as merge_error:
            logger.error(
                "%sMerge fallback failed for %s -> %s: %s (original error: %s)",
                self._prefix, plan.source, plan.destination, merge_error, original,
            )
            return SyncResult(
                source=plan.source,
                destination=plan.destination,
                status=SyncStatus.failed,
                blobs_created=transfer.uploads,
                error=str(merge_error) or type(merge_error).__name__,
            )

        if merge_sha is None:
            logger.info(
                "%sNothing to merge from %s into %s", self._prefix, plan.source, plan.destination
            )
            return SyncResult(
                source=plan.source,
                destination=plan.destination,
                status=SyncStatus.noop,
                blobs_created=transfer.uploads,
            )

        logger.info(
            "%sMerged %s into %s via fallback (%s)",
            self._prefix, plan.source, plan.destination, merge_sha[:7],
        )
        return SyncResult(
            source=plan.source,
            destination=plan.destination,
            status=SyncStatus.merged,
            commit_sha=merge_sha,
            blobs_created=transfer.uploads,
        )
