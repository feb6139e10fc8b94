"""Read a branch head into an in-memory path -> blob map."""

from __future__ import annotations

import logging

from themesync.github.base import ObjectStore
from themesync.sync.models import BranchSnapshot

logger = logging.getLogger(__name__)


async def read_branch_snapshot(store: ObjectStore, branch: str) -> BranchSnapshot:
    """Resolve *branch* and list every blob of its recursive tree.

    Raises:
        BranchNotFound: if the branch does not exist.
    """
    commit_sha = await store.get_ref(branch)
    tree_sha, entries = await store.get_tree(commit_sha, recursive=True)
    blobs = {entry.path: entry for entry in entries if entry.type == "blob"}
    logger.debug("Snapshot of %s at %s: %d blobs", branch, commit_sha[:7], len(blobs))
    return BranchSnapshot(
        branch=branch, commit_sha=commit_sha, tree_sha=tree_sha, entries=blobs
    )
