"""Re-parent a branch onto the current head of another branch."""

from __future__ import annotations

import logging

from themesync.errors import BranchNotFound
from themesync.github.base import ObjectStore
from themesync.github.models import CommitInfo
from themesync.sync.models import RebaseResult, RebaseStrategy

logger = logging.getLogger(__name__)


class BranchRebaser:
    """Moves *branch* on top of *onto* using the Git Data API.

    ``squash`` produces one commit holding ``onto``'s tree, so the branch ends
    up content-identical to ``onto``. ``replay`` re-creates each commit unique
    to the branch, in order, keeping its tree and message. The final ref move
    is always forced.
    """

    def __init__(
        self,
        store: ObjectStore,
        strategy: RebaseStrategy = RebaseStrategy.squash,
        *,
        label: str = "",
    ) -> None:
        self._store = store
        self.strategy = strategy
        self._prefix = f"[{label}] " if label else ""

    async def rebase_onto_latest(self, branch: str, onto: str) -> RebaseResult:
        try:
            branch_sha = await self._store.get_ref(branch)
        except BranchNotFound:
            logger.info("%sBranch %s does not exist, skipping rebase", self._prefix, branch)
            return RebaseResult(branch=branch, onto=onto, rebased=False)
        onto_sha = await self._store.get_ref(onto)

        if branch_sha == onto_sha:
            logger.info("%s%s already matches %s", self._prefix, branch, onto)
            return RebaseResult(branch=branch, onto=onto, rebased=False, new_sha=branch_sha)

        comparison = await self._store.compare_branches(onto, branch)
        if comparison.ahead_by == 0:
            await self._store.update_ref(branch, onto_sha, force=True)
            logger.info(
                "%sFast-forwarded %s to %s (%s)", self._prefix, branch, onto, onto_sha[:7]
            )
            return RebaseResult(
                branch=branch, onto=onto, rebased=True, new_sha=onto_sha, strategy=self.strategy
            )

        if self.strategy is RebaseStrategy.replay:
            new_sha, created = await self._replay(comparison.commits, onto_sha)
        else:
            new_sha, created = await self._squash(branch, onto, onto_sha), 1

        await self._store.update_ref(branch, new_sha, force=True)
        logger.info(
            "%sRebased %s onto %s (%s, %d commit(s) created)",
            self._prefix, branch, onto, new_sha[:7], created,
        )
        return RebaseResult(
            branch=branch,
            onto=onto,
            rebased=True,
            new_sha=new_sha,
            strategy=self.strategy,
            commits_created=created,
        )

    async def _squash(self, branch: str, onto: str, onto_sha: str) -> str:
        onto_commit = await self._store.get_commit(onto_sha)
        message = f"Rebase {branch} onto {onto} ({onto_sha[:7]})"
        return await self._store.create_commit(message, onto_commit.tree_sha, [onto_sha])

    async def _replay(self, commits: list[CommitInfo], onto_sha: str) -> tuple[str, int]:
        parent = onto_sha
        for commit in commits:
            parent = await self._store.create_commit(commit.message, commit.tree_sha, [parent])
        return parent, len(commits)
