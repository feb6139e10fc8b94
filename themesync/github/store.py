"""GitHub Git Data API object store using PyGithub."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from github import GithubException, InputGitTreeElement
from github.GitCommit import GitCommit
from github.GitRef import GitRef
from github.GitTree import GitTree
from github.Repository import Repository

from themesync.errors import (
    BranchNotFound,
    ConflictError,
    NotFoundError,
    ObjectStoreError,
    is_conflict_error,
)
from themesync.github.base import ObjectStore
from themesync.github.models import BlobData, CommitInfo, Comparison, TreeEntry, TreeUpdate
from themesync.throttle import RateLimitedExecutor, classify_rate_limit

logger = logging.getLogger(__name__)

T = TypeVar("T")


def translate_github_error(operation: str, exc: GithubException) -> ObjectStoreError:
    """Map a GithubException onto the themesync error taxonomy."""
    status = exc.status
    if status == 404:
        return NotFoundError(operation, exc, status=status)
    if is_conflict_error(exc):
        return ConflictError(operation, exc, status=status)
    return ObjectStoreError(
        operation, exc, status=status, retryable=classify_rate_limit(exc) is not None
    )


class GitHubObjectStore(ObjectStore):
    """ObjectStore backed by one PyGithub Repository.

    PyGithub is synchronous, so every call runs in ``asyncio.to_thread()``
    inside the rate-limited executor. Its write methods take GitTree and
    GitCommit objects rather than SHAs, so objects seen during a run are
    cached by SHA to avoid re-fetching them.
    """

    def __init__(self, repo: Repository, executor: RateLimitedExecutor | None = None) -> None:
        self._repo = repo
        self._executor = executor or RateLimitedExecutor(label=repo.full_name)
        self._refs: dict[str, GitRef] = {}
        self._trees: dict[str, GitTree] = {}
        self._commits: dict[str, GitCommit] = {}

    @property
    def full_name(self) -> str:
        return self._repo.full_name

    async def _call(self, operation: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await self._executor.execute(
                lambda: asyncio.to_thread(fn, *args, **kwargs), operation=operation
            )
        except GithubException as e:
            raise translate_github_error(operation, e) from e

    def _remember_commit(self, commit: GitCommit) -> None:
        self._commits[commit.sha] = commit
        self._trees.setdefault(commit.tree.sha, commit.tree)

    async def _commit_object(self, sha: str) -> GitCommit:
        if sha not in self._commits:
            commit = await self._call(f"get commit {sha[:7]}", self._repo.get_git_commit, sha)
            self._remember_commit(commit)
        return self._commits[sha]

    async def _tree_object(self, sha: str) -> GitTree:
        if sha not in self._trees:
            self._trees[sha] = await self._call(
                f"get tree {sha[:7]}", self._repo.get_git_tree, sha
            )
        return self._trees[sha]

    # -- ObjectStore ---------------------------------------------------------

    async def get_ref(self, branch: str) -> str:
        try:
            ref = await self._call(f"get {branch} ref", self._repo.get_git_ref, f"heads/{branch}")
        except NotFoundError as e:
            raise BranchNotFound(branch, e.__cause__ or e) from e
        self._refs[branch] = ref
        return ref.object.sha

    async def get_commit(self, sha: str) -> CommitInfo:
        commit = await self._commit_object(sha)
        return CommitInfo(
            sha=commit.sha,
            tree_sha=commit.tree.sha,
            message=commit.message,
            parents=[parent.sha for parent in commit.parents],
        )

    async def get_tree(self, sha: str, recursive: bool = True) -> tuple[str, list[TreeEntry]]:
        tree = await self._call(
            f"get tree {sha[:7]}", self._repo.get_git_tree, sha, recursive=recursive
        )
        self._trees[tree.sha] = tree
        if tree.raw_data.get("truncated"):
            logger.warning(
                "[%s] Tree %s is truncated; some paths are missing from the listing",
                self.full_name, sha[:7],
            )
        entries = [
            TreeEntry(path=element.path, mode=element.mode, type=element.type, sha=element.sha)
            for element in tree.tree
        ]
        return tree.sha, entries

    async def get_blob(self, sha: str) -> BlobData:
        blob = await self._call(f"get blob {sha[:7]}", self._repo.get_git_blob, sha)
        return BlobData(sha=blob.sha, content=blob.content, encoding=blob.encoding)

    async def create_blob(self, content: str, encoding: str) -> str:
        blob = await self._call("create blob", self._repo.create_git_blob, content, encoding)
        return blob.sha

    async def create_tree(self, base_tree_sha: str, updates: list[TreeUpdate]) -> str:
        base_tree = await self._tree_object(base_tree_sha)
        elements = [
            InputGitTreeElement(path=u.path, mode=u.mode, type=u.type, sha=u.sha)
            for u in updates
        ]
        tree = await self._call("create tree", self._repo.create_git_tree, elements, base_tree)
        self._trees[tree.sha] = tree
        return tree.sha

    async def create_commit(self, message: str, tree_sha: str, parents: list[str]) -> str:
        tree = await self._tree_object(tree_sha)
        parent_objects = [await self._commit_object(sha) for sha in parents]
        commit = await self._call(
            "create commit", self._repo.create_git_commit, message, tree, parent_objects
        )
        self._remember_commit(commit)
        return commit.sha

    async def update_ref(self, branch: str, sha: str, force: bool = False) -> None:
        ref = self._refs.get(branch)
        if ref is None:
            try:
                ref = await self._call(
                    f"get {branch} ref", self._repo.get_git_ref, f"heads/{branch}"
                )
            except NotFoundError as e:
                raise BranchNotFound(branch, e.__cause__ or e) from e
            self._refs[branch] = ref
        await self._call(f"update {branch} ref", ref.edit, sha, force=force)

    async def compare_branches(self, base: str, head: str) -> Comparison:
        def _sync() -> Comparison:
            comparison = self._repo.compare(base, head)
            commits = [
                CommitInfo(
                    sha=c.sha,
                    tree_sha=c.commit.tree.sha,
                    message=c.commit.message,
                    parents=[p.sha for p in c.parents],
                )
                for c in comparison.commits
            ]
            return Comparison(merge_base_sha=comparison.merge_base_commit.sha, commits=commits)

        return await self._call(f"compare {base}...{head}", _sync)

    async def create_merge(self, base: str, head: str, message: str) -> str | None:
        commit = await self._call(
            f"merge {head} into {base}", self._repo.merge, base, head, message
        )
        return commit.sha if commit is not None else None
