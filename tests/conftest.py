"""Shared test fixtures for themesync."""

import base64
import hashlib
import logging
from collections import Counter

import pytest

from themesync.config.models import ThemeSyncConfig
from themesync.errors import BranchNotFound, ConflictError
from themesync.github.base import ObjectStore
from themesync.github.models import BlobData, CommitInfo, Comparison, TreeEntry, TreeUpdate


def git_blob_sha(data: bytes) -> str:
    return hashlib.sha1(b"blob %d\x00" % len(data) + data).hexdigest()


class InMemoryObjectStore(ObjectStore):
    """Content-addressed fake of the Git Data API.

    Trees are stored flat (path -> entry), which is all the sync core sees.
    ``calls`` counts every method invocation; ``fail_on`` maps a method name
    to an exception raised on its next call.
    """

    def __init__(self):
        self.blobs: dict[str, bytes] = {}
        self.trees: dict[str, dict[str, TreeEntry]] = {}
        self.commits: dict[str, CommitInfo] = {}
        self.refs: dict[str, str] = {}
        self.calls: Counter = Counter()
        self.fail_on: dict[str, Exception] = {}
        self._seq = 0

    def _record(self, name: str) -> None:
        self.calls[name] += 1
        if name in self.fail_on:
            raise self.fail_on.pop(name)

    def _put_tree(self, entries: dict[str, TreeEntry]) -> str:
        listing = "\n".join(f"{e.mode} {e.sha} {p}" for p, e in sorted(entries.items()))
        sha = hashlib.sha1(b"tree " + listing.encode()).hexdigest()
        self.trees[sha] = dict(entries)
        return sha

    def _put_commit(self, message: str, tree_sha: str, parents: list[str]) -> str:
        self._seq += 1
        raw = f"{tree_sha}|{','.join(parents)}|{message}|{self._seq}"
        sha = hashlib.sha1(raw.encode()).hexdigest()
        self.commits[sha] = CommitInfo(
            sha=sha, tree_sha=tree_sha, message=message, parents=list(parents)
        )
        return sha

    def _ancestors(self, sha: str) -> set[str]:
        seen: set[str] = set()
        stack = [sha]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.commits[current].parents)
        return seen

    # -- seeding helpers -----------------------------------------------------

    def seed(self, branch: str, files: dict[str, str], message: str = "seed", parent=None) -> str:
        """Commit *files* (path -> text) as the full content of *branch*."""
        entries = {}
        for path, text in files.items():
            data = text.encode()
            sha = git_blob_sha(data)
            self.blobs[sha] = data
            entries[path] = TreeEntry(path=path, mode="100644", sha=sha)
        tree_sha = self._put_tree(entries)
        parents = [parent] if parent else ([self.refs[branch]] if branch in self.refs else [])
        commit_sha = self._put_commit(message, tree_sha, parents)
        self.refs[branch] = commit_sha
        return commit_sha

    def files(self, branch: str) -> dict[str, str]:
        tree = self.trees[self.commits[self.refs[branch]].tree_sha]
        return {path: self.blobs[e.sha].decode() for path, e in tree.items()}

    def mutating_calls(self) -> int:
        names = ("create_blob", "create_tree", "create_commit", "update_ref", "create_merge")
        return sum(self.calls[name] for name in names)

    # -- ObjectStore ---------------------------------------------------------

    async def get_ref(self, branch):
        self._record("get_ref")
        if branch not in self.refs:
            raise BranchNotFound(branch, KeyError(branch))
        return self.refs[branch]

    async def get_commit(self, sha):
        self._record("get_commit")
        return self.commits[sha]

    async def get_tree(self, sha, recursive=True):
        self._record("get_tree")
        tree_sha = self.commits[sha].tree_sha if sha in self.commits else sha
        return tree_sha, list(self.trees[tree_sha].values())

    async def get_blob(self, sha):
        self._record("get_blob")
        return BlobData(sha=sha, content=base64.b64encode(self.blobs[sha]).decode())

    async def create_blob(self, content, encoding):
        self._record("create_blob")
        data = base64.b64decode(content) if encoding == "base64" else content.encode()
        sha = git_blob_sha(data)
        self.blobs[sha] = data
        return sha

    async def create_tree(self, base_tree_sha, updates: list[TreeUpdate]):
        self._record("create_tree")
        entries = dict(self.trees[base_tree_sha])
        for update in updates:
            if update.sha is None:
                entries.pop(update.path, None)
            else:
                entries[update.path] = TreeEntry(path=update.path, mode=update.mode, sha=update.sha)
        return self._put_tree(entries)

    async def create_commit(self, message, tree_sha, parents):
        self._record("create_commit")
        return self._put_commit(message, tree_sha, parents)

    async def update_ref(self, branch, sha, force=False):
        self._record("update_ref")
        current = self.refs.get(branch)
        if current and not force and current not in self._ancestors(sha):
            raise ConflictError(
                f"update {branch} ref", Exception("Update is not a fast forward"), status=422
            )
        self.refs[branch] = sha

    async def compare_branches(self, base, head):
        self._record("compare_branches")
        base_sha, head_sha = self.refs[base], self.refs[head]
        base_history = self._ancestors(base_sha)
        unique = []
        current = head_sha
        while current not in base_history:
            unique.append(self.commits[current])
            current = self.commits[current].parents[0]
        return Comparison(merge_base_sha=current, commits=list(reversed(unique)))

    async def create_merge(self, base, head, message):
        self._record("create_merge")
        base_sha, head_sha = self.refs[base], self.refs[head]
        if head_sha in self._ancestors(base_sha):
            return None
        tree_sha = self.commits[head_sha].tree_sha
        merge_sha = self._put_commit(message, tree_sha, [base_sha, head_sha])
        self.refs[base] = merge_sha
        return merge_sha


class SleepRecorder:
    """Stands in for ``asyncio.sleep``; records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def store():
    return InMemoryObjectStore()


@pytest.fixture
def make_store():
    return InMemoryObjectStore


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def config():
    return ThemeSyncConfig()


@pytest.fixture(autouse=True)
def _reset_themesync_logger():
    """configure_logging() mutates the package logger; undo it between tests."""
    yield
    logger = logging.getLogger("themesync")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
