"""Pydantic models for branch snapshots, sync plans and results."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from themesync.github.models import TreeEntry


class BranchSnapshot(BaseModel):
    """A branch head plus its blobs, keyed by path."""

    branch: str
    commit_sha: str
    tree_sha: str
    entries: dict[str, TreeEntry] = Field(default_factory=dict)

    def blob_shas(self) -> set[str]:
        return {entry.sha for entry in self.entries.values()}


class FileChange(BaseModel):
    """A planned change to one destination path."""

    model_config = ConfigDict(frozen=True)

    path: str
    mode: str
    action: Literal["add", "update", "delete"]
    source_sha: str | None = None


class SyncPlan(BaseModel):
    """Output of the diff step, before any blob is copied."""

    source: str
    destination: str
    changes: list[FileChange] = Field(default_factory=list)

    def count(self, action: str) -> int:
        return sum(1 for change in self.changes if change.action == action)

    @property
    def added(self) -> int:
        return self.count("add")

    @property
    def updated(self) -> int:
        return self.count("update")

    @property
    def deleted(self) -> int:
        return self.count("delete")

    @property
    def is_empty(self) -> bool:
        return not self.changes


class SyncStatus(str, Enum):
    committed = "committed"
    noop = "noop"
    merged = "merged"
    failed = "failed"


class SyncResult(BaseModel):
    source: str
    destination: str
    status: SyncStatus
    added: int = 0
    updated: int = 0
    deleted: int = 0
    commit_sha: str | None = None
    blobs_created: int = 0
    error: str | None = None

    @property
    def noop(self) -> bool:
        return self.status is SyncStatus.noop

    @property
    def total(self) -> int:
        return self.added + self.updated + self.deleted


class RebaseStrategy(str, Enum):
    """How a branch is re-parented onto another.

    ``squash`` clones the target's tree into one commit; ``replay`` re-creates
    every unique commit in order on top of the target.
    """

    squash = "squash"
    replay = "replay"


class RebaseResult(BaseModel):
    branch: str
    onto: str
    rebased: bool
    new_sha: str | None = None
    strategy: RebaseStrategy | None = None
    commits_created: int = 0
