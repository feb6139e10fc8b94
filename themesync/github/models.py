"""Pydantic models for Git Data API objects."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class TreeEntry(BaseModel):
    """A blob in a flattened recursive tree listing."""

    model_config = ConfigDict(frozen=True)

    path: str
    mode: str
    type: str = "blob"
    sha: str


class TreeUpdate(BaseModel):
    """One overlay entry for a tree-create request. ``sha=None`` deletes the path."""

    model_config = ConfigDict(frozen=True)

    path: str
    mode: str
    type: Literal["blob"] = "blob"
    sha: str | None


class BlobData(BaseModel):
    sha: str
    content: str
    encoding: str = "base64"


class CommitInfo(BaseModel):
    sha: str
    tree_sha: str
    message: str = ""
    parents: list[str] = Field(default_factory=list)


class Comparison(BaseModel):
    """Result of comparing ``base...head``: commits reachable from head only, oldest first."""

    merge_base_sha: str
    commits: list[CommitInfo] = Field(default_factory=list)

    @property
    def ahead_by(self) -> int:
        return len(self.commits)
