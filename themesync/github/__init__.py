"""GitHub access: object store, comments and authentication."""

from themesync.github.auth import InstallationAuthenticator, normalize_private_key, token_client
from themesync.github.base import ObjectStore
from themesync.github.issues import IssueCommenter
from themesync.github.models import (
    BlobData,
    CommitInfo,
    Comparison,
    TreeEntry,
    TreeUpdate,
)
from themesync.github.store import GitHubObjectStore, translate_github_error

__all__ = [
    "BlobData",
    "CommitInfo",
    "Comparison",
    "GitHubObjectStore",
    "InstallationAuthenticator",
    "IssueCommenter",
    "ObjectStore",
    "TreeEntry",
    "TreeUpdate",
    "normalize_private_key",
    "token_client",
    "translate_github_error",
]
