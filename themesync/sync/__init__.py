from .blobs import BlobTransfer
from .engine import SYNC_MESSAGE_PREFIX, TreeSyncEngine, plan_sync, sync_commit_message
from .models import (
    BranchSnapshot,
    FileChange,
    RebaseResult,
    RebaseStrategy,
    SyncPlan,
    SyncResult,
    SyncStatus,
)
from .rebase import BranchRebaser
from .scope import SETTINGS_SCHEMA_PATH, THEME_DIRECTORIES, SyncScope, is_in_scope
from .snapshot import read_branch_snapshot

__all__ = [
    "SETTINGS_SCHEMA_PATH",
    "SYNC_MESSAGE_PREFIX",
    "THEME_DIRECTORIES",
    "BlobTransfer",
    "BranchRebaser",
    "BranchSnapshot",
    "FileChange",
    "RebaseResult",
    "RebaseStrategy",
    "SyncPlan",
    "SyncResult",
    "SyncScope",
    "SyncStatus",
    "TreeSyncEngine",
    "is_in_scope",
    "plan_sync",
    "read_branch_snapshot",
    "sync_commit_message",
]
