"""Abstract Git object store interface consumed by the sync core."""

from abc import ABC, abstractmethod

from themesync.github.models import BlobData, CommitInfo, Comparison, TreeEntry, TreeUpdate


class ObjectStore(ABC):
    """Content-addressed blobs, trees, commits and refs of one repository.

    Every method is a network round-trip in the GitHub implementation;
    callers must not assume any call is cheap.
    """

    @abstractmethod
    async def get_ref(self, branch: str) -> str:
        """Return the commit SHA ``heads/<branch>`` points at.

        Raises:
            BranchNotFound: if the branch does not exist.
        """
        ...

    @abstractmethod
    async def get_commit(self, sha: str) -> CommitInfo:
        """Fetch a commit's tree, parents and message."""
        ...

    @abstractmethod
    async def get_tree(self, sha: str, recursive: bool = True) -> tuple[str, list[TreeEntry]]:
        """List a tree by commit or tree SHA.

        Returns:
            ``(tree_sha, entries)``. Sub-tree entries are included as-is;
            callers that want blobs only filter on ``type``.
        """
        ...

    @abstractmethod
    async def get_blob(self, sha: str) -> BlobData:
        ...

    @abstractmethod
    async def create_blob(self, content: str, encoding: str) -> str:
        ...

    @abstractmethod
    async def create_tree(self, base_tree_sha: str, updates: list[TreeUpdate]) -> str:
        """Create a tree that overlays *updates* on *base_tree_sha*."""
        ...

    @abstractmethod
    async def create_commit(self, message: str, tree_sha: str, parents: list[str]) -> str:
        ...

    @abstractmethod
    async def update_ref(self, branch: str, sha: str, force: bool = False) -> None:
        """Move ``heads/<branch>`` to *sha*.

        Raises:
            ConflictError: if the update is not a fast-forward and *force* is False.
        """
        ...

    @abstractmethod
    async def compare_branches(self, base: str, head: str) -> Comparison:
        ...

    @abstractmethod
    async def create_merge(self, base: str, head: str, message: str) -> str | None:
        """Merge *head* into *base* server-side.

        Returns the merge commit SHA, or None when there was nothing to merge.
        """
        ...
