"""Copy blobs between stores only when the destination lacks them."""

from __future__ import annotations

import logging

from themesync.github.base import ObjectStore

logger = logging.getLogger(__name__)


class BlobTransfer:
    """Makes source blobs available in the destination store.

    Blobs are content-addressed, so a SHA already present in the destination
    needs no network call at all. Copies are remembered for the lifetime of
    the transfer so one blob shared by several paths is uploaded once.
    """

    def __init__(
        self,
        source: ObjectStore,
        destination: ObjectStore,
        known_shas: set[str] | None = None,
    ) -> None:
        self._source = source
        self._destination = destination
        self._known = set(known_shas or ())
        self._copied: dict[str, str] = {}
        self.uploads = 0

    def is_known(self, sha: str) -> bool:
        return sha in self._known or sha in self._copied

    async def ensure_blob(self, sha: str, path: str = "") -> str:
        """Return the destination SHA for source blob *sha*."""
        if sha in self._known:
            return sha
        if sha in self._copied:
            return self._copied[sha]

        blob = await self._source.get_blob(sha)
        new_sha = await self._destination.create_blob(blob.content, blob.encoding)
        if new_sha != sha:
            logger.warning("Blob for %s changed SHA on copy: %s -> %s", path, sha[:7], new_sha[:7])
        self._copied[sha] = new_sha
        self._known.add(new_sha)
        self.uploads += 1
        logger.debug("Copied blob %s for %s", sha[:7], path or "(unnamed)")
        return new_sha
