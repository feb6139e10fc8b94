"""Preview theme lifecycle for pull requests labelled for preview."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

from themesync.github.base import ObjectStore
from themesync.github.issues import IssueCommenter
from themesync.sync.scope import SyncScope
from themesync.theme.files import collect_theme_files
from themesync.theme.publisher import PublishedTheme, ThemePublisher
from themesync.throttle import BatchPolicy
from themesync.webhook.events import PullRequest

logger = logging.getLogger(__name__)

_STORE_URL = re.compile(r"https?://admin\.shopify\.com/store/([a-zA-Z0-9-]+)", re.IGNORECASE)
_PREVIEW_ID = re.compile(r"Preview Theme ID:\s*(\d+)", re.IGNORECASE)

MISSING_STORE_COMMENT = (
    "❌ Could not create preview theme. Please add a Shopify admin URL to the "
    "repository homepage (e.g., `https://admin.shopify.com/store/your-store-name`)."
)


def extract_store_name(homepage: str | None) -> str | None:
    """``https://admin.shopify.com/store/<name>`` -> ``<name>``."""
    if not homepage:
        return None
    match = _STORE_URL.search(homepage)
    return match.group(1) if match else None


def find_theme_id(comment_bodies: list[str]) -> str | None:
    for body in comment_bodies:
        match = _PREVIEW_ID.search(body)
        if match:
            return match.group(1)
    return None


def preview_comment(theme_id: str) -> str:
    return (
        f"🎨 Preview Theme ID: {theme_id}\n\n"
        "This theme will be updated automatically when you push changes to this PR."
    )


class PreviewThemeManager:
    """Creates, updates and deletes the preview theme belonging to a PR.

    The theme id is persisted as a PR comment, so there is no local state.
    Nothing here raises: failures are logged and reported on the PR.
    """

    def __init__(
        self,
        store: ObjectStore,
        comments: IssueCommenter,
        publisher_factory: Callable[[], ThemePublisher],
        scope: SyncScope,
        *,
        batch: BatchPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        label: str = "",
    ) -> None:
        self._store = store
        self._comments = comments
        self._publisher_factory = publisher_factory
        self._scope = scope
        self._batch = batch
        self._sleep = sleep
        self._prefix = f"[{label}] " if label else ""

    async def _existing_theme_id(self, number: int) -> str | None:
        try:
            return find_theme_id(await self._comments.list_comment_bodies(number))
        except Exception as e:
            logger.error("%sError checking for existing preview theme: %s", self._prefix, e)
            return None

    async def _comment(self, number: int, body: str) -> None:
        try:
            await self._comments.create_comment(number, body)
        except Exception as e:
            logger.error("%sCould not comment on #%d: %s", self._prefix, number, e)

    async def deploy(self, pr: PullRequest, homepage: str | None) -> PublishedTheme | None:
        """Create the preview theme for *pr*, or update it if one exists."""
        store_name = extract_store_name(homepage)
        if store_name is None:
            logger.error("%sCould not extract store name from repository homepage", self._prefix)
            await self._comment(pr.number, MISSING_STORE_COMMENT)
            return None

        try:
            existing = await self._existing_theme_id(pr.number)
            files = await collect_theme_files(
                self._store, pr.head.ref, self._scope, self._batch, sleep=self._sleep
            )
            publisher = self._publisher_factory()
            if existing:
                logger.info("%sUpdating existing preview theme %s", self._prefix, existing)
            else:
                logger.info("%sCreating new preview theme for #%d", self._prefix, pr.number)
            theme = await publisher.publish(store_name, files, existing)
        except Exception as e:
            logger.error("%sError creating/updating preview theme: %s", self._prefix, e)
            await self._comment(pr.number, f"❌ Error creating preview theme: {e}")
            return None

        if not existing:
            await self._comment(pr.number, preview_comment(theme.theme_id))
        logger.info("%sPreview theme ready: %s", self._prefix, theme.url)
        return theme

    async def remove(self, pr: PullRequest, homepage: str | None) -> bool:
        """Delete the preview theme recorded on *pr*. Returns True if one was deleted."""
        store_name = extract_store_name(homepage)
        theme_id = await self._existing_theme_id(pr.number)
        if store_name is None or theme_id is None:
            logger.info("%sNo preview theme to delete for #%d", self._prefix, pr.number)
            return False

        try:
            await self._publisher_factory().delete(store_name, theme_id)
        except Exception as e:
            logger.error("%sError deleting preview theme %s: %s", self._prefix, theme_id, e)
            return False

        logger.info("%sDeleted preview theme %s", self._prefix, theme_id)
        await self._comment(pr.number, f"🗑️ Preview theme {theme_id} deleted after merge.")
        return True
