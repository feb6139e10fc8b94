"""Decide which sync, rebase or preview operation a webhook event triggers."""

from __future__ import annotations

import logging

from themesync.config.models import ThemeSyncConfig
from themesync.context import ContextFactory, RepoContext
from themesync.errors import BranchNotFound
from themesync.sync.scope import SyncScope
from themesync.webhook.events import (
    PullRequest,
    PullRequestClosed,
    PullRequestLabeled,
    PullRequestSynchronized,
    PushEvent,
    WebhookEvent,
)

logger = logging.getLogger(__name__)


class EventRouter:
    """Routes typed webhook events to repository operations.

    Commit-message markers keep the branches from triggering each other in a
    loop: mirror pushes only sync when the Shopify integration made them, and
    production pushes only rebase staging for staging/horizon merges or for
    commits this service created.
    """

    def __init__(self, config: ThemeSyncConfig, context_factory: ContextFactory) -> None:
        self._config = config
        self._context_factory = context_factory

    async def dispatch(self, event: WebhookEvent) -> None:
        """Handle *event*. Failures are logged, never raised."""
        slug = event.repository.slug
        try:
            if isinstance(event, PushEvent):
                await self._on_push(event)
            elif isinstance(event, PullRequestLabeled):
                await self._on_labeled(event)
            elif isinstance(event, PullRequestSynchronized):
                await self._on_synchronize(event)
            elif isinstance(event, PullRequestClosed):
                await self._on_closed(event)
        except Exception:
            logger.exception("[%s] Error handling %s event", slug, type(event).__name__)

    async def _context(self, event: WebhookEvent) -> RepoContext | None:
        if event.installation is None:
            logger.debug("[%s] No installation ID found", event.repository.slug)
            return None
        return await self._context_factory(event.installation.id, event.repository.slug)

    async def _has_mirror_production(self, ctx: RepoContext) -> bool:
        mirror = self._config.branches.mirror(self._config.branches.production)
        try:
            await ctx.store.get_ref(mirror)
        except BranchNotFound:
            logger.debug("[%s] %s branch does not exist, skipping", ctx.full_name, mirror)
            return False
        return True

    async def _sync(
        self,
        ctx: RepoContext,
        source: str,
        destination: str,
        scope: SyncScope,
        *,
        allow_deletes: bool,
    ) -> None:
        try:
            await ctx.engine.sync_branch(source, destination, scope, allow_deletes=allow_deletes)
        except BranchNotFound as e:
            logger.info("[%s] %s branch does not exist, skipping", ctx.full_name, e.branch)

    # -- push ----------------------------------------------------------------

    async def _on_push(self, event: PushEvent) -> None:
        if event.deleted or event.head_commit is None or not event.head_commit.message:
            return
        branch = event.branch
        if branch is None:
            return
        ctx = await self._context(event)
        if ctx is None or not await self._has_mirror_production(ctx):
            return

        message = event.head_commit.message.lower()
        branches = self._config.branches
        markers = self._config.markers
        sync = self._config.sync

        parent = branches.parent_of(branch)
        if parent is not None:
            if markers.shopify_update not in message:
                return
            exclude_json = parent == branches.staging and sync.exclude_staging_json
            logger.info("[%s] Shopify update on %s, syncing into %s", ctx.full_name, branch, parent)
            await self._sync(
                ctx, branch, parent, sync.scope(exclude_json=exclude_json), allow_deletes=True
            )
        elif branch == branches.production:
            pr_merge = markers.merge_pull_request in message and any(
                source in message for source in markers.rebase_sources
            )
            from_mirror = markers.sync_from_mirror in message
            if pr_merge or from_mirror:
                logger.info(
                    "[%s] Production updated (%s), rebasing %s onto %s",
                    ctx.full_name, "PR merge" if pr_merge else "mirror sync",
                    branches.staging, branches.production,
                )
                await ctx.rebaser.rebase_onto_latest(branches.staging, branches.production)
            else:
                logger.info(
                    "[%s] Skipping staging update for merge commit to avoid circular updates",
                    ctx.full_name,
                )
        elif branch == branches.staging:
            await self._sync(
                ctx,
                branch,
                branches.mirror(branches.staging),
                sync.scope(exclude_json=True),
                allow_deletes=False,
            )

    # -- pull_request --------------------------------------------------------

    async def _on_labeled(self, event: PullRequestLabeled) -> None:
        label = event.label.name.lower() if event.label else ""
        if label != self._config.theme.preview_label.lower():
            return
        ctx = await self._context(event)
        if ctx is None:
            return
        logger.info(
            "[%s] Preview label added to PR #%d", ctx.full_name, event.pull_request.number
        )
        await ctx.previews.deploy(event.pull_request, event.repository.homepage)

    async def _on_synchronize(self, event: PullRequestSynchronized) -> None:
        if not event.pull_request.has_label(self._config.theme.preview_label):
            return
        ctx = await self._context(event)
        if ctx is None:
            return
        logger.info(
            "[%s] PR #%d updated, updating preview theme",
            ctx.full_name, event.pull_request.number,
        )
        await ctx.previews.deploy(event.pull_request, event.repository.homepage)

    async def _on_closed(self, event: PullRequestClosed) -> None:
        pr = event.pull_request
        if not pr.merged:
            return
        ctx = await self._context(event)
        if ctx is None:
            return

        if pr.has_label(self._config.theme.preview_label):
            logger.info("[%s] PR #%d merged, deleting preview theme", ctx.full_name, pr.number)
            await ctx.previews.remove(pr, event.repository.homepage)

        branches = self._config.branches
        if pr.base.ref != branches.production or not await self._has_mirror_production(ctx):
            return
        include_json = self._should_include_json(pr)
        logger.info(
            "[%s] PR #%d merged into %s, syncing %s (JSON %s)",
            ctx.full_name, pr.number, branches.production,
            branches.mirror(branches.production), "included" if include_json else "excluded",
        )
        await self._sync(
            ctx,
            branches.production,
            branches.mirror(branches.production),
            self._config.sync.scope(exclude_json=not include_json),
            allow_deletes=False,
        )

    def _should_include_json(self, pr: PullRequest) -> bool:
        markers = self._config.markers
        body = (pr.body or "").lower()
        head_ref = pr.head.ref.lower()
        return any(marker in body for marker in markers.include_json) or (
            markers.horizon_branch in head_ref
        )
