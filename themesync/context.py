"""Per-repository wiring of the store, engines and preview manager."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from github.Repository import Repository

from themesync.config.models import ThemeConfig, ThemeSyncConfig
from themesync.github.auth import InstallationAuthenticator
from themesync.github.base import ObjectStore
from themesync.github.issues import IssueCommenter
from themesync.github.store import GitHubObjectStore
from themesync.sync.engine import TreeSyncEngine
from themesync.sync.rebase import BranchRebaser
from themesync.theme.preview import PreviewThemeManager
from themesync.theme.publisher import ShopifyCLIPublisher, ThemePublisher
from themesync.throttle import RateLimitedExecutor

logger = logging.getLogger(__name__)


@dataclass
class RepoContext:
    """Everything one webhook event needs to act on one repository."""

    full_name: str
    store: ObjectStore
    engine: TreeSyncEngine
    rebaser: BranchRebaser
    previews: PreviewThemeManager


def shopify_publisher(theme: ThemeConfig) -> ThemePublisher:
    token = os.environ.get(theme.token_env, "")
    if not token:
        raise ValueError(f"{theme.token_env} environment variable is not set")
    return ShopifyCLIPublisher(theme.cli_command, token, timeout=theme.timeout)


def build_repo_context(
    repo: Repository,
    config: ThemeSyncConfig,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> RepoContext:
    """Wire one PyGithub repository into a fresh context.

    Each context owns its executor and object caches; nothing is shared
    between events.
    """
    label = repo.full_name
    executor = RateLimitedExecutor(config.rate_limit, sleep=sleep, label=label)
    store = GitHubObjectStore(repo, executor)
    return RepoContext(
        full_name=label,
        store=store,
        engine=TreeSyncEngine(store, batch=config.batch, sleep=sleep, label=label),
        rebaser=BranchRebaser(store, config.sync.rebase_strategy, label=label),
        previews=PreviewThemeManager(
            store,
            IssueCommenter(repo, executor),
            lambda: shopify_publisher(config.theme),
            config.sync.scope(),
            batch=config.batch,
            sleep=sleep,
            label=label,
        ),
    )


ContextFactory = Callable[[int, str], Awaitable[RepoContext]]


class InstallationContextFactory:
    """Builds a RepoContext for ``(installation_id, "owner/repo")``."""

    def __init__(self, config: ThemeSyncConfig, authenticator: InstallationAuthenticator) -> None:
        self._config = config
        self._authenticator = authenticator

    async def __call__(self, installation_id: int, full_name: str) -> RepoContext:
        client = self._authenticator.client_for(installation_id)
        repo = await asyncio.to_thread(client.get_repo, full_name)
        logger.debug("[%s] Built context for installation %d", full_name, installation_id)
        return build_repo_context(repo, self._config)
