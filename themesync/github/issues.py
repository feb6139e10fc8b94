"""Pull-request comments, used to report preview themes back to reviewers."""

from __future__ import annotations

import asyncio
import logging

from github import GithubException
from github.Repository import Repository

from themesync.github.store import translate_github_error
from themesync.throttle import RateLimitedExecutor

logger = logging.getLogger(__name__)


class IssueCommenter:
    """Reads and posts issue/PR comments through the rate-limited executor."""

    def __init__(self, repo: Repository, executor: RateLimitedExecutor | None = None) -> None:
        self._repo = repo
        self._executor = executor or RateLimitedExecutor(label=repo.full_name)

    async def list_comment_bodies(self, number: int) -> list[str]:
        def _sync() -> list[str]:
            issue = self._repo.get_issue(number)
            return [comment.body or "" for comment in issue.get_comments()]

        operation = f"list comments on #{number}"
        try:
            return await self._executor.execute(
                lambda: asyncio.to_thread(_sync), operation=operation
            )
        except GithubException as e:
            raise translate_github_error(operation, e) from e

    async def create_comment(self, number: int, body: str) -> None:
        def _sync() -> None:
            self._repo.get_issue(number).create_comment(body)

        operation = f"comment on #{number}"
        try:
            await self._executor.execute(lambda: asyncio.to_thread(_sync), operation=operation)
        except GithubException as e:
            raise translate_github_error(operation, e) from e
        logger.debug("[%s] commented on #%d", self._repo.full_name, number)
