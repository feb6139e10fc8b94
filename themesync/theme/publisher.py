"""Push theme files to a Shopify store."""

from __future__ import annotations

import asyncio
import logging
import os
import re
import subprocess
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel

from themesync.errors import ThemePublishError
from themesync.theme.files import ThemeFile

logger = logging.getLogger(__name__)

# Tried in order; the CLI's wording has changed between releases.
THEME_ID_PATTERNS = (
    re.compile(r"[Tt]heme\s+[Ii][Dd]:\s*(\d+)"),
    re.compile(r"[Tt]heme\s+(\d+)"),
    re.compile(r"id[:\s]+(\d+)", re.IGNORECASE),
    re.compile(r"themes/(\d+)"),
)
_URL = re.compile(r"https?://\S+")


class PublishedTheme(BaseModel):
    theme_id: str
    url: str


def parse_theme_id(output: str) -> str | None:
    for pattern in THEME_ID_PATTERNS:
        match = pattern.search(output)
        if match:
            return match.group(1)
    return None


def default_theme_url(store_name: str, theme_id: str) -> str:
    return f"https://{store_name}.myshopify.com/admin/themes/{theme_id}"


class ThemePublisher(ABC):
    """Abstract interface for a theme store."""

    @abstractmethod
    async def publish(
        self, store_name: str, files: list[ThemeFile], theme_id: str | None = None
    ) -> PublishedTheme:
        """Create an unpublished theme, or overwrite *theme_id* when given."""
        ...

    @abstractmethod
    async def delete(self, store_name: str, theme_id: str) -> None:
        ...


class ShopifyCLIPublisher(ThemePublisher):
    """Runs ``shopify theme push`` / ``shopify theme delete`` in a worker thread.

    Authentication is the Partners token, exported under both variable
    names the CLI looks for.
    """

    def __init__(self, command: list[str], token: str, timeout: int = 600) -> None:
        if not token:
            raise ValueError("Shopify CLI token required.")
        self._command = list(command)
        self._token = token
        self._timeout = timeout

    def _env(self, workdir: str) -> dict[str, str]:
        env = dict(os.environ)
        env.update(
            SHOPIFY_CLI_PARTNERS_TOKEN=self._token,
            SHOPIFY_CLI_TOKEN=self._token,
            HOME=workdir,
        )
        return env

    def _run(self, args: list[str], cwd: str) -> str:
        cmd = [*self._command, *args]
        logger.info("Running: %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                cwd=cwd,
                env=self._env(cwd),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                timeout=self._timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ThemePublishError(f"Could not run {cmd[0]}: {e}") from e
        if proc.returncode != 0:
            raise ThemePublishError(
                f"Command failed with code {proc.returncode}\n{proc.stderr.strip()}"
            )
        return proc.stdout

    async def publish(
        self, store_name: str, files: list[ThemeFile], theme_id: str | None = None
    ) -> PublishedTheme:
        with tempfile.TemporaryDirectory(prefix="themesync-") as workdir:
            root = Path(workdir) / "theme"
            for file in files:
                target = root / file.path
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(file.content)

            args = ["theme", "push", "--store", store_name, "--path", str(root)]
            args += ["--theme", theme_id] if theme_id else ["--unpublished"]
            stdout = await asyncio.to_thread(self._run, args, workdir)

        if theme_id is None:
            theme_id = parse_theme_id(stdout)
            if theme_id is None:
                raise ThemePublishError(
                    f"Could not extract theme ID from Shopify CLI output. Output: {stdout[:500]}"
                )
        url_match = _URL.search(stdout)
        url = url_match.group(0) if url_match else default_theme_url(store_name, theme_id)
        return PublishedTheme(theme_id=theme_id, url=url)

    async def delete(self, store_name: str, theme_id: str) -> None:
        with tempfile.TemporaryDirectory(prefix="themesync-") as workdir:
            args = ["theme", "delete", "--theme", theme_id, "--store", store_name, "--force"]
            await asyncio.to_thread(self._run, args, workdir)
