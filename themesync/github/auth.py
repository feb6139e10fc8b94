"""GitHub App and personal-token authentication."""

from __future__ import annotations

import os
from functools import cached_property
from typing import TYPE_CHECKING

from github import Auth, Github

if TYPE_CHECKING:
    from themesync.config.models import GitHubConfig


def normalize_private_key(raw: str) -> str:
    """Turn a PEM key passed through an env var with literal ``\\n`` into real newlines."""
    return raw.replace("\\n", "\n") if "\\n" in raw else raw


class InstallationAuthenticator:
    """Builds installation-scoped Github clients for the App.

    PyGithub's built-in retry is disabled on every client; rate limits are
    handled by ``RateLimitedExecutor`` instead.
    """

    def __init__(self, app_id: str, private_key: str) -> None:
        if not app_id:
            raise ValueError("GitHub App id required.")
        if not private_key:
            raise ValueError("GitHub App private key required.")
        self._app_id = app_id
        self._private_key = normalize_private_key(private_key)

    @classmethod
    def from_env(cls, config: GitHubConfig) -> InstallationAuthenticator:
        app_id = os.environ.get(config.app_id_env, "")
        private_key = os.environ.get(config.private_key_env, "")
        if not app_id or not private_key:
            raise ValueError(
                f"GitHub App credentials not found. Set {config.app_id_env} "
                f"and {config.private_key_env}."
            )
        return cls(app_id, private_key)

    @cached_property
    def _app_auth(self) -> Auth.AppAuth:
        return Auth.AppAuth(self._app_id, self._private_key)

    def client_for(self, installation_id: int) -> Github:
        auth = self._app_auth.get_installation_auth(installation_id)
        return Github(auth=auth, retry=None)


def token_client(config: GitHubConfig, token: str | None = None) -> Github:
    """Client authenticated with a personal or fine-grained token (CLI use)."""
    token = token or os.environ.get(config.token_env, "")
    if not token:
        raise ValueError(
            f"GitHub token required. Pass --token or set the {config.token_env} env var."
        )
    return Github(auth=Auth.Token(token), retry=None)
