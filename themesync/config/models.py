from typing import Literal

from pydantic import BaseModel, Field

from themesync.sync.models import RebaseStrategy
from themesync.sync.scope import SETTINGS_SCHEMA_PATH, THEME_DIRECTORIES, SyncScope
from themesync.throttle.models import BatchPolicy, RetryPolicy


class GitHubConfig(BaseModel):
    app_id_env: str = "APP_ID"
    private_key_env: str = "PRIVATE_KEY"
    webhook_secret_env: str = "WEBHOOK_SECRET"
    token_env: str = "GITHUB_TOKEN"


class BranchConfig(BaseModel):
    production: str = "production"
    staging: str = "staging"
    mirror_prefix: str = "sgc-"

    def mirror(self, branch: str) -> str:
        return f"{self.mirror_prefix}{branch}"

    def parent_of(self, mirror: str) -> str | None:
        """Canonical branch for a mirror branch name, or None if it is not a mirror."""
        if not mirror.startswith(self.mirror_prefix):
            return None
        parent = mirror[len(self.mirror_prefix):]
        return parent if parent in (self.production, self.staging) else None


class SyncConfig(BaseModel):
    directories: list[str] = list(THEME_DIRECTORIES)
    json_exception: str = SETTINGS_SCHEMA_PATH
    exclude_staging_json: bool = False
    rebase_strategy: RebaseStrategy = RebaseStrategy.squash

    def scope(self, exclude_json: bool = False) -> SyncScope:
        return SyncScope(
            directories=tuple(self.directories),
            exclude_json=exclude_json,
            json_exception=self.json_exception,
        )


class MarkerConfig(BaseModel):
    shopify_update: str = "update from shopify"
    sync_from_mirror: str = "sync files from sgc-production"
    merge_pull_request: str = "merge pull request"
    rebase_sources: list[str] = ["/staging", "/sync/horizon"]
    include_json: list[str] = ["[include-json]", "[sync-json]"]
    horizon_branch: str = "sync/horizon-"


class ThemeConfig(BaseModel):
    cli_command: list[str] = ["shopify"]
    token_env: str = "SHOPIFY_CLI_TOKEN"
    preview_label: str = "preview"
    timeout: int = 600


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    path: str = "/api/webhook"


class ThemeSyncConfig(BaseModel):
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    branches: BranchConfig = Field(default_factory=BranchConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    rate_limit: RetryPolicy = Field(default_factory=RetryPolicy)
    batch: BatchPolicy = Field(default_factory=BatchPolicy)
    markers: MarkerConfig = Field(default_factory=MarkerConfig)
    theme: ThemeConfig = Field(default_factory=ThemeConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
