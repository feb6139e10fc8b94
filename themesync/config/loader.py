"""YAML config loading with env var expansion."""

import logging
import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import ThemeSyncConfig

logger = logging.getLogger(__name__)

_ENV_REF = re.compile(r"\$\{(\w+)\}")


def config_search_path(cli_path: str | None = None) -> list[Path]:
    """Candidate config files, highest priority first."""
    paths = [Path("./themesync.yaml"), Path.home() / ".themesync" / "config.yaml"]
    if cli_path:
        paths.insert(0, Path(cli_path))
    return paths


def load_config(cli_path: str | None = None) -> ThemeSyncConfig:
    """Load config with resolution order: CLI > project-local > user-global > defaults.

    An explicit CLI path that does not exist is an error; the other locations
    are optional. Empty files are skipped.
    """
    if cli_path and not Path(cli_path).exists():
        raise ValueError(f"Config file not found: {cli_path}")

    for path in config_search_path(cli_path):
        if not path.exists():
            continue
        config = _load_file(path)
        if config is not None:
            logger.debug("Loaded config from %s", path)
            return config

    return ThemeSyncConfig()


def _load_file(path: Path) -> ThemeSyncConfig | None:
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid config in {path}: expected a mapping at top level")
    try:
        return ThemeSyncConfig(**_expand_env_vars(raw))
    except ValidationError as e:
        raise ValueError(f"Invalid config in {path}: {e}") from e


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} references in strings."""
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


# Default YAML template for `themesync config init`
DEFAULT_CONFIG_TEMPLATE = """\
# themesync.yaml

# GitHub App credentials (names of env vars, not the secrets themselves)
github:
  app_id_env: "APP_ID"
  private_key_env: "PRIVATE_KEY"     # PEM; literal \\n sequences are accepted
  webhook_secret_env: "WEBHOOK_SECRET"
  token_env: "GITHUB_TOKEN"          # CLI only

# Branch names
branches:
  production: "production"
  staging: "staging"
  mirror_prefix: "sgc-"              # sgc-production, sgc-staging

# What a branch sync may touch
sync:
  directories: [assets, blocks, config, layout, locales, sections, snippets, templates]
  json_exception: "config/settings_schema.json"
  exclude_staging_json: false        # skip JSON when syncing sgc-staging -> staging
  rebase_strategy: "squash"          # squash | replay

# GitHub rate limiting
rate_limit:
  max_retries: 5
  base_delay: 1.0
  max_delay: 60.0
  secondary_min_wait: 60.0
  spacing: 0.05

# Blob upload batching
batch:
  batch_size: 10
  delay_between_batches: 0.5
  delay_between_items: 0.075

# Commit-message markers (compared lower-cased)
# markers:
#   shopify_update: "update from shopify"
#   sync_from_mirror: "sync files from sgc-production"
#   merge_pull_request: "merge pull request"
#   rebase_sources: ["/staging", "/sync/horizon"]
#   include_json: ["[include-json]", "[sync-json]"]
#   horizon_branch: "sync/horizon-"

# Preview themes
theme:
  cli_command: ["shopify"]
  token_env: "SHOPIFY_CLI_TOKEN"
  preview_label: "preview"
  timeout: 600

# Webhook server
server:
  host: "0.0.0.0"
  port: 3000
  path: "/api/webhook"

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
