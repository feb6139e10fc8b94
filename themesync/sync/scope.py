"""Which paths a branch sync is allowed to touch."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

THEME_DIRECTORIES: tuple[str, ...] = (
    "assets",
    "blocks",
    "config",
    "layout",
    "locales",
    "sections",
    "snippets",
    "templates",
)

SETTINGS_SCHEMA_PATH = "config/settings_schema.json"


class SyncScope(BaseModel):
    """Allow-list of top-level theme directories plus the JSON exclusion switch.

    JSON files carry merchant-edited settings, so some sync directions leave
    them alone. The settings schema is code, not data, and always travels.
    """

    model_config = ConfigDict(frozen=True)

    directories: tuple[str, ...] = THEME_DIRECTORIES
    exclude_json: bool = False
    json_exception: str = SETTINGS_SCHEMA_PATH

    def includes(self, path: str) -> bool:
        return is_in_scope(path, self)


def is_in_scope(path: str, scope: SyncScope) -> bool:
    """True if *path* is inside an allow-listed directory and passes the JSON rule."""
    in_directory = any(
        path == directory or path.startswith(directory + "/")
        for directory in scope.directories
    )
    if not in_directory:
        return False
    if scope.exclude_json and path.endswith(".json"):
        return path == scope.json_exception
    return True
