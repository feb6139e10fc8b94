from .loader import load_config
from .models import (
    BranchConfig,
    GitHubConfig,
    MarkerConfig,
    ServerConfig,
    SyncConfig,
    ThemeConfig,
    ThemeSyncConfig,
)

__all__ = [
    "BranchConfig",
    "GitHubConfig",
    "MarkerConfig",
    "ServerConfig",
    "SyncConfig",
    "ThemeConfig",
    "ThemeSyncConfig",
    "load_config",
]
