from .files import ThemeFile, collect_theme_files, decode_blob
from .preview import PreviewThemeManager, extract_store_name, find_theme_id
from .publisher import (
    PublishedTheme,
    ShopifyCLIPublisher,
    ThemePublisher,
    parse_theme_id,
)

__all__ = [
    "PreviewThemeManager",
    "PublishedTheme",
    "ShopifyCLIPublisher",
    "ThemeFile",
    "ThemePublisher",
    "collect_theme_files",
    "decode_blob",
    "extract_store_name",
    "find_theme_id",
    "parse_theme_id",
]
