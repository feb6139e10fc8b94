"""themesync: keeps theme branches, their Shopify mirrors and preview themes in sync."""

__version__ = "0.1.0"
