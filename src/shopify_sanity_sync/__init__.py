"""Sync Shopify products and collections into Sanity via webhook requests."""

from .app import create_app
from .sync import CatalogSync

__all__ = ["CatalogSync", "create_app"]
