"""Sitemap-driven content discovery and scraping."""

__version__ = "0.1.0"
