"""Exception types shared across the sitemap pipeline."""

from __future__ import annotations


class SitemapError(Exception):
    pass


class ConfigurationError(SitemapError):
    """Site configuration is missing or unusable (for example a placeholder domain)."""


class DataSourceError(SitemapError):
    """The city/state data store could not be queried."""


class InvalidSitemapId(SitemapError):
    """A requested sitemap file identifier is not `main` or an integer >= 2."""
