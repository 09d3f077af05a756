"""Request-level sitemap assembly shared by the HTTP app and the CLI."""

from __future__ import annotations

import logging
import re

from .config import SiteConfig
from .datasource import CitySource
from .errors import InvalidSitemapId
from .pagination import chunk_offset, fetch_city_page, resolve_file_count
from .render import render_city_chunk, render_index, render_main

logger = logging.getLogger(__name__)

MAIN_ID = "main"
LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def parse_sitemap_id(raw: str | None) -> str | int:
    """Return "main" or a chunk number >= 2.

    A leading run of digits is accepted ("3abc" -> 3).
    """
    value = (raw or "").strip()
    if value == MAIN_ID:
        return MAIN_ID
    match = LEADING_INT_RE.match(value)
    if not match:
        raise InvalidSitemapId(f"Invalid sitemap number: {raw!r}")
    number = int(match.group(1))
    if number < 2:
        raise InvalidSitemapId(f"Sitemap number must be >= 2, got {number}")
    return number


def build_index_document(config: SiteConfig, source: CitySource, lastmod: str) -> str:
    config.validate()
    file_count = resolve_file_count(source, config.limits)
    return render_index(config, file_count, lastmod)


def build_main_document(config: SiteConfig, source: CitySource, lastmod: str) -> str:
    config.validate()
    try:
        states = source.fetch_states()
    except Exception as exc:
        logger.error("Error fetching states for sitemap: %s", exc, exc_info=True)
        states = []
    return render_main(config, config.static_pages, states, lastmod)


def build_chunk_document(config: SiteConfig, source: CitySource, number: int, lastmod: str) -> str:
    config.validate()
    limits = config.limits
    cities = fetch_city_page(source, config, chunk_offset(number, limits), limits.urls_per_sitemap)
    return render_city_chunk(config, cities, lastmod)


def build_document(config: SiteConfig, source: CitySource, sitemap_id: str | int, lastmod: str) -> str:
    if sitemap_id == MAIN_ID:
        return build_main_document(config, source, lastmod)
    return build_chunk_document(config, source, int(sitemap_id), lastmod)
