"""
Sitemap file counting and deduplicated city paging.

Chunk N (N >= 2) covers offset (N - 2) * urls_per_sitemap of the city sequence
after empty rows are dropped and rows are deduplicated by canonical URL.
"""

from __future__ import annotations

import logging
import math

from .config import SiteConfig, SitemapLimits
from .datasource import CityRecord, CitySource
from .slugs import create_city_slug
from .urls import city_url

logger = logging.getLogger(__name__)


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def estimate_file_count(total_rows: int | None, capacity: int, limits: SitemapLimits | None = None) -> int:
    limits = limits or SitemapLimits()
    if total_rows is None:
        return limits.default_file_count
    return clamp(math.ceil(max(0, total_rows) / capacity), limits.min_files, limits.max_files)


def resolve_file_count(source: CitySource, limits: SitemapLimits) -> int:
    try:
        total = source.count_cities()
    except Exception as exc:
        logger.warning(
            "Could not count cities, using default of %d files: %s", limits.default_file_count, exc, exc_info=True
        )
        return limits.default_file_count
    count = estimate_file_count(total, limits.urls_per_sitemap, limits)
    logger.info("Counted %d cities -> %d city sitemap files", total, count)
    return count


def chunk_offset(number: int, limits: SitemapLimits) -> int:
    return (number - 2) * limits.urls_per_sitemap


def city_record_url(config: SiteConfig, city: CityRecord) -> str | None:
    """Canonical URL for a city, or None when its name has no slug-able characters."""
    slug = create_city_slug(city.name)
    if not slug:
        return None
    return city_url(config, slug, city.state_abbr)


def fetch_city_page(source: CitySource, config: SiteConfig, offset: int, limit: int) -> list[CityRecord]:
    """Return cities [offset, offset + limit) of the URL-deduplicated, population-ordered sequence.

    Data-source failures stop fetching and return what was collected so far;
    configuration errors from URL building propagate.
    """
    limits = config.limits
    target = offset + limit
    seen_urls: set[str] = set()
    unique: list[CityRecord] = []
    rows_consumed = 0
    batches = 0

    while len(unique) < target and batches < limits.max_batches:
        try:
            rows = source.fetch_cities(batches * limits.batch_size, limits.batch_size)
        except Exception as exc:
            logger.error("Error fetching cities batch %d: %s", batches, exc, exc_info=True)
            break
        batches += 1
        rows_consumed += len(rows)

        for city in rows:
            if not city.name or not city.state_abbr:
                continue
            url = city_record_url(config, city)
            if url is None:
                logger.debug("Skipping city with empty slug: %r (%s)", city.name, city.state_abbr)
                continue
            if url in seen_urls:
                continue
            seen_urls.add(url)
            unique.append(city)

        if len(rows) < limits.batch_size:
            break

    page = unique[offset:target]
    logger.info(
        "Chunk: %d cities (offset: %d, limit: %d, total unique: %d, rows read: %d, batches fetched: %d)",
        len(page),
        offset,
        limit,
        len(unique),
        rows_consumed,
        batches,
    )
    return page
