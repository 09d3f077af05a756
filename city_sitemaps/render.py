"""
Sitemap XML renderers.

Three document shapes: the sitemap index, the main urlset (static + state
pages) and a city chunk urlset.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from datetime import UTC, datetime
from typing import Iterable

from .config import SiteConfig
from .datasource import CityRecord, StateRecord
from .pagination import city_record_url
from .urls import canonical_url, state_url

logger = logging.getLogger(__name__)

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
MAIN_SITEMAP_NAME = "sitemap-main.xml"
HOMEPAGE_PATHS = {"", "/"}


def today_stamp() -> str:
    return datetime.now(UTC).date().isoformat()


def chunk_filename(number: int) -> str:
    return f"sitemap-{number}.xml"


def add_url(root: ET.Element, loc: str, lastmod: str, changefreq: str, priority: str) -> None:
    url_node = ET.SubElement(root, "url")
    ET.SubElement(url_node, "loc").text = loc
    ET.SubElement(url_node, "lastmod").text = lastmod
    ET.SubElement(url_node, "changefreq").text = changefreq
    ET.SubElement(url_node, "priority").text = priority


def build_index(entries: Iterable[tuple[str, str]]) -> ET.Element:
    root = ET.Element("sitemapindex", xmlns=SITEMAP_NS)
    for loc, lastmod in entries:
        sitemap_node = ET.SubElement(root, "sitemap")
        ET.SubElement(sitemap_node, "loc").text = loc
        ET.SubElement(sitemap_node, "lastmod").text = lastmod
    return root


def to_xml(root: ET.Element) -> str:
    ET.indent(root, space="  ")
    # short_empty_elements=False keeps `<urlset ...></urlset>` for empty chunks.
    xml_bytes = ET.tostring(root, encoding="utf-8", xml_declaration=True, short_empty_elements=False)
    return xml_bytes.decode("utf-8") + "\n"


def render_index(config: SiteConfig, file_count: int, lastmod: str) -> str:
    site_url = config.site_url
    entries = [(f"{site_url}/{MAIN_SITEMAP_NAME}", lastmod)]
    entries.extend((f"{site_url}/{chunk_filename(number)}", lastmod) for number in range(2, file_count + 2))
    return to_xml(build_index(entries))


def render_main(
    config: SiteConfig,
    static_pages: Iterable[str],
    states: Iterable[StateRecord],
    lastmod: str,
) -> str:
    root = ET.Element("urlset", xmlns=SITEMAP_NS)
    for page in static_pages:
        if page in HOMEPAGE_PATHS:
            add_url(root, canonical_url(config, "/"), lastmod, "weekly", "1.0")
        else:
            add_url(root, canonical_url(config, page), lastmod, "monthly", "0.8")
    for state in states:
        if not state.abbreviation:
            continue
        add_url(root, state_url(config, state.abbreviation), lastmod, "weekly", "0.7")
    return to_xml(root)


def render_city_chunk(config: SiteConfig, cities: Iterable[CityRecord], lastmod: str) -> str:
    root = ET.Element("urlset", xmlns=SITEMAP_NS)
    emitted: set[str] = set()
    for city in cities:
        url = city_record_url(config, city)
        if url is None:
            logger.debug("Skipping city with empty slug: %r (%s)", city.name, city.state_abbr)
            continue
        if url in emitted:
            logger.debug("Skipping duplicate city URL in chunk: %s", url)
            continue
        emitted.add(url)
        add_url(root, url, lastmod, "weekly", "0.8")
    return to_xml(root)
