"""
Canonical URL construction for state and city pages.

Path mode:      https://{domain}/{st}/{city-slug}/
Subdomain mode: https://{city-slug}-{st}.{domain}/
"""

from __future__ import annotations

from .config import SiteConfig


def canonical_url(config: SiteConfig, path: str = "/") -> str:
    clean_path = path if path.startswith("/") else f"/{path}"
    if not clean_path.endswith("/"):
        clean_path = f"{clean_path}/"
    return f"{config.site_url}{clean_path}"


def state_url(config: SiteConfig, state_abbr: str) -> str:
    site_url = config.site_url
    state = state_abbr.strip().lower()
    if config.subdomain_mode:
        return f"https://{state}.{config.domain.strip().lower()}/"
    return f"{site_url}/{state}/"


def city_url(config: SiteConfig, city_slug: str, state_abbr: str) -> str:
    site_url = config.site_url
    state = state_abbr.strip().lower()
    slug = city_slug.lower()
    if config.subdomain_mode:
        return f"https://{slug}-{state}.{config.domain.strip().lower()}/"
    return f"{site_url}/{state}/{slug}/"

