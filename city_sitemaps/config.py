"""
Immutable site configuration for sitemap generation.

Values are resolved once at process start with precedence
CLI flag > JSON config file > environment > default, then passed by reference
into the HTTP app and the CLI.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from .errors import ConfigurationError

PLACEHOLDER_DOMAIN = "example.com"
LEGACY_SUBDOMAIN_DOMAINS = frozenset({"free-government-phone.org", "government-phone.org"})

DEFAULT_STATIC_PAGES: tuple[str, ...] = (
    "",
    "/eligibility",
    "/programs",
    "/providers",
    "/faq",
    "/contact",
    "/apply",
    "/lifeline-program",
    "/acp-program",
    "/tribal-programs",
    "/state-programs",
    "/emergency-broadband",
    "/free-government-phone-near-me",
    "/states",
)

ENV_KEYS = {
    "domain": "SITE_DOMAIN",
    "use_subdomains": "SITE_USE_SUBDOMAINS",
    "config_file": "SITE_CONFIG_FILE",
    "supabase_url": "SUPABASE_URL",
    "supabase_key": "SUPABASE_KEY",
    "cities_file": "SITEMAP_CITIES_FILE",
    "states_file": "SITEMAP_STATES_FILE",
    "urls_per_sitemap": "SITEMAP_URLS_PER_FILE",
    "batch_size": "SITEMAP_BATCH_SIZE",
    "max_batches": "SITEMAP_MAX_BATCHES",
    "default_file_count": "SITEMAP_DEFAULT_FILE_COUNT",
    "timeout": "SITEMAP_TIMEOUT",
}


@dataclass(frozen=True)
class SitemapLimits:
    urls_per_sitemap: int = 10000
    batch_size: int = 1000
    # 50 batches x 1000 rows caps a single fetch at 50k raw rows.
    max_batches: int = 50
    # Used when the row count is unavailable. Not derived from max_batches.
    default_file_count: int = 4
    min_files: int = 1
    max_files: int = 10


@dataclass(frozen=True)
class SiteConfig:
    domain: str
    use_subdomains: bool | None = None
    static_pages: tuple[str, ...] = DEFAULT_STATIC_PAGES
    limits: SitemapLimits = field(default_factory=SitemapLimits)
    supabase_url: str = ""
    supabase_key: str = ""
    cities_file: str = ""
    states_file: str = ""
    timeout: int = 20

    @property
    def site_url(self) -> str:
        domain = (self.domain or "").strip().lower()
        if not domain or domain == PLACEHOLDER_DOMAIN or "example" in domain:
            raise ConfigurationError(
                f"Domain not properly configured for site. Expected unique domain, got: {self.domain!r}"
            )
        return f"https://{domain}"

    def validate(self) -> None:
        """Raise ConfigurationError if the domain cannot produce canonical URLs."""
        _ = self.site_url

    @property
    def subdomain_mode(self) -> bool:
        if self.use_subdomains is not None:
            return self.use_subdomains
        return (self.domain or "").strip().lower() in LEGACY_SUBDOMAIN_DOMAINS


def to_bool(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    return None


def to_positive_int(name: str, value: Any) -> int:
    text = str(value).strip()
    if not re.fullmatch(r"\d+", text) or int(text) <= 0:
        raise ConfigurationError(f"{name} must be a positive integer, got: {value!r}")
    return int(text)


def load_json_config(path_value: str) -> dict[str, Any]:
    path = Path(path_value).resolve()
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError("config-file JSON root must be an object")
    return payload


def load_config(
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> SiteConfig:
    """Build a SiteConfig from CLI overrides, an optional JSON file and the environment.

    ``overrides`` holds already-parsed CLI values; ``None`` entries are ignored.
    """
    env = os.environ if environ is None else environ
    cli = {key: value for key, value in (overrides or {}).items() if value is not None}

    config_file = cli.get("config_file") or env.get(ENV_KEYS["config_file"], "")
    file_values = load_json_config(config_file) if config_file else {}

    def pick(name: str, default: Any = None) -> Any:
        if name in cli:
            return cli[name]
        if file_values.get(name) is not None:
            return file_values[name]
        env_value = env.get(ENV_KEYS[name]) if name in ENV_KEYS else None
        if env_value not in (None, ""):
            return env_value
        return default

    use_subdomains_raw = pick("use_subdomains")
    use_subdomains = to_bool(use_subdomains_raw)
    if use_subdomains_raw is not None and use_subdomains is None:
        raise ConfigurationError(f"use_subdomains must be a boolean, got: {use_subdomains_raw!r}")

    defaults = SitemapLimits()
    limits = SitemapLimits(
        urls_per_sitemap=to_positive_int("urls_per_sitemap", pick("urls_per_sitemap", defaults.urls_per_sitemap)),
        batch_size=to_positive_int("batch_size", pick("batch_size", defaults.batch_size)),
        max_batches=to_positive_int("max_batches", pick("max_batches", defaults.max_batches)),
        default_file_count=to_positive_int(
            "default_file_count", pick("default_file_count", defaults.default_file_count)
        ),
    )

    static_pages = pick("static_pages", DEFAULT_STATIC_PAGES)
    if not isinstance(static_pages, (list, tuple)):
        raise ConfigurationError("static_pages must be a list of paths")

    return SiteConfig(
        domain=str(pick("domain", "") or "").strip(),
        use_subdomains=use_subdomains,
        static_pages=tuple(str(page) for page in static_pages),
        limits=limits,
        supabase_url=str(pick("supabase_url", "") or "").strip().rstrip("/"),
        supabase_key=str(pick("supabase_key", "") or "").strip(),
        cities_file=str(pick("cities_file", "") or "").strip(),
        states_file=str(pick("states_file", "") or "").strip(),
        timeout=to_positive_int("timeout", pick("timeout", 20)),
    )
