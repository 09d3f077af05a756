#!/usr/bin/env python3
"""
Sitemap generator and server for city/state sites.
"""

from __future__ import annotations

import argparse
import json
import logging
import xml.etree.ElementTree as ET
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .config import SiteConfig, load_config
from .datasource import build_source
from .documents import MAIN_ID, build_document, build_index_document
from .errors import SitemapError
from .pagination import resolve_file_count
from .render import MAIN_SITEMAP_NAME, chunk_filename, render_index, today_stamp

logger = logging.getLogger(__name__)

CONFIG_ARGS = (
    "config_file",
    "domain",
    "use_subdomains",
    "supabase_url",
    "supabase_key",
    "cities_file",
    "states_file",
    "urls_per_sitemap",
    "batch_size",
    "max_batches",
    "default_file_count",
    "timeout",
)


def localname(tag: str) -> str:
    if "}" in tag:
        return tag.rsplit("}", 1)[-1]
    return tag


def count_entries(xml_text: str) -> int:
    root = ET.fromstring(xml_text.encode("utf-8"))
    return sum(1 for node in root if localname(node.tag) in {"url", "sitemap"})


def write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def config_from_args(args: argparse.Namespace) -> SiteConfig:
    overrides = {name: getattr(args, name, None) for name in CONFIG_ARGS}
    return load_config(overrides)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run_generate(args: argparse.Namespace) -> int:
    try:
        config = config_from_args(args)
        config.validate()
        source = build_source(config)
    except SitemapError as exc:
        print(f"Error: {exc}")
        return 2

    out_dir = Path(args.output_dir).resolve()
    lastmod = today_stamp()
    file_count = resolve_file_count(source, config.limits)
    outputs: list[dict[str, Any]] = []

    index_path = out_dir / "sitemap.xml"
    index_xml = render_index(config, file_count, lastmod)
    write_text(index_path, index_xml)
    outputs.append({"file": index_path.name, "entries": count_entries(index_xml)})

    targets: list[tuple[str, str | int]] = [(MAIN_SITEMAP_NAME, MAIN_ID)]
    targets.extend((chunk_filename(number), number) for number in range(2, file_count + 2))
    for filename, sitemap_id in targets:
        xml_text = build_document(config, source, sitemap_id, lastmod)
        write_text(out_dir / filename, xml_text)
        outputs.append({"file": filename, "entries": count_entries(xml_text)})

    city_urls = sum(item["entries"] for item in outputs[2:])
    summary = {
        "generated_at": datetime.now(UTC).isoformat(),
        "site_url": config.site_url,
        "subdomain_mode": config.subdomain_mode,
        "lastmod": lastmod,
        "city_sitemap_files": file_count,
        "city_url_count": city_urls,
        "outputs": outputs,
    }
    summary_path = out_dir / "SUMMARY.json"
    write_text(summary_path, json.dumps(summary, indent=2) + "\n")

    print(f"Site URL: {config.site_url}")
    print(f"City sitemap files: {file_count}")
    print(f"City URLs written: {city_urls}")
    print(f"Output directory: {out_dir}")
    print(f"Summary: {summary_path}")
    return 0


def run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .app import create_app

    try:
        config = config_from_args(args)
        config.validate()
        source = build_source(config)
    except SitemapError as exc:
        print(f"Error: {exc}")
        return 2

    app = create_app(config, source)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())
    return 0


def run_index(args: argparse.Namespace) -> int:
    try:
        config = config_from_args(args)
        source = build_source(config)
        print(build_index_document(config, source, today_stamp()), end="")
    except SitemapError as exc:
        print(f"Error: {exc}")
        return 2
    return 0


def add_config_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config-file", default=None, help="JSON site config; CLI args override file values")
    parser.add_argument("--domain", default=None, help="Site domain, e.g. mysite.org")
    parser.add_argument(
        "--use-subdomains",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Route cities/states as {city}-{st}.{domain} subdomains",
    )
    parser.add_argument("--supabase-url", default=None, help="Supabase project URL")
    parser.add_argument("--supabase-key", default=None, help="Supabase anon/service key")
    parser.add_argument("--cities-file", default=None, help="CSV or JSON city export (name, state_abbr, population)")
    parser.add_argument("--states-file", default=None, help="CSV or JSON state export (name, abbreviation)")
    parser.add_argument("--urls-per-sitemap", type=int, default=None, help="City URLs per sitemap file")
    parser.add_argument("--batch-size", type=int, default=None, help="Rows per data-source batch")
    parser.add_argument("--max-batches", type=int, default=None, help="Safety cap on batches per chunk")
    parser.add_argument("--default-file-count", type=int, default=None, help="File count when counting fails")
    parser.add_argument("--timeout", type=int, default=None)
    parser.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate or serve city/state XML sitemaps.")
    sub = parser.add_subparsers(dest="command", required=True)

    p_generate = sub.add_parser("generate", help="Write the sitemap index, main and city sitemaps to disk")
    add_config_arguments(p_generate)
    p_generate.add_argument("--output-dir", default="sitemap-output")
    p_generate.set_defaults(func=run_generate)

    p_index = sub.add_parser("index", help="Print the sitemap index to stdout")
    add_config_arguments(p_index)
    p_index.set_defaults(func=run_index)

    p_serve = sub.add_parser("serve", help="Serve sitemaps over HTTP")
    add_config_arguments(p_serve)
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.set_defaults(func=run_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
