"""
City/state data sources.

Every source exposes the same three queries:
  count_cities()             -> int
  fetch_cities(offset, limit) -> list[CityRecord]   (population desc)
  fetch_states()             -> list[StateRecord]  (name asc)

Failures are raised as DataSourceError so callers can degrade uniformly.
"""

from __future__ import annotations

import csv
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import requests

from .config import SiteConfig
from .errors import DataSourceError

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": "city-sitemaps/1.0",
    "Accept": "application/json",
}
CONTENT_RANGE_RE = re.compile(r"^\s*(?:\d+-\d+|\*)/(\d+)\s*$")
# Supabase's default PostgREST `max-rows` setting.
SUPABASE_MAX_ROWS = 1000


@dataclass(frozen=True)
class CityRecord:
    name: str
    state_abbr: str


@dataclass(frozen=True)
class StateRecord:
    name: str
    abbreviation: str


@runtime_checkable
class CitySource(Protocol):
    def count_cities(self) -> int: ...

    def fetch_cities(self, offset: int, limit: int) -> list[CityRecord]: ...

    def fetch_states(self) -> list[StateRecord]: ...


def parse_content_range(value: str | None) -> int | None:
    """Total from a PostgREST Content-Range header (`0-24/41234` or `*/41234`)."""
    if not value:
        return None
    match = CONTENT_RANGE_RE.match(value)
    if not match:
        return None
    return int(match.group(1))


def _state_abbr_from_row(row: dict[str, Any]) -> str:
    states = row.get("states")
    if isinstance(states, list):
        states = states[0] if states else None
    if isinstance(states, dict):
        return str(states.get("abbreviation") or "").strip()
    return ""


class SupabaseSource:
    """Queries the Supabase PostgREST endpoint for `cities` and `states`."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: int = 20,
        session: requests.Session | None = None,
        max_rows: int = SUPABASE_MAX_ROWS,
    ) -> None:
        self.rest_url = f"{base_url.rstrip('/')}/rest/v1"
        self.timeout = timeout
        self.max_rows = max_rows
        self.session = session or requests.Session()
        self.headers = dict(HEADERS)
        if api_key:
            self.headers["apikey"] = api_key
            self.headers["Authorization"] = f"Bearer {api_key}"

    def _request(self, method: str, table: str, params: dict[str, Any], extra_headers: dict[str, str] | None = None):
        headers = dict(self.headers)
        if extra_headers:
            headers.update(extra_headers)
        try:
            response = self.session.request(
                method,
                f"{self.rest_url}/{table}",
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            raise DataSourceError(f"{method} {table} failed: {exc}") from exc
        return response

    def _json_rows(self, response, table: str) -> list[dict[str, Any]]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise DataSourceError(f"Invalid JSON from {table}: {exc}") from exc
        if not isinstance(payload, list):
            raise DataSourceError(f"Unexpected payload from {table}: expected a JSON list")
        return [row for row in payload if isinstance(row, dict)]

    def count_cities(self) -> int:
        response = self._request("HEAD", "cities", {"select": "*"}, {"Prefer": "count=exact"})
        total = parse_content_range(response.headers.get("Content-Range"))
        if total is None:
            raise DataSourceError("cities count missing from Content-Range header")
        return total

    def fetch_cities(self, offset: int, limit: int) -> list[CityRecord]:
        # PostgREST truncates each response at max_rows, so larger requests are paged.
        cities: list[CityRecord] = []
        while len(cities) < limit:
            page_size = min(limit - len(cities), self.max_rows)
            response = self._request(
                "GET",
                "cities",
                {
                    "select": "name,states(abbreviation)",
                    "order": "population.desc",
                    "offset": offset + len(cities),
                    "limit": page_size,
                },
            )
            rows = self._json_rows(response, "cities")
            cities.extend(
                CityRecord(name=str(row.get("name") or "").strip(), state_abbr=_state_abbr_from_row(row))
                for row in rows
            )
            if len(rows) < page_size:
                break
        return cities

    def fetch_states(self) -> list[StateRecord]:
        response = self._request("GET", "states", {"select": "name,abbreviation", "order": "name.asc"})
        return [
            StateRecord(name=str(row.get("name") or "").strip(), abbreviation=str(row.get("abbreviation") or "").strip())
            for row in self._json_rows(response, "states")
        ]


def map_record_keys(record: dict[str, Any]) -> dict[str, Any]:
    return {str(k).strip().lower(): v for k, v in record.items()}


def pick_field(record: dict[str, Any], keys: list[str]) -> Any:
    mapped = map_record_keys(record)
    for key in keys:
        if key in mapped:
            return mapped[key]
    return None


def to_population(value: Any) -> int:
    text = str(value if value is not None else "").replace(",", "").strip()
    if re.fullmatch(r"-?\d+(?:\.\d+)?", text):
        return int(float(text))
    return 0


def read_records(path_value: str) -> list[dict[str, Any]]:
    path = Path(path_value).resolve()
    if not path.exists():
        raise DataSourceError(f"File not found: {path}")

    suffix = path.suffix.lower()
    try:
        if suffix == ".csv":
            with path.open("r", encoding="utf-8", newline="") as handle:
                return [dict(row) for row in csv.DictReader(handle)]
        if suffix == ".json":
            payload = json.loads(path.read_text(encoding="utf-8"))
            if isinstance(payload, list):
                return [dict(item) for item in payload if isinstance(item, dict)]
            if isinstance(payload, dict):
                for key in ("records", "rows", "items", "data"):
                    maybe = payload.get(key)
                    if isinstance(maybe, list):
                        return [dict(item) for item in maybe if isinstance(item, dict)]
            raise DataSourceError(f"Unsupported JSON structure in {path}")
    except (OSError, json.JSONDecodeError, csv.Error) as exc:
        raise DataSourceError(f"Could not read {path}: {exc}") from exc

    raise DataSourceError("Supported file types: .csv, .json")


class FileSource:
    """Cities and states loaded from local CSV/JSON exports."""

    def __init__(self, cities: list[dict[str, Any]], states: list[dict[str, Any]] | None = None) -> None:
        ranked = sorted(
            cities,
            key=lambda row: to_population(pick_field(row, ["population", "pop"])),
            reverse=True,
        )
        self.cities = [
            CityRecord(
                name=str(pick_field(row, ["name", "city"]) or "").strip(),
                state_abbr=str(pick_field(row, ["state_abbr", "state", "abbreviation"]) or "").strip(),
            )
            for row in ranked
        ]
        parsed_states = [
            StateRecord(
                name=str(pick_field(row, ["name", "state_name"]) or "").strip(),
                abbreviation=str(pick_field(row, ["abbreviation", "state_abbr", "abbr"]) or "").strip(),
            )
            for row in states or []
        ]
        self.states = sorted(parsed_states, key=lambda state: state.name)

    @classmethod
    def from_files(cls, cities_file: str, states_file: str = "") -> FileSource:
        cities = read_records(cities_file) if cities_file else []
        states = read_records(states_file) if states_file else []
        return cls(cities, states)

    def count_cities(self) -> int:
        return len(self.cities)

    def fetch_cities(self, offset: int, limit: int) -> list[CityRecord]:
        return self.cities[offset : offset + limit]

    def fetch_states(self) -> list[StateRecord]:
        return list(self.states)


class EmptySource:
    """Stand-in when no data store is configured: no rows and no count."""

    def count_cities(self) -> int:
        raise DataSourceError("no data source configured")

    def fetch_cities(self, offset: int, limit: int) -> list[CityRecord]:
        return []

    def fetch_states(self) -> list[StateRecord]:
        return []


def build_source(config: SiteConfig) -> CitySource:
    if config.supabase_url:
        logger.info("Using Supabase data source at %s", config.supabase_url)
        return SupabaseSource(config.supabase_url, config.supabase_key, timeout=config.timeout)
    if config.cities_file or config.states_file:
        logger.info("Using file data source: cities=%s states=%s", config.cities_file, config.states_file)
        return FileSource.from_files(config.cities_file, config.states_file)
    logger.warning("No data source configured; city sitemaps will be empty")
    return EmptySource()
