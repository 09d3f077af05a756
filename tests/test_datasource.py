from __future__ import annotations

import json

import pytest
import requests

from city_sitemaps.config import SiteConfig
from city_sitemaps.datasource import (
    CityRecord,
    CitySource,
    EmptySource,
    FileSource,
    StateRecord,
    SupabaseSource,
    build_source,
    parse_content_range,
)
from city_sitemaps.errors import DataSourceError


class FakeResponse:
    def __init__(self, payload=None, status_code=200, headers=None, text=None):
        self.payload = payload
        self.status_code = status_code
        self.headers = headers or {}
        self.text = text

    def json(self):
        if self.text is not None:
            return json.loads(self.text)
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Replays one response for every call, or a list of responses in order."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests: list[dict] = []

    def request(self, method, url, params=None, headers=None, timeout=None):
        self.requests.append({"method": method, "url": url, "params": params, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        if isinstance(self.response, list):
            return self.response.pop(0)
        return self.response


@pytest.mark.parametrize(
    ("value", "expected"),
    [("0-24/41234", 41234), ("*/0", 0), ("*/*", None), ("", None), (None, None)],
)
def test_parse_content_range(value, expected):
    assert parse_content_range(value) == expected


def test_supabase_fetch_cities_builds_ranked_range_query():
    payload = [
        {"name": "Detroit", "states": {"abbreviation": "MI"}},
        {"name": "Newark", "states": [{"abbreviation": "NJ"}]},
        {"name": "Nowhere", "states": None},
    ]
    session = FakeSession(FakeResponse(payload))
    source = SupabaseSource("https://abc.supabase.co/", "anon-key", timeout=7, session=session)

    rows = source.fetch_cities(2000, 1000)

    assert rows == [CityRecord("Detroit", "MI"), CityRecord("Newark", "NJ"), CityRecord("Nowhere", "")]
    sent = session.requests[0]
    assert sent["method"] == "GET"
    assert sent["url"] == "https://abc.supabase.co/rest/v1/cities"
    assert sent["params"] == {
        "select": "name,states(abbreviation)",
        "order": "population.desc",
        "offset": 2000,
        "limit": 1000,
    }
    assert sent["headers"]["apikey"] == "anon-key"
    assert sent["headers"]["Authorization"] == "Bearer anon-key"
    assert sent["timeout"] == 7


def test_supabase_fetch_cities_pages_past_server_row_cap():
    def page(*names):
        return FakeResponse([{"name": name, "states": {"abbreviation": "MI"}} for name in names])

    session = FakeSession([page("A", "B"), page("C", "D"), page("E")])
    source = SupabaseSource("https://abc.supabase.co", "anon-key", session=session, max_rows=2)

    rows = source.fetch_cities(10, 5)

    assert [row.name for row in rows] == ["A", "B", "C", "D", "E"]
    assert [(r["params"]["offset"], r["params"]["limit"]) for r in session.requests] == [(10, 2), (12, 2), (14, 1)]


def test_supabase_fetch_cities_stops_on_short_page():
    session = FakeSession([FakeResponse([{"name": "A", "states": {"abbreviation": "MI"}}])])
    source = SupabaseSource("https://abc.supabase.co", "anon-key", session=session, max_rows=2)

    assert source.fetch_cities(0, 5) == [CityRecord("A", "MI")]
    assert len(session.requests) == 1


def test_supabase_count_reads_content_range():
    session = FakeSession(FakeResponse(headers={"Content-Range": "*/45000"}))
    source = SupabaseSource("https://abc.supabase.co", "key", session=session)
    assert source.count_cities() == 45000
    assert session.requests[0]["method"] == "HEAD"
    assert session.requests[0]["headers"]["Prefer"] == "count=exact"


def test_supabase_count_without_header_is_an_error():
    source = SupabaseSource("https://abc.supabase.co", "key", session=FakeSession(FakeResponse()))
    with pytest.raises(DataSourceError):
        source.count_cities()


def test_supabase_states_ordered_by_name():
    session = FakeSession(FakeResponse([{"name": "Alabama", "abbreviation": "AL"}]))
    source = SupabaseSource("https://abc.supabase.co", "key", session=session)
    assert source.fetch_states() == [StateRecord("Alabama", "AL")]
    assert session.requests[0]["params"] == {"select": "name,abbreviation", "order": "name.asc"}


@pytest.mark.parametrize(
    "session",
    [
        FakeSession(error=requests.exceptions.ConnectionError("refused")),
        FakeSession(FakeResponse(status_code=503)),
        FakeSession(FakeResponse(text="<html>oops</html>")),
        FakeSession(FakeResponse({"message": "not a list"})),
    ],
)
def test_supabase_failures_raise_data_source_error(session):
    source = SupabaseSource("https://abc.supabase.co", "key", session=session)
    with pytest.raises(DataSourceError):
        source.fetch_cities(0, 1000)


def test_file_source_ranks_cities_by_population(tmp_path):
    cities_csv = tmp_path / "cities.csv"
    cities_csv.write_text(
        "city,state,population\nFlint,MI,81252\nDetroit,MI,\"639,111\"\nLansing,MI,112644\n",
        encoding="utf-8",
    )
    states_json = tmp_path / "states.json"
    states_json.write_text(
        json.dumps({"records": [{"name": "Ohio", "abbreviation": "OH"}, {"name": "Michigan", "abbreviation": "MI"}]}),
        encoding="utf-8",
    )

    source = FileSource.from_files(str(cities_csv), str(states_json))

    assert source.count_cities() == 3
    assert source.fetch_cities(0, 2) == [CityRecord("Detroit", "MI"), CityRecord("Lansing", "MI")]
    assert source.fetch_cities(2, 2) == [CityRecord("Flint", "MI")]
    assert [state.abbreviation for state in source.fetch_states()] == ["MI", "OH"]


def test_file_source_missing_file(tmp_path):
    with pytest.raises(DataSourceError, match="File not found"):
        FileSource.from_files(str(tmp_path / "nope.csv"))


def test_empty_source():
    source = EmptySource()
    assert source.fetch_cities(0, 10) == []
    assert source.fetch_states() == []
    with pytest.raises(DataSourceError):
        source.count_cities()


def test_build_source_selection(tmp_path):
    cities_json = tmp_path / "cities.json"
    cities_json.write_text(json.dumps([{"name": "Flint", "state_abbr": "MI"}]), encoding="utf-8")

    assert isinstance(build_source(SiteConfig(domain="mysite.org", supabase_url="https://abc.supabase.co")), SupabaseSource)
    assert isinstance(build_source(SiteConfig(domain="mysite.org", cities_file=str(cities_json))), FileSource)
    assert isinstance(build_source(SiteConfig(domain="mysite.org")), EmptySource)


def test_every_source_satisfies_city_source(tmp_path):
    cities = tmp_path / "cities.csv"
    cities.write_text("name,state\nDetroit,MI\n", encoding="utf-8")
    sources = [
        SupabaseSource("https://abc.supabase.co", "key", session=FakeSession()),
        FileSource.from_files(str(cities)),
        EmptySource(),
    ]
    for source in sources:
        assert isinstance(source, CitySource)
