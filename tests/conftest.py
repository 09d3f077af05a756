from __future__ import annotations

import pytest

from city_sitemaps.config import SiteConfig, SitemapLimits
from city_sitemaps.datasource import CityRecord, StateRecord
from city_sitemaps.errors import DataSourceError


class FakeSource:
    """In-memory source that records each batch request and can fail on demand.

    ``count_error`` is True (raise DataSourceError) or an exception instance.
    ``fetch_error`` replaces the DataSourceError raised on ``fail_on_call``.
    """

    def __init__(
        self,
        cities=(),
        states=(),
        count=None,
        count_error=False,
        fail_on_call=None,
        states_error=None,
        fetch_error=None,
    ):
        self.cities = list(cities)
        self.states = list(states)
        self.count = count
        self.count_error = count_error
        self.fail_on_call = fail_on_call
        self.states_error = states_error
        self.fetch_error = fetch_error
        self.calls: list[tuple[int, int]] = []

    def count_cities(self) -> int:
        if isinstance(self.count_error, BaseException):
            raise self.count_error
        if self.count_error:
            raise DataSourceError("count unavailable")
        return len(self.cities) if self.count is None else self.count

    def fetch_cities(self, offset: int, limit: int) -> list[CityRecord]:
        self.calls.append((offset, limit))
        if self.fail_on_call is not None and len(self.calls) - 1 == self.fail_on_call:
            raise self.fetch_error or DataSourceError("connection reset")
        return self.cities[offset : offset + limit]

    def fetch_states(self) -> list[StateRecord]:
        if self.states_error is not None:
            raise self.states_error
        return list(self.states)


def make_cities(count: int, state: str = "MI") -> list[CityRecord]:
    return [CityRecord(name=f"Town {idx}", state_abbr=state) for idx in range(count)]


@pytest.fixture
def limits() -> SitemapLimits:
    return SitemapLimits(urls_per_sitemap=5, batch_size=3, max_batches=50, default_file_count=4)


@pytest.fixture
def config(limits) -> SiteConfig:
    return SiteConfig(domain="mysite.org", use_subdomains=False, limits=limits)


@pytest.fixture
def subdomain_config(limits) -> SiteConfig:
    return SiteConfig(domain="mysite.org", use_subdomains=True, limits=limits)
