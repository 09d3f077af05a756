"""XML sitemap index, main and city-chunk generation for city/state sites."""

__version__ = "1.0.0"
