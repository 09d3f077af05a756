from __future__ import annotations

import re
import unicodedata


def create_city_slug(name: str) -> str:
    """Lowercase ASCII slug for a city display name, e.g. "St. Louis" -> "st-louis"."""
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    ascii_name = ascii_name.replace("'", "")
    return re.sub(r"[^a-z0-9]+", "-", ascii_name.lower()).strip("-")
