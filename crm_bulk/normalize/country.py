from __future__ import annotations

"""Country / region normalization.

Free-text country values from CSV uploads are mapped to one canonical spelling
("United States" -> "USA") and the region column is derived from it. Unknown
countries pass through unchanged and fall into the catch-all region.
"""

__all__ = [
    "COUNTRIES",
    "REGIONS",
    "CATCH_ALL_REGION",
    "COUNTRY_TO_REGION",
    "COUNTRY_ALIASES",
    "normalize_country_name",
    "region_for_country",
]

CATCH_ALL_REGION = "Other"

REGIONS = ("EU", "US", "ASIA", CATCH_ALL_REGION)

COUNTRY_TO_REGION: dict[str, str] = {
    # ASIA
    "China": "ASIA",
    "India": "ASIA",
    "Israel": "ASIA",
    "Japan": "ASIA",
    "South Korea": "ASIA",
    "Singapore": "ASIA",
    "UAE": "ASIA",
    "Vietnam": "ASIA",
    # EU
    "Austria": "EU",
    "Belgium": "EU",
    "Czech Republic": "EU",
    "Denmark": "EU",
    "Finland": "EU",
    "France": "EU",
    "Germany": "EU",
    "Ireland": "EU",
    "Italy": "EU",
    "Luxembourg": "EU",
    "Netherlands": "EU",
    "Poland": "EU",
    "Portugal": "EU",
    "Slovakia": "EU",
    "Spain": "EU",
    "Sweden": "EU",
    "Switzerland": "EU",
    "Turkey": "EU",
    "UK": "EU",
    # US / Americas
    "Argentina": "US",
    "Brazil": "US",
    "Canada": "US",
    "Mexico": "US",
    "USA": "US",
    # Other
    "Australia": CATCH_ALL_REGION,
    "Nigeria": CATCH_ALL_REGION,
    "South Africa": CATCH_ALL_REGION,
    "Other": CATCH_ALL_REGION,
}

COUNTRIES: tuple[str, ...] = tuple(COUNTRY_TO_REGION)

# lower-cased variant -> canonical country
COUNTRY_ALIASES: dict[str, str] = {
    "united states": "USA",
    "united states of america": "USA",
    "us": "USA",
    "u.s.": "USA",
    "u.s.a.": "USA",
    "america": "USA",
    "united kingdom": "UK",
    "great britain": "UK",
    "gb": "UK",
    "england": "UK",
    "britain": "UK",
    "korea": "South Korea",
    "republic of korea": "South Korea",
    "s. korea": "South Korea",
    "united arab emirates": "UAE",
    "u.a.e.": "UAE",
    "czech": "Czech Republic",
    "czechia": "Czech Republic",
    "holland": "Netherlands",
    "the netherlands": "Netherlands",
    "swiss": "Switzerland",
}

_CANONICAL_BY_LOWER = {c.lower(): c for c in COUNTRIES}


def normalize_country_name(value: str | None) -> str | None:
    """Return the canonical spelling for ``value``.

    Empty / None -> None. Unknown names are returned trimmed but otherwise
    unchanged, so the result is always traceable to the input.
    """
    if value is None:
        return None
    trimmed = str(value).strip()
    if not trimmed:
        return None
    key = trimmed.lower()
    canonical = _CANONICAL_BY_LOWER.get(key)
    if canonical is not None:
        return canonical
    alias = COUNTRY_ALIASES.get(key)
    if alias is not None:
        return alias
    return trimmed


def region_for_country(value: str | None) -> str | None:
    """Region label for a (possibly free-text) country.

    None only when the country itself normalizes to None; unmapped countries get
    CATCH_ALL_REGION.
    """
    normalized = normalize_country_name(value)
    if normalized is None:
        return None
    return COUNTRY_TO_REGION.get(normalized, CATCH_ALL_REGION)
