"""
countries.py — Static region → country lookup tables.

Country-scoped sources (NewsAPI, GDELT) need a 2-letter country code and a
display name; users type cities, states, aliases and hashtag-able forms.

    country_code_for("Queens, New York, United States")  → "us"
    country_code_for("Paris")                            → "fr"
    country_code_for("somewhere unknown")                → "us"   (default)
    country_name_for("gb")                               → "United Kingdom"
"""

import re

DEFAULT_COUNTRY_CODE = "us"

# Region name variants → ISO 3166-1 alpha-2 (lowercase, as NewsAPI expects).
COUNTRY_CODES: dict[str, str] = {
    # United States
    "united states": "us",
    "usa": "us",
    "us": "us",
    "america": "us",
    "new york": "us",
    "nyc": "us",
    "los angeles": "us",
    "chicago": "us",
    "houston": "us",
    "miami": "us",
    "ohio": "us",
    "california": "us",
    "texas": "us",
    "florida": "us",

    # Other countries and their major cities
    "canada": "ca",
    "toronto": "ca",
    "united kingdom": "gb",
    "uk": "gb",
    "britain": "gb",
    "great britain": "gb",
    "england": "gb",
    "london": "gb",
    "france": "fr",
    "paris": "fr",
    "germany": "de",
    "berlin": "de",
    "japan": "jp",
    "tokyo": "jp",
    "brazil": "br",
    "brasil": "br",
    "rio de janeiro": "br",
    "sao paulo": "br",
    "india": "in",
    "nigeria": "ng",
    "south africa": "za",
    "mexico": "mx",
    "haiti": "ht",
    "lebanon": "lb",
    "beirut": "lb",
    "australia": "au",
    "netherlands": "nl",
    "holland": "nl",
}

# Code → display name used in free-text search queries.
COUNTRY_NAMES: dict[str, str] = {
    "us": "United States", "gb": "United Kingdom", "ca": "Canada", "fr": "France",
    "de": "Germany", "jp": "Japan", "br": "Brazil", "in": "India", "ng": "Nigeria",
    "za": "South Africa", "mx": "Mexico", "ht": "Haiti", "au": "Australia",
    "cn": "China", "ru": "Russia", "es": "Spain", "it": "Italy", "nl": "Netherlands",
    "se": "Sweden", "no": "Norway", "dk": "Denmark", "fi": "Finland", "ie": "Ireland",
    "nz": "New Zealand", "ar": "Argentina", "co": "Colombia", "eg": "Egypt",
    "sa": "Saudi Arabia", "ae": "United Arab Emirates", "tr": "Turkey", "id": "Indonesia",
    "ph": "Philippines", "th": "Thailand", "vn": "Vietnam", "kr": "South Korea",
    "pk": "Pakistan", "bd": "Bangladesh", "ir": "Iran", "il": "Israel", "gr": "Greece",
    "pl": "Poland", "ch": "Switzerland", "be": "Belgium", "lb": "Lebanon",
}

# Longest keys first so "new york" wins over "york"-like shorter keys.
_KEYS_BY_LENGTH = sorted(COUNTRY_CODES, key=len, reverse=True)


def country_code_for(region: str) -> str:
    """Map a free-text region to a country code; exact match, then longest contained key."""
    normalized = (region or "").lower().strip()
    if not normalized:
        return DEFAULT_COUNTRY_CODE

    if normalized in COUNTRY_CODES:
        return COUNTRY_CODES[normalized]

    for key in _KEYS_BY_LENGTH:
        if re.search(rf"\b{re.escape(key)}\b", normalized):
            return COUNTRY_CODES[key]

    return DEFAULT_COUNTRY_CODE


def country_name_for(code: str) -> str:
    """Display name for a country code; falls back to the code itself."""
    return COUNTRY_NAMES.get((code or "").lower(), code)
