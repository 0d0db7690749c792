"""
GDELTAdapter — Article search via the GDELT DOC 2.0 API.

GDELT is the only source that sometimes carries genuine coordinates and a
sentiment `tone`, both of which flow through to the map unchanged.

Quirks handled here
───────────────────
- The `sourcecountry` query parameter is unreliable, so the country name
  is folded into the free-text query instead: "news France".
- maxrecords has a hard ceiling of 250 per request.
- timespan must be at least 1d; shorter values return an HTML error page.
- Errors come back as HTML (or plain text) with a 200, so the body is
  sniffed before JSON parsing. Those become an error result, never raise.
- Payload shape varies: `articles`, `docs`, `events`, GeoJSON `features`
  or a bare list.

Secondary country filter
────────────────────────
When a country is requested, articles are kept if their source country
matches, or the text mentions the country or a known alias. If fewer than
half of `limit` survive, the filter is abandoned and the unfiltered query
result is returned instead (recall over precision).
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from pulselens.core.config import settings
from pulselens.core.errors import looks_rate_limited, rate_limit_info_from_headers
from pulselens.models.post import UnifiedPost
from pulselens.sources.base import PostSource, SourceQuery, SourceResult, to_iso, utc_now_iso

logger = logging.getLogger(__name__)

GDELT_DOC_URL = "https://api.gdeltproject.org/api/v2/doc/doc"
GDELT_MAX_RECORDS = 250

# Lowercased country name → aliases that also count as "about this country".
COUNTRY_VARIATIONS: dict[str, list[str]] = {
    "united states": ["united states", "usa", "us", "america"],
    "netherlands": ["netherlands", "holland", "dutch", "nederland"],
    "united kingdom": ["united kingdom", "uk", "britain", "england"],
}


class GDELTAdapter(PostSource):
    name = "gdelt"

    def __init__(
        self,
        limit: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.limit = settings.gdelt_limit if limit is None else limit
        self._transport = transport

    async def fetch(self, query: SourceQuery) -> SourceResult:
        country_name = None if query.is_global else query.country_name
        return await self.fetch_events(self.limit, country_name)

    async def fetch_events(self, limit: int, country_name: Optional[str] = None) -> SourceResult:
        max_records = min(limit, GDELT_MAX_RECORDS)
        search = f"news {country_name}" if country_name else "news"
        logger.info("[GDELT] Query %r (maxrecords=%d)", search, max_records)

        async with httpx.AsyncClient(
            timeout=settings.http_timeout_seconds, transport=self._transport
        ) as client:
            try:
                response = await client.get(
                    GDELT_DOC_URL,
                    params={
                        "query": search,
                        "mode": "ArtList",
                        "maxrecords": max_records,
                        "format": "json",
                        "timespan": "1d",
                    },
                    headers={"Accept": "application/json"},
                )
            except httpx.HTTPError as exc:
                logger.error("[GDELT] Request failed: %s", exc)
                return SourceResult.error(self.name, str(exc))

        body = response.text
        if response.status_code >= 400:
            logger.error("[GDELT] HTTP %s — %s", response.status_code, body[:200])
            rate_limit = None
            if looks_rate_limited(response.status_code, body):
                rate_limit = rate_limit_info_from_headers(self.name, response.headers)
            return SourceResult.error(self.name, f"HTTP {response.status_code}", rate_limit)

        content_type = response.headers.get("content-type", "")
        stripped = body.lstrip()
        if (
            "json" not in content_type
            or stripped.lower().startswith("<!doctype")
            or stripped.lower().startswith("<html")
        ):
            # e.g. "Your query was too short" / "Timespan is too short"
            logger.warning("[GDELT] Non-JSON response: %s", stripped[:200])
            return SourceResult.error(self.name, "malformed response (not JSON)")

        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning("[GDELT] Could not parse JSON: %s", exc)
            return SourceResult.error(self.name, "malformed response (invalid JSON)")

        articles = extract_articles(payload)
        if articles is None:
            keys = list(payload)[:10] if isinstance(payload, dict) else type(payload).__name__
            logger.warning("[GDELT] Response has no article list (keys: %s)", keys)
            return SourceResult.error(self.name, "malformed response (no article list)")

        try:
            all_events = [normalize_article(article, index) for index, article in enumerate(articles)]
        except (TypeError, ValueError) as exc:
            logger.warning("[GDELT] Could not normalise articles: %s", exc)
            return SourceResult.error(self.name, "malformed response (bad article)")
        events = [event for event in all_events if event is not None]
        logger.info("[GDELT] Found %d articles in response", len(events))

        if country_name:
            events = filter_by_country(events, country_name, limit)

        return SourceResult.ok(self.name, [post for post, _ in events[:limit]])


def extract_articles(payload: Any) -> Optional[list[dict[str, Any]]]:
    """Pull the article list out of any of the payload shapes GDELT returns."""
    if isinstance(payload, list):
        return [a for a in payload if isinstance(a, dict)]
    if not isinstance(payload, dict):
        return None
    for key in ("articles", "docs", "events"):
        if isinstance(payload.get(key), list):
            return [a for a in payload[key] if isinstance(a, dict)]
    if isinstance(payload.get("features"), list):
        return [
            {**_as_dict(feature.get("properties")), "geometry": _as_dict(feature.get("geometry"))}
            for feature in payload["features"]
            if isinstance(feature, dict)
        ]
    # An empty JSON object is how GDELT says "no matches".
    if not payload:
        return []
    return None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _coordinates(article: dict[str, Any]) -> tuple[Optional[float], Optional[float]]:
    """Return (lat, lon) from whichever location fields the article carries."""
    candidates: list[tuple[Any, Any]] = []
    geometry = article.get("geometry") or {}
    coords = geometry.get("coordinates") if isinstance(geometry, dict) else None
    if isinstance(coords, (list, tuple)) and len(coords) >= 2:
        candidates.append((coords[1], coords[0]))  # GeoJSON is [lon, lat]
    candidates.append((article.get("latitude"), article.get("longitude")))
    candidates.append((article.get("lat"), article.get("lng")))
    location = article.get("location")
    if isinstance(location, dict):
        candidates.append((location.get("lat"), location.get("lng")))

    for lat, lon in candidates:
        if lat is None or lon is None:
            continue
        try:
            return float(lat), float(lon)
        except (TypeError, ValueError):
            continue
    return None, None


def parse_seendate(value: str) -> Optional[str]:
    """GDELT's compact "20251128T021500Z" → ISO-8601."""
    try:
        parsed = datetime.strptime(value[:15], "%Y%m%dT%H%M%S")
    except (TypeError, ValueError):
        return None
    return parsed.replace(tzinfo=timezone.utc).isoformat()


def _created_at(article: dict[str, Any]) -> str:
    if article.get("seendate"):
        parsed = parse_seendate(str(article["seendate"]))
        if parsed:
            return parsed
    for key in ("date", "datetime", "publishedAt"):
        if article.get(key):
            return to_iso(str(article[key]))
    return utc_now_iso()


def _tone(article: dict[str, Any]) -> Optional[float]:
    for key in ("tone", "avgtone"):
        raw = article.get(key)
        if raw in (None, ""):
            continue
        try:
            return float(raw)
        except (TypeError, ValueError):
            continue
    return None


def _first_text(article: dict[str, Any], *keys: str) -> str:
    """First non-blank string among `keys`; non-string values are skipped."""
    for key in keys:
        value = article.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def normalize_article(article: dict[str, Any], index: int) -> Optional[tuple[UnifiedPost, str]]:
    """GDELT article → (UnifiedPost, lowercased source country)."""
    url = _first_text(article, "url", "url_mobile", "shareurl", "sourceurl")
    text = _first_text(article, "title", "snippet") or url
    if not text:
        return None

    lat, lon = _coordinates(article)
    location = article.get("location") if isinstance(article.get("location"), dict) else {}
    country = (
        article.get("sourcecountry")
        or article.get("country_name")
        or article.get("countrycode")
        or location.get("country")
        or "unknown"
    )

    post = UnifiedPost(
        text=text,
        created_at=_created_at(article),
        source="gdelt",
        uri=url or f"gdelt-{index}",
        cid=f"gdelt-{index}",
        lat=lat,
        lon=lon,
        tone=_tone(article),
    )
    return post, str(country).lower()


def _mentions(text: str, term: str) -> bool:
    return re.search(rf"\b{re.escape(term)}\b", text) is not None


def filter_by_country(
    events: list[tuple[UnifiedPost, str]], country_name: str, limit: int
) -> list[tuple[UnifiedPost, str]]:
    """Keep articles from or about `country_name`; fall back to all if too few survive."""
    requested = country_name.lower()
    variations = COUNTRY_VARIATIONS.get(requested, [requested])

    def _matches(post: UnifiedPost, event_country: str) -> bool:
        if event_country == requested:
            return True
        text = post.text.lower()
        if requested in text:
            return True
        return any(event_country == v or _mentions(text, v) for v in variations)

    filtered = [event for event in events if _matches(*event)]
    logger.info(
        "[GDELT] Filtered %d events (from %d total) for country: %s",
        len(filtered), len(events), country_name,
    )

    if len(filtered) < limit / 2 and events:
        logger.info(
            "[GDELT] Few filtered results (%d), returning all %d events from query",
            len(filtered), len(events),
        )
        return events
    return filtered
