"""
region_resolver.py — Free-text region → geographic centre.

Uses the Mapbox Geocoding v5 API. The first candidate's `center`
([lon, lat]) becomes the region centre that posts without their own
coordinates are scattered around.

Failure modes are kept distinct because the UI words them differently:
  RegionNotFound      — Mapbox answered, but with zero candidates
  GeocodeUnavailable  — no token, transport error, non-2xx, malformed body
                        (429 additionally carries rate-limit metadata)

An empty query never reaches Mapbox: it resolves to (0, 0) "Global".
"""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import httpx

from pulselens.core.config import settings
from pulselens.core.errors import (
    GeocodeUnavailable,
    RegionNotFound,
    looks_rate_limited,
    rate_limit_info_from_headers,
)

logger = logging.getLogger(__name__)

MAPBOX_GEOCODE_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places"


@dataclass(frozen=True)
class ResolvedRegion:
    lat: float
    lon: float
    display_name: str

    @property
    def coordinates(self) -> dict[str, float]:
        return {"lat": self.lat, "lon": self.lon}


GLOBAL_REGION = ResolvedRegion(lat=0.0, lon=0.0, display_name="Global")


class RegionResolver:
    """Thin async wrapper around Mapbox forward geocoding."""

    def __init__(
        self,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.token = settings.mapbox_token if token is None else token
        self._transport = transport

    async def resolve(self, region_query: str) -> ResolvedRegion:
        query = (region_query or "").strip()
        if not query:
            return GLOBAL_REGION

        if not self.token:
            raise GeocodeUnavailable(
                "Region not found or invalid",
                details="MAPBOX_TOKEN is not configured",
                region=query,
            )

        url = f"{MAPBOX_GEOCODE_URL}/{quote(query, safe='')}.json"
        async with httpx.AsyncClient(
            timeout=settings.http_timeout_seconds, transport=self._transport
        ) as client:
            try:
                response = await client.get(url, params={"access_token": self.token, "limit": 1})
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                logger.error("Mapbox geocoding error: %s — %s", status, exc.response.text[:200])
                rate_limit = None
                if looks_rate_limited(status):
                    rate_limit = rate_limit_info_from_headers("mapbox", exc.response.headers)
                raise GeocodeUnavailable(
                    "Region not found or invalid",
                    details=f"Failed to geocode region (HTTP {status})",
                    region=query,
                    rate_limit_info=rate_limit,
                ) from exc
            except (httpx.HTTPError, ValueError) as exc:
                logger.error("Mapbox geocoding request failed: %s", exc)
                raise GeocodeUnavailable(
                    "Region not found or invalid",
                    details=f"Failed to geocode region: {exc}",
                    region=query,
                ) from exc

        features = data.get("features") if isinstance(data, dict) else None
        if not features:
            raise RegionNotFound(
                "Region not found or invalid",
                details=f'Region "{query}" not found',
                region=query,
                suggestion="Check the spelling, or try a larger city or a country name.",
            )

        try:
            lon, lat = features[0]["center"][:2]
            resolved = ResolvedRegion(lat=float(lat), lon=float(lon), display_name=query)
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocodeUnavailable(
                "Region not found or invalid",
                details="Geocoder returned a malformed candidate",
                region=query,
            ) from exc

        logger.info("Resolved region %r → (%.4f, %.4f)", query, resolved.lat, resolved.lon)
        return resolved


# Module-level singleton
region_resolver = RegionResolver()
