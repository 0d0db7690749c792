"""
map_formatter.py — Classified posts → GeoJSON FeatureCollection for Mapbox.

Placement
─────────
A post with its own finite lat/lon is plotted there. Everything else is
scattered around the region centre: uniform bearing, distance
sqrt(U) * spread_km. Degrees use the flat-earth approximation
(111 km per degree; longitude stretched by 1 / cos(latitude)), which is
fine at city scale.

A feature whose final coordinates are not finite is logged and dropped,
so the collection never carries NaN into the map.
"""

import logging
import math
import random
from collections.abc import Sequence
from typing import Optional

from pulselens.core.config import settings
from pulselens.models.geo import Feature, FeatureCollection, FeatureProperties, PointGeometry
from pulselens.models.post import EmotionResult, UnifiedPost
from pulselens.services.emotion_classifier import classify_emotions_batch

logger = logging.getLogger(__name__)

KM_PER_DEGREE = 111.0

EMOTION_COLORS: dict[str, str] = {
    "anger": "#FF4C4C",
    "fear": "#8B00FF",
    "sadness": "#4C79FF",
    "joy": "#FFD93D",
    "hope": "#4CFF4C",
    "neutral": "#AAAAAA",
}


def color_for(emotion: str) -> str:
    return EMOTION_COLORS.get(emotion, EMOTION_COLORS["neutral"])


def scatter_point(
    center_lat: float,
    center_lon: float,
    spread_km: float,
    rng: random.Random = random,  # type: ignore[assignment]
) -> tuple[float, float]:
    """Random (lat, lon) within `spread_km` of the centre."""
    bearing = rng.random() * 2 * math.pi
    distance_km = math.sqrt(rng.random()) * spread_km

    lat_offset = (distance_km * math.cos(bearing)) / KM_PER_DEGREE
    lon_offset = (distance_km * math.sin(bearing)) / (
        KM_PER_DEGREE * math.cos(math.radians(center_lat))
    )
    return center_lat + lat_offset, center_lon + lon_offset


def _finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


async def format_map_data(
    posts: Sequence[UnifiedPost],
    region_center: dict[str, float],
    emotions: Optional[Sequence[EmotionResult]] = None,
    spread_km: Optional[float] = None,
    rng: random.Random = random,  # type: ignore[assignment]
) -> FeatureCollection:
    """
    Build the heat-map FeatureCollection.

    Args:
        posts:         Posts to plot.
        region_center: {"lat", "lon"} used for scattering.
        emotions:      Pre-computed results aligned with `posts`; classified
                       here when omitted.
        spread_km:     Scatter radius, defaults to SCATTER_RADIUS_KM.
    """
    if not posts:
        return FeatureCollection()

    if emotions is None:
        emotions = await classify_emotions_batch([post.text for post in posts])
    if len(emotions) != len(posts):
        raise ValueError(f"{len(emotions)} emotion results for {len(posts)} posts")

    spread = settings.scatter_radius_km if spread_km is None else spread_km
    center_lat = float(region_center.get("lat", math.nan))
    center_lon = float(region_center.get("lon", math.nan))

    features: list[Feature] = []
    for post, result in zip(posts, emotions):
        if post.has_coordinates:
            lat, lon = post.lat, post.lon
        elif _finite(center_lat, center_lon):
            lat, lon = scatter_point(center_lat, center_lon, spread, rng)
        else:
            logger.warning("Dropping post %s: no coordinates and invalid region centre", post.uri)
            continue

        if not _finite(lat, lon):
            logger.warning("Dropping post %s: non-finite coordinates (%s, %s)", post.uri, lat, lon)
            continue

        features.append(
            Feature(
                geometry=PointGeometry(coordinates=(lon, lat)),
                properties=FeatureProperties(
                    emotion=result.emotion,
                    confidence=result.confidence,
                    intensity=result.confidence,
                    color=color_for(result.emotion),
                    text=post.text,
                    source=post.source,
                    url=post.uri if post.uri.startswith("http") else None,
                    created_at=post.created_at,
                    tone=post.tone,
                ),
            )
        )

    return FeatureCollection(features=features)
