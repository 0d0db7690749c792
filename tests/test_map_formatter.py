"""
test_map_formatter.py — GeoJSON output, placement and scattering.
"""

import math
import random
from unittest.mock import AsyncMock, patch

import pytest
from conftest import make_post

from pulselens.models.post import EmotionResult
from pulselens.services import map_formatter
from pulselens.services.map_formatter import EMOTION_COLORS, color_for, format_map_data, scatter_point

PARIS = {"lat": 48.8566, "lon": 2.3522}


def _distance_km(lat1, lon1, lat2, lon2):
    """Great-circle distance (haversine)."""
    r = 6371.0
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dp = p2 - p1
    dl = math.radians(lon2 - lon1)
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return 2 * r * math.asin(math.sqrt(a))


class TestScatter:
    @pytest.mark.parametrize("center", [(48.8566, 2.3522), (0.0, 0.0), (-33.86, 151.2), (64.1, -21.9)])
    def test_points_stay_within_radius(self, center):
        rng = random.Random(42)
        for _ in range(500):
            lat, lon = scatter_point(center[0], center[1], 5.0, rng)
            # 111 km/degree vs the true ~111.2 km leaves a small overshoot.
            assert _distance_km(center[0], center[1], lat, lon) <= 5.0 * 1.01

    def test_repeated_calls_differ(self):
        rng = random.Random(7)
        points = [scatter_point(PARIS["lat"], PARIS["lon"], 5.0, rng) for _ in range(100)]
        assert len(set(points)) > 1
        assert any(_distance_km(PARIS["lat"], PARIS["lon"], lat, lon) > 0.01 for lat, lon in points)

    def test_zero_spread_returns_centre(self):
        lat, lon = scatter_point(10.0, 20.0, 0.0, random.Random(1))
        assert lat == pytest.approx(10.0)
        assert lon == pytest.approx(20.0)


class TestColors:
    def test_palette(self):
        assert EMOTION_COLORS == {
            "anger": "#FF4C4C",
            "fear": "#8B00FF",
            "sadness": "#4C79FF",
            "joy": "#FFD93D",
            "hope": "#4CFF4C",
            "neutral": "#AAAAAA",
        }

    def test_unknown_emotion_is_grey(self):
        assert color_for("confusion") == "#AAAAAA"


class TestFormatMapData:
    async def test_empty_input(self):
        collection = await format_map_data([], PARIS)
        assert collection.type == "FeatureCollection"
        assert collection.features == []

    async def test_real_coordinates_are_used_in_lon_lat_order(self):
        post = make_post("Protest near the Louvre", source="gdelt", lat=48.8606, lon=2.3376, tone=-3.5)
        emotions = [EmotionResult(emotion="anger", confidence=0.8)]
        collection = await format_map_data([post], PARIS, emotions=emotions)

        feature = collection.features[0]
        assert feature.geometry.coordinates == (2.3376, 48.8606)
        props = feature.properties
        assert props.emotion == "anger"
        assert props.color == "#FF4C4C"
        assert props.intensity == props.confidence == 0.8
        assert props.tone == -3.5

    async def test_posts_without_coordinates_are_scattered(self):
        posts = [make_post(f"Story {i}", index=i) for i in range(20)]
        emotions = [EmotionResult(emotion="joy", confidence=0.7)] * 20
        collection = await format_map_data(posts, PARIS, emotions=emotions, spread_km=5.0)

        assert len(collection.features) == 20
        for feature in collection.features:
            lon, lat = feature.geometry.coordinates
            assert math.isfinite(lat) and math.isfinite(lon)
            assert _distance_km(PARIS["lat"], PARIS["lon"], lat, lon) <= 5.0 * 1.01

    async def test_classifies_when_emotions_not_given(self):
        posts = [make_post("Great news for the city", index=0)]
        classify = AsyncMock(return_value=[EmotionResult(emotion="hope", confidence=0.6)])
        with patch.object(map_formatter, "classify_emotions_batch", new=classify):
            collection = await format_map_data(posts, PARIS)
        classify.assert_awaited_once()
        assert collection.features[0].properties.emotion == "hope"

    async def test_invalid_centre_drops_posts_that_need_scattering(self):
        posts = [
            make_post("Has coordinates", source="gdelt", index=0, lat=1.0, lon=2.0),
            make_post("Needs scattering", index=1),
        ]
        emotions = [EmotionResult(), EmotionResult()]
        collection = await format_map_data(posts, {"lat": math.nan, "lon": 0.0}, emotions=emotions)
        assert len(collection.features) == 1
        assert collection.features[0].geometry.coordinates == (2.0, 1.0)

    async def test_serialises_with_camel_case(self):
        post = make_post("Headline", uri="https://example.com/a")
        collection = await format_map_data([post], PARIS, emotions=[EmotionResult()])
        props = collection.model_dump(by_alias=True)["features"][0]["properties"]
        assert props["createdAt"] == "2026-10-19T08:00:00+00:00"
        assert props["url"] == "https://example.com/a"

    async def test_misaligned_emotions_rejected(self):
        with pytest.raises(ValueError):
            await format_map_data([make_post("One")], PARIS, emotions=[])
