"""
test_routes.py — HTTP surface: health, root, /pulse, firehose control and
inbound rate limiting.

/pulse runs against a PulsePipeline built from fakes, swapped in for the
module-level singleton so no upstream is contacted.
"""

from unittest.mock import AsyncMock, patch

import pytest
from conftest import FakeClock, FakeResolver, StaticSource, make_post

from pulselens.ai.gemini_client import gemini_client
from pulselens.core.cache import TTLCache
from pulselens.core.errors import RegionNotFound
from pulselens.core.rate_limit import limiter
from pulselens.routes import pulse as pulse_routes
from pulselens.services.ingestion import PulsePipeline
from pulselens.services.region_resolver import ResolvedRegion
from pulselens.sources.firehose import firehose_consumer

PARIS = ResolvedRegion(lat=48.8566, lon=2.3522, display_name="Paris")


@pytest.fixture()
def fake_pipeline():
    pipeline = PulsePipeline(
        resolver=FakeResolver({"paris": PARIS}),
        sources=[
            StaticSource("newsapi", [
                make_post("Paris metro strike causes chaos", index=0),
                make_post("Quiet morning in Lyon", index=1),
            ]),
        ],
        cache=TTLCache(ttl_seconds=30, clock=FakeClock()),
    )
    with patch.object(pulse_routes, "pulse_pipeline", pipeline):
        yield pipeline


class TestHealth:
    async def test_health_returns_200(self, client):
        r = await client.get("/health")
        assert r.status_code == 200

    async def test_health_fields(self, client):
        data = (await client.get("/health")).json()
        assert data["status"] == "ok"
        assert data["environment"] == "test"
        assert data["llm"] == "mock"
        assert data["firehose"] == "stopped"

    async def test_root(self, client):
        data = (await client.get("/")).json()
        assert data["name"] == "PulseLens API"
        assert data["status"] == "running"


class TestPulseRoute:
    async def test_region_request(self, client, fake_pipeline):
        r = await client.post("/api/v1/pulse", json={"region": "Paris"})
        assert r.status_code == 200
        data = r.json()
        assert data["region"] == "Paris"
        assert data["geoJson"]["type"] == "FeatureCollection"
        assert len(data["geoJson"]["features"]) == 1
        assert set(data["emotionsSummary"]) == {"anger", "sadness", "fear", "joy", "hope", "neutral"}
        assert data["topPosts"][0]["text"] == "Paris metro strike causes chaos"
        assert data["coordinates"] == {"lat": 48.8566, "lon": 2.3522}

    async def test_empty_body_is_global(self, client, fake_pipeline):
        r = await client.post("/api/v1/pulse", json={})
        assert r.status_code == 200
        assert r.json()["region"] == "Global"
        assert len(r.json()["posts"]) == 2

    async def test_no_region_matches_is_404(self, client, fake_pipeline):
        fake_pipeline.sources = [StaticSource("newsapi", [make_post("Quiet morning in Lyon")])]
        r = await client.post("/api/v1/pulse", json={"region": "Paris"})
        assert r.status_code == 404
        body = r.json()
        assert body["category"] == "no_region_matches"
        assert body["region"] == "Paris"
        assert body["suggestion"]

    async def test_region_not_found_is_404(self, client, fake_pipeline):
        fake_pipeline.resolver = FakeResolver(
            error=RegionNotFound("Region not found or invalid", region="Atlantis")
        )
        r = await client.post("/api/v1/pulse", json={"region": "Atlantis"})
        assert r.status_code == 404
        assert r.json() == {
            "error": "Region not found or invalid",
            "category": "region_not_found",
            "region": "Atlantis",
        }

    async def test_uses_classifier(self, client, fake_pipeline):
        reply = '{"emotion": "anger", "confidence": 0.95}'
        with patch.object(gemini_client, "generate", new=AsyncMock(return_value=reply)):
            r = await client.post("/api/v1/pulse", json={"region": "Paris"})
        assert r.json()["posts"][0]["emotion"] == {"emotion": "anger", "confidence": 0.95}

    async def test_region_too_long_is_422(self, client, fake_pipeline):
        r = await client.post("/api/v1/pulse", json={"region": "x" * 201})
        assert r.status_code == 422

    async def test_rate_limit_exceeded_returns_429(self, client, fake_pipeline):
        with patch.object(limiter._limiter, "hit", return_value=False):
            r = await client.post("/api/v1/pulse", json={"region": "Paris"})
        assert r.status_code == 429


class TestFirehoseRoutes:
    async def test_status(self, client):
        data = (await client.get("/api/v1/firehose/status")).json()
        assert data["stats"]["maxSize"] == 1000
        assert data["consumer"]["running"] is False

    async def test_start_is_idempotent(self, client):
        with patch.object(firehose_consumer, "start", side_effect=[True, False]):
            first = (await client.get("/api/v1/firehose/start")).json()
            second = (await client.get("/api/v1/firehose/start")).json()
        assert first["success"] is True
        assert first["wasAlreadyRunning"] is False
        assert second["wasAlreadyRunning"] is True
