"""
pytest configuration and shared fixtures for the PulseLens API tests.

Key concern: tests must not need Mapbox, NewsAPI, GDELT, Bluesky or a
Gemini key. We achieve this by:
  1. Setting AI_MOCK_MODE=true so GeminiClient returns canned responses
     (individual tests patch gemini_client.generate for specific replies).
  2. Building pipelines from fake resolvers / sources instead of the
     module-level singletons that talk to real upstreams.
  3. Using httpx.MockTransport wherever an adapter's HTTP layer is tested.
"""

import os

import pytest
from httpx import ASGITransport, AsyncClient

# Set env vars BEFORE importing the app so Settings picks them up correctly
os.environ.setdefault("AI_MOCK_MODE", "true")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("FIREHOSE_AUTOSTART", "false")
os.environ.setdefault("MOCK_SOURCES", "false")

from pulselens.models.post import UnifiedPost  # noqa: E402
from pulselens.services.region_resolver import GLOBAL_REGION, ResolvedRegion  # noqa: E402
from pulselens.sources.base import PostSource, SourceQuery, SourceResult  # noqa: E402


class FakeClock:
    """Manually advanced clock for TTL / buffer-age tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResolver:
    def __init__(self, regions: dict[str, ResolvedRegion] | None = None, error: Exception | None = None):
        self.regions = regions or {}
        self.error = error
        self.calls: list[str] = []

    async def resolve(self, region_query: str) -> ResolvedRegion:
        self.calls.append(region_query)
        if not region_query.strip():
            return GLOBAL_REGION
        if self.error is not None:
            raise self.error
        return self.regions[region_query.strip().lower()]


class StaticSource(PostSource):
    """Returns a fixed SourceResult (or raises) and records every query."""

    def __init__(self, name: str, posts=None, result: SourceResult | None = None, raises: Exception | None = None):
        self.name = name
        self._posts = posts or []
        self._result = result
        self._raises = raises
        self.queries: list[SourceQuery] = []

    async def fetch(self, query: SourceQuery) -> SourceResult:
        self.queries.append(query)
        if self._raises is not None:
            raise self._raises
        if self._result is not None:
            return self._result
        return SourceResult.ok(self.name, list(self._posts))


def make_post(text: str, source: str = "newsapi", index: int = 0, **kwargs) -> UnifiedPost:
    return UnifiedPost(
        text=text,
        created_at="2026-10-19T08:00:00+00:00",
        source=source,
        uri=kwargs.pop("uri", f"{source}-{index}"),
        cid=kwargs.pop("cid", f"{source}-{index}"),
        **kwargs,
    )


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
async def client():
    """
    HTTPX async test client wired to the FastAPI app.

    The limiter's in-memory storage is reset so request counts from one
    test don't bleed into the next.
    """
    from pulselens.core.rate_limit import limiter
    from pulselens.main import app

    limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
