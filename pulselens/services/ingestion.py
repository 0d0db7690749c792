"""
ingestion.py — The /pulse pipeline: region → classified, mapped posts.

PulsePipeline.handle_region_request(region)
  1. trim; "" is a valid global request
  2. cache lookup ("region:<lower>" / "global"), TTL from settings
  3. resolve the region centre (RegionNotFound / GeocodeUnavailable are terminal)
  4. fan out to every source concurrently; failures become empty lists
  5. concatenate in source order; nothing at all → NoPostsFound
     (UpstreamRateLimited when every failing source was throttled)
  6. region filter (only when a region was given) → NoRegionMatches if emptied
  7. batch emotion classification
  8. summary, GeoJSON and top posts
  9. cache and return

Identical concurrent misses each run the full pipeline; there is no
request coalescing.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Optional

from pulselens.core.cache import TTLCache
from pulselens.core.config import settings
from pulselens.core.errors import NoPostsFound, NoRegionMatches, UpstreamRateLimited
from pulselens.models.post import ClassifiedPost, EmotionResult, UnifiedPost
from pulselens.models.pulse import Coordinates, PulseResponse, TopPost
from pulselens.services.countries import DEFAULT_COUNTRY_CODE, country_code_for, country_name_for
from pulselens.services.emotion_classifier import classify_emotions_batch, summarize_emotions
from pulselens.services.map_formatter import format_map_data
from pulselens.services.region_filter import extract_main_region, filter_by_region_combined
from pulselens.services.region_resolver import RegionResolver, region_resolver
from pulselens.sources.base import PostSource, SourceQuery, SourceResult
from pulselens.sources.firehose import FirehoseAdapter, firehose_buffer
from pulselens.sources.gdelt_adapter import GDELTAdapter
from pulselens.sources.mock_adapter import MockSourceAdapter
from pulselens.sources.newsapi_adapter import NewsAPIAdapter

logger = logging.getLogger(__name__)

TOP_POSTS_LIMIT = 10
TOP_POST_TEXT_LIMIT = 280


def cache_key(region: str) -> str:
    return f"region:{region.lower()}" if region else "global"


def select_top_posts(
    posts: Sequence[UnifiedPost], emotions: Sequence[EmotionResult]
) -> list[TopPost]:
    """Highest-confidence posts first; ties keep their original order."""
    candidates = [
        (post, result) for post, result in zip(posts, emotions) if post.text.strip()
    ]
    ranked = sorted(candidates, key=lambda pair: pair[1].confidence, reverse=True)
    return [
        TopPost(
            text=post.text[:TOP_POST_TEXT_LIMIT],
            emotion=result.emotion,
            confidence=result.confidence,
        )
        for post, result in ranked[:TOP_POSTS_LIMIT]
    ]


class PulsePipeline:
    def __init__(
        self,
        resolver: RegionResolver,
        sources: Sequence[PostSource],
        cache: TTLCache[PulseResponse],
        use_llm_filter: bool = False,
    ) -> None:
        self.resolver = resolver
        self.sources = list(sources)
        self.cache = cache
        self.use_llm_filter = use_llm_filter

    async def _fetch_all(self, query: SourceQuery) -> list[SourceResult]:
        outcomes = await asyncio.gather(
            *(source.fetch(query) for source in self.sources), return_exceptions=True
        )
        results: list[SourceResult] = []
        for source, outcome in zip(self.sources, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("[%s] fetch raised: %s", source.name, outcome)
                outcome = SourceResult.error(source.name, str(outcome) or type(outcome).__name__)
            if outcome.status == "ok":
                logger.info("[%s] %d posts", source.name, len(outcome.posts))
            elif outcome.status == "empty":
                logger.info("[%s] no posts (%s)", source.name, outcome.reason)
            else:
                logger.warning("[%s] failed (%s)", source.name, outcome.reason)
            results.append(outcome)
        return results

    async def handle_region_request(self, region: Optional[str]) -> PulseResponse:
        query = (region or "").strip()
        key = cache_key(query)

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        resolved = await self.resolver.resolve(query)
        coordinates = resolved.coordinates

        code = country_code_for(query) if query else DEFAULT_COUNTRY_CODE
        source_query = SourceQuery(
            region=query,
            main_region=extract_main_region(query) if query else "",
            country_code=code,
            country_name=country_name_for(code),
        )
        logger.info(
            "Pulse request %r (main region %r, country %s)",
            query or "Global", source_query.main_region, code,
        )

        results = await self._fetch_all(source_query)
        posts: list[UnifiedPost] = [post for result in results for post in result.posts]
        logger.info(
            "Fetched %d posts (%s)",
            len(posts), ", ".join(f"{r.source}={len(r.posts)}" for r in results),
        )

        if not posts:
            failed = [r for r in results if r.status == "error"]
            if failed and all(r.rate_limit is not None for r in failed):
                raise UpstreamRateLimited(
                    "Upstream sources are rate limited",
                    details=", ".join(f"{r.source}: {r.reason}" for r in failed),
                    suggestion="Wait a minute and try again.",
                    region=query or None,
                    coordinates=coordinates,
                    rate_limit_info=failed[0].rate_limit,
                )
            raise NoPostsFound(
                "No posts found",
                details="None of the sources returned posts for this request.",
                suggestion="Try again shortly, or search for a larger city or country.",
                region=query or None,
                coordinates=coordinates,
            )

        if query:
            filtered = await filter_by_region_combined(posts, query, self.use_llm_filter)
            if not filtered:
                raise NoRegionMatches(
                    "No posts mention this region",
                    details=f'{len(posts)} posts were fetched, but none reference "{query}".',
                    suggestion="Try a nearby major city or the country name.",
                    region=query,
                    coordinates=coordinates,
                )
            posts = filtered

        emotions = await classify_emotions_batch([post.text for post in posts])

        classified = [
            ClassifiedPost(**post.model_dump(), id=post.uri or f"post-{index}", emotion=result)
            for index, (post, result) in enumerate(zip(posts, emotions))
        ]
        geo_json = await format_map_data(posts, coordinates, emotions=emotions)

        response = PulseResponse(
            region=resolved.display_name,
            coordinates=Coordinates(**coordinates),
            geo_json=geo_json,
            emotions_summary=summarize_emotions(emotions),
            top_posts=select_top_posts(posts, emotions),
            posts=classified,
        )
        self.cache.set(key, response)
        return response


def default_sources() -> list[PostSource]:
    sources: list[PostSource] = [
        NewsAPIAdapter(),
        GDELTAdapter(),
        FirehoseAdapter(firehose_buffer),
    ]
    if settings.mock_sources:
        sources.append(MockSourceAdapter())
    return sources


# Module-level singleton
pulse_pipeline = PulsePipeline(
    resolver=region_resolver,
    sources=default_sources(),
    cache=TTLCache(settings.cache_ttl_seconds),
    use_llm_filter=settings.llm_region_filter,
)
