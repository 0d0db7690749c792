"""
NewsAPIAdapter — Article search via newsapi.org.

Uses the /v2/everything endpoint rather than /top-headlines: headlines
can't be paginated and are country-level only, while "everything" accepts
a free-text query, so a city name ("Brooklyn") can be searched directly.

Graceful degradation: if NEWSAPI_KEY is not set, fetch() returns an empty
result with a logged warning. Non-2xx responses become an error result;
nothing is ever raised to the orchestrator.
"""

import logging
import math
from typing import Any, Optional

import httpx

from pulselens.core.config import settings
from pulselens.core.errors import looks_rate_limited, rate_limit_info_from_headers
from pulselens.models.post import UnifiedPost
from pulselens.sources.base import PostSource, SourceQuery, SourceResult, to_iso

logger = logging.getLogger(__name__)

NEWSAPI_BASE_URL = "https://newsapi.org/v2"

MAX_PAGE_SIZE = 100  # "everything" allows up to 100 per page
MAX_PAGES = 3        # → at most 300 articles per request


class NewsAPIAdapter(PostSource):
    """
    Thin async wrapper around the NewsAPI "everything" search.

    Query: the main region name when the user asked for a region
    ("new york"), otherwise the country display name ("United States").
    """

    name = "newsapi"

    def __init__(
        self,
        api_key: Optional[str] = None,
        limit: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = settings.newsapi_key if api_key is None else api_key
        self.limit = settings.news_limit if limit is None else limit
        self.enabled = bool(self.api_key)
        self._transport = transport

        if not self.enabled:
            logger.warning("NEWSAPI_KEY not set — NewsAPI source disabled.")

    async def fetch(self, query: SourceQuery) -> SourceResult:
        if not self.enabled:
            return SourceResult.empty(self.name, "NEWSAPI_KEY not configured")

        search = query.main_region or query.country_name or query.country_code
        logger.info("[NewsAPI] Searching for %r", search)

        articles: list[dict[str, Any]] = []
        pages_needed = min(MAX_PAGES, math.ceil(self.limit / MAX_PAGE_SIZE))

        async with httpx.AsyncClient(
            timeout=settings.http_timeout_seconds, transport=self._transport
        ) as client:
            for page in range(1, pages_needed + 1):
                if len(articles) >= self.limit:
                    break
                page_size = min(MAX_PAGE_SIZE, self.limit - len(articles))
                try:
                    response = await client.get(
                        f"{NEWSAPI_BASE_URL}/everything",
                        params={
                            "q": search,
                            "language": "en",
                            "pageSize": page_size,
                            "page": page,
                            "sortBy": "publishedAt",
                        },
                        headers={"X-Api-Key": self.api_key},
                    )
                    response.raise_for_status()
                    data = response.json()
                except httpx.HTTPStatusError as exc:
                    status = exc.response.status_code
                    body = exc.response.text[:200]
                    logger.error("NewsAPI error (page %d): %s — %s", page, status, body)
                    if articles:
                        # Keep what earlier pages produced.
                        break
                    rate_limit = None
                    if looks_rate_limited(status, body):
                        rate_limit = rate_limit_info_from_headers(self.name, exc.response.headers)
                    return SourceResult.error(self.name, f"HTTP {status}", rate_limit)
                except (httpx.HTTPError, ValueError) as exc:
                    logger.error("NewsAPI request failed (page %d): %s", page, exc)
                    if articles:
                        break
                    return SourceResult.error(self.name, str(exc))

                batch = (data.get("articles") or []) if isinstance(data, dict) else []
                if not batch:
                    break
                articles.extend(batch)
                logger.debug(
                    "[NewsAPI] Page %d: %d articles (total so far: %d)", page, len(batch), len(articles)
                )
                if len(batch) < page_size:
                    break

        posts = normalize_articles(articles[: self.limit])
        if not posts:
            logger.warning("[NewsAPI] No articles for %r", search)
        return SourceResult.ok(self.name, posts)


def normalize_articles(articles: list[dict[str, Any]]) -> list[UnifiedPost]:
    """NewsAPI article dicts → UnifiedPost. Title and description are joined as text."""
    posts: list[UnifiedPost] = []
    for index, article in enumerate(articles):
        title = (article.get("title") or "").strip()
        description = (article.get("description") or "").strip()
        text = f"{title}. {description}" if description else title
        if not text:
            continue
        posts.append(
            UnifiedPost(
                text=text,
                created_at=to_iso(article.get("publishedAt")),
                source="newsapi",
                uri=article.get("url") or f"newsapi-{index}",
                cid=f"newsapi-{index}",
            )
        )
    return posts
