"""
MockSourceAdapter — Synthetic posts for local development.

Enabled with MOCK_SOURCES=true. Produces an even spread over all six
emotions so the map, summary and chat can be exercised without any API
keys. When a region is requested the region name is mentioned in every
post, so the keyword region filter keeps them.
"""

import logging
from typing import Optional

from pulselens.models.post import EMOTIONS, UnifiedPost
from pulselens.sources.base import PostSource, SourceQuery, SourceResult, utc_now_iso

logger = logging.getLogger(__name__)

_MOCK_TEXTS: dict[str, list[str]] = {
    "anger": [
        "This is absolutely unacceptable! How can they do this?",
        "I'm so frustrated with this situation right now.",
        "This makes me really angry and upset.",
        "Why is this happening? This is terrible!",
        "I can't believe this is allowed to happen.",
    ],
    "sadness": [
        "This is really heartbreaking to see.",
        "I feel so sad about what happened here.",
        "This situation is really depressing.",
        "It's so sad to see things like this.",
        "This makes me feel really down.",
    ],
    "fear": [
        "I'm really worried about what might happen next.",
        "This situation is quite scary and concerning.",
        "I'm afraid of what could come from this.",
        "This is really frightening to think about.",
        "I'm concerned about the implications.",
    ],
    "joy": [
        "This is amazing! I'm so happy about this!",
        "What great news! This makes me smile.",
        "I'm thrilled to see this happening!",
        "This is wonderful and exciting!",
        "I'm so glad this is working out!",
    ],
    "hope": [
        "I'm hopeful that things will get better soon.",
        "This gives me hope for the future.",
        "I believe we can overcome this together.",
        "There's a light at the end of the tunnel.",
        "I'm optimistic about what's coming next.",
    ],
    "neutral": [
        "This is an interesting development.",
        "I see what's happening here.",
        "This is a factual observation about the situation.",
        "Here's some information about this topic.",
        "This is worth noting.",
    ],
}


def generate_mock_posts(count: int = 60, region: Optional[str] = None) -> list[UnifiedPost]:
    """`count` posts, grouped by emotion in EMOTIONS order."""
    per_emotion = max(1, -(-count // len(EMOTIONS)))  # ceil division
    created_at = utc_now_iso()
    posts: list[UnifiedPost] = []
    for i in range(count):
        emotion = EMOTIONS[(i // per_emotion) % len(EMOTIONS)]
        texts = _MOCK_TEXTS[emotion]
        text = texts[i % len(texts)]
        if region:
            text = f"{region.title()}: {text}"
        posts.append(
            UnifiedPost(
                text=text,
                created_at=created_at,
                source="mock",
                uri=f"mock-{i}",
                cid=f"mock-{i}",
            )
        )
    return posts


class MockSourceAdapter(PostSource):
    name = "mock"

    def __init__(self, count: int = 60) -> None:
        self.count = count

    async def fetch(self, query: SourceQuery) -> SourceResult:
        posts = generate_mock_posts(self.count, query.main_region or None)
        logger.info("[Mock] Generated %d synthetic posts", len(posts))
        return SourceResult.ok(self.name, posts)
