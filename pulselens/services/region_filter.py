"""
region_filter.py — Keep only posts that reference the requested region.

Two passes:
  1. Keyword matching against a curated per-region list (fast, pure).
  2. Optional LLM location extraction over the posts pass 1 rejected,
     only when pass 1 found fewer than 20 matches.

Regions without a curated list fall back to a word-boundary match on the
region name itself; a name shorter than 3 characters matches nothing.

    extract_main_region("Queens, New York, United States")  → "new york"
    extract_main_region("Los Angeles, CA")                  → "los angeles"
    extract_main_region("Springfield, IL")                  → "springfield"
"""

import logging
import re
from collections.abc import Sequence
from typing import TypeVar

from pulselens.models.post import UnifiedPost
from pulselens.services.location_extractor import extract_locations_batch

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=UnifiedPost)

# Below this many keyword matches the LLM pass is worth its cost.
LLM_PASS_THRESHOLD = 20
LLM_PASS_MAX_POSTS = 50

RegionKeywords: dict[str, list[str]] = {
    "new york": [
        "new york", "newyork", "manhattan", "brooklyn", "queens", "bronx",
        "staten island", "harlem", "times square", "empire state", "central park",
        "#nyc", "#newyork", "#manhattan", "#brooklyn",
    ],
    "los angeles": [
        "los angeles", "losangeles", "hollywood", "santa monica", "venice beach",
        "beverly hills", "malibu", "downtown la", "dtla", "la county",
        "#la", "#losangeles", "#hollywood",
    ],
    "miami": [
        "miami", "miami beach", "south beach", "dade county", "miami dade",
        "#miami", "#miamibeach",
    ],
    "chicago": [
        "chicago", "chitown", "windy city", "loop", "magnificent mile",
        "#chicago", "#chitown",
    ],
    "houston": ["houston", "htown", "space city", "bayou city", "#houston", "#htown"],
    "london": ["london", "greater london", "westminster", "camden", "greenwich", "#london", "#uk"],
    "paris": ["paris", "paris france", "eiffel tower", "champs elysees", "#paris"],
    "tokyo": ["tokyo", "tokyo japan", "shibuya", "shinjuku", "harajuku", "#tokyo", "#japan"],
    "toronto": [
        "toronto", "toronto ontario", "downtown toronto", "yonge street",
        "#toronto", "#canada",
    ],
    "brazil": [
        "brazil", "brasil", "rio de janeiro", "são paulo", "sao paulo",
        "rio", "brazilian", "#brazil", "#brasil", "#rio",
    ],
    "haiti": ["haiti", "haitian", "port-au-prince", "port au prince", "#haiti"],
    "beirut": ["beirut", "beyrouth", "beirut lebanon", "lebanon", "#beirut", "#lebanon"],
    "ohio": ["ohio", "oh", "columbus ohio", "cleveland", "cincinnati", "#ohio"],
}

_NON_KEYWORD_CHARS = re.compile(r"[^a-z0-9# ]")
# Trailing ", United States" / " USA" and ", NY" / " CA", each only as a separate token.
_COUNTRY_SUFFIX = re.compile(r"(,\s*|\s+)(united states|usa|us)$")
_STATE_SUFFIX = re.compile(r"(,\s*|\s+)[a-z]{2}$")


def normalize(text: str) -> str:
    """Lowercase and drop everything except a-z, 0-9, '#' and spaces."""
    return _NON_KEYWORD_CHARS.sub("", text.lower())


def extract_main_region(full_region: str) -> str:
    lower = full_region.lower()
    for key in RegionKeywords:
        if key in lower:
            return key

    cleaned = _COUNTRY_SUFFIX.sub("", lower.strip())
    cleaned = _STATE_SUFFIX.sub("", cleaned)
    return cleaned.split(",")[0].strip()


def _word_pattern(term: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(term)}\b")


def _keyword_matcher(keyword: str):
    if keyword.startswith("#") or " " in keyword:
        return lambda text: keyword in text
    pattern = _word_pattern(keyword)
    return lambda text: pattern.search(text) is not None


def filter_by_region(posts: Sequence[P], region_query: str) -> list[P]:
    main_region = extract_main_region(region_query)
    keywords = RegionKeywords.get(main_region)

    if not keywords:
        token = normalize(main_region)
        if len(token) < 3:
            logger.warning(
                "[RegionFilter] Unknown region %r (normalized %r) — no posts will match",
                region_query, token,
            )
            return []
        pattern = _word_pattern(token)
        filtered = [post for post in posts if pattern.search(normalize(post.text))]
        logger.info(
            "[RegionFilter] Fallback filter %r: %d of %d posts matched",
            token, len(filtered), len(posts),
        )
        return filtered

    matchers = [_keyword_matcher(normalize(keyword)) for keyword in keywords]
    filtered = [
        post for post in posts
        if any(match(normalize(post.text)) for match in matchers)
    ]
    logger.info(
        "[RegionFilter] Keyword filter %r: %d of %d posts matched",
        main_region, len(filtered), len(posts),
    )
    return filtered


async def filter_by_region_combined(
    posts: Sequence[P], region_query: str, use_llm: bool = False
) -> list[P]:
    """Keyword filter, topped up with LLM-extracted location matches when sparse."""
    keyword_matches = filter_by_region(posts, region_query)
    if len(keyword_matches) >= LLM_PASS_THRESHOLD or not use_llm:
        return keyword_matches

    matched_uris = {post.uri for post in keyword_matches}
    rejected = [post for post in posts if post.uri not in matched_uris]
    if not rejected:
        return keyword_matches

    logger.info("[RegionFilter] Extracting locations from %d rejected posts", len(rejected))
    locations = await extract_locations_batch(rejected[:LLM_PASS_MAX_POSTS])

    region = extract_main_region(region_query).lower()
    llm_matches = [
        post for post in rejected
        if any(loc in region or region in loc for loc in locations.get(post.uri, []))
    ]
    logger.info("[RegionFilter] LLM pass found %d additional matches", len(llm_matches))
    return keyword_matches + llm_matches
