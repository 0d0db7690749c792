"""
location_extractor.py — LLM extraction of place names from post text.

Used only by the region filter's optional second pass. Every failure
degrades to "no locations"; nothing here raises.
"""

import asyncio
import json
import logging
import re
from collections.abc import Sequence

from pulselens.ai.gemini_client import gemini_client
from pulselens.models.post import UnifiedPost

logger = logging.getLogger(__name__)

BATCH_SIZE = 10
MIN_TEXT_LENGTH = 10

LOCATION_SYSTEM_PROMPT = (
    "You are a location extraction assistant. Extract all city, state, country, "
    "and landmark names from the text. Return ONLY a JSON array of location "
    'names, nothing else. Example: ["New York", "Manhattan", "United States"]'
)


def _parse_locations(raw: str) -> list[str]:
    m = re.search(r"\[[\s\S]*\]", raw)
    if m:
        try:
            data = json.loads(m.group())
            if isinstance(data, list):
                return [str(loc).lower().strip() for loc in data if str(loc).strip()]
        except (json.JSONDecodeError, ValueError):
            pass
    # Fall back to any quoted strings in the reply.
    return [q.lower().strip() for q in re.findall(r'"([^"]+)"', raw) if q.strip()]


async def extract_locations(text: str) -> list[str]:
    if not text or len(text) < MIN_TEXT_LENGTH:
        return []
    try:
        raw = await gemini_client.generate(
            f'Extract all location names from this text: "{text[:500]}"',
            system_instruction=LOCATION_SYSTEM_PROMPT,
            response_key="locations",
            temperature=0.3,
            max_output_tokens=100,
            json_output=True,
        )
    except Exception as exc:
        logger.warning("[LocationExtraction] Failed: %s", exc)
        return []
    return _parse_locations(raw)


async def extract_locations_batch(posts: Sequence[UnifiedPost]) -> dict[str, list[str]]:
    """uri → lowercased locations, only for posts where something was found."""
    found: dict[str, list[str]] = {}
    for start in range(0, len(posts), BATCH_SIZE):
        batch = posts[start:start + BATCH_SIZE]
        results = await asyncio.gather(*(extract_locations(post.text) for post in batch))
        for post, locations in zip(batch, results):
            if locations:
                found[post.uri] = locations
    return found
