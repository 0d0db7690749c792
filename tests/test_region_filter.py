"""
test_region_filter.py — Main-region extraction and keyword filtering.
"""

from unittest.mock import AsyncMock, patch

import pytest
from conftest import make_post

from pulselens.services import region_filter
from pulselens.services.region_filter import (
    extract_main_region,
    filter_by_region,
    filter_by_region_combined,
    normalize,
)


class TestExtractMainRegion:
    @pytest.mark.parametrize(
        "query, expected",
        [
            ("Queens, New York, United States", "new york"),
            ("Manhattan, New York, NY", "new york"),
            ("Los Angeles, CA", "los angeles"),
            ("Paris", "paris"),
            ("Springfield, IL", "springfield"),
            ("Portland, OR, USA", "portland"),
            ("Austin Texas US", "austin texas"),
            ("Lagos", "lagos"),
            ("Dallas", "dallas"),  # trailing "as" is part of the word, not a state code
        ],
    )
    def test_examples(self, query, expected):
        assert extract_main_region(query) == expected


class TestNormalize:
    def test_strips_punctuation_keeps_hashtags(self):
        assert normalize("Rain in #NYC, again!") == "rain in #nyc again"


class TestFilterByRegion:
    def test_curated_keywords(self):
        posts = [
            make_post("Flooding in Brooklyn tonight", index=0),
            make_post("Nothing to see in Boston", index=1),
            make_post("Traffic jam near Times Square", index=2),
        ]
        kept = filter_by_region(posts, "New York, United States")
        assert [p.uri for p in kept] == ["newsapi-0", "newsapi-2"]

    def test_short_keyword_needs_word_boundary(self):
        posts = [
            make_post("A prior engagement kept me home", index=0),
            make_post("Carnival season in Rio is starting", index=1),
        ]
        kept = filter_by_region(posts, "Brazil")
        assert [p.uri for p in kept] == ["newsapi-1"]

    def test_hashtag_keyword(self):
        posts = [make_post("Sunset views #paris", index=0)]
        assert len(filter_by_region(posts, "Paris")) == 1

    def test_fallback_word_boundary(self):
        posts = [
            make_post("Heavy rain hits Lagos this morning", index=0),
            make_post("Lagoslike weather elsewhere", index=1),
        ]
        kept = filter_by_region(posts, "Lagos, Nigeria")
        assert [p.uri for p in kept] == ["newsapi-0"]

    def test_short_unknown_region_fails_closed(self):
        posts = [make_post("Anything at all", index=0)]
        assert filter_by_region(posts, "XY") == []

    def test_empty_posts(self):
        assert filter_by_region([], "Paris") == []


class TestCombined:
    async def test_llm_pass_disabled_by_default(self):
        posts = [make_post("Locals gather by the Seine", index=0)]
        with patch.object(region_filter, "extract_locations_batch", new=AsyncMock()) as extract:
            kept = await filter_by_region_combined(posts, "Paris")
        assert kept == []
        extract.assert_not_called()

    async def test_llm_pass_adds_location_matches(self):
        posts = [
            make_post("Paris cafes reopen", index=0),
            make_post("Locals gather by the Seine", index=1),
            make_post("Quiet day in Lyon", index=2),
        ]
        locations = {"newsapi-1": ["paris", "seine"], "newsapi-2": ["lyon"]}
        with patch.object(
            region_filter, "extract_locations_batch", new=AsyncMock(return_value=locations)
        ) as extract:
            kept = await filter_by_region_combined(posts, "Paris", use_llm=True)
        assert [p.uri for p in kept] == ["newsapi-0", "newsapi-1"]
        rejected = extract.call_args.args[0]
        assert [p.uri for p in rejected] == ["newsapi-1", "newsapi-2"]

    async def test_llm_pass_skipped_when_enough_keyword_matches(self):
        posts = [make_post(f"Paris update {i}", index=i) for i in range(20)]
        with patch.object(region_filter, "extract_locations_batch", new=AsyncMock()) as extract:
            kept = await filter_by_region_combined(posts, "Paris", use_llm=True)
        assert len(kept) == 20
        extract.assert_not_called()

    async def test_llm_pass_caps_rejected_posts(self):
        posts = [make_post(f"Unrelated story {i}", index=i) for i in range(80)]
        with patch.object(
            region_filter, "extract_locations_batch", new=AsyncMock(return_value={})
        ) as extract:
            await filter_by_region_combined(posts, "Paris", use_llm=True)
        assert len(extract.call_args.args[0]) == 50
