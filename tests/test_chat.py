"""
test_chat.py — Chat responder (prompt building, error mapping) and
POST /api/v1/chat.

Runs in mock AI mode; Gemini is patched where a specific reply or failure
is needed.
"""

from unittest.mock import AsyncMock, patch

import pytest

from pulselens.ai.gemini_client import gemini_client
from pulselens.core.errors import (
    ChatUnavailable,
    ChatUpstreamError,
    ChatValidationError,
    UpstreamRateLimited,
)
from pulselens.services import chat_responder
from pulselens.services.chat_responder import build_summary_block, build_user_message, mentioned_emotions

SUMMARY = {"anger": 4, "sadness": 2, "fear": 3, "joy": 1, "hope": 0, "neutral": 5}
TOP_POSTS = [
    {"text": 'Metro strike "paralyses" the city\nagain', "emotion": "anger"},
    {"text": "Marathon crowds cheer runners", "emotion": "joy"},
]
VALID = {
    "question": "Why are people angry?",
    "emotionsSummary": SUMMARY,
    "topPosts": TOP_POSTS,
    "region": "Paris",
}


class TestPrompt:
    def test_mentioned_emotions(self):
        assert mentioned_emotions("Why are people so ANGRY and worried?") == ["anger", "fear"]
        assert mentioned_emotions("What is going on?") == []

    def test_summary_narrowed_to_question(self):
        block = build_summary_block("Why are people angry?", SUMMARY, "Paris")
        assert "anger: 4 articles" in block
        assert "joy" not in block
        assert "Total: 15 articles" in block

    def test_summary_full_for_general_question(self):
        block = build_summary_block("What's the mood?", SUMMARY, "Paris")
        for emotion in SUMMARY:
            assert f"  {emotion}: " in block

    def test_articles_are_numbered_and_escaped(self):
        message = build_user_message("What's the mood?", SUMMARY, TOP_POSTS, "Paris")
        assert 'Article #1 [anger]: "Metro strike \\"paralyses\\" the city again"' in message
        assert 'Article #2 [joy]: "Marathon crowds cheer runners"' in message
        assert "Region: Paris" in message

    def test_no_articles(self):
        assert "No sample articles provided" in build_user_message("Hi?", SUMMARY, [], "Paris")


class TestAnswer:
    async def test_mock_answer(self):
        result = await chat_responder.answer("What's the mood?", SUMMARY, TOP_POSTS, "Paris")
        assert result.startswith("[MOCK]")

    async def test_generation_parameters(self):
        generate = AsyncMock(return_value="  The mood is tense.  ")
        with patch.object(gemini_client, "generate", new=generate):
            result = await chat_responder.answer("What's the mood?", SUMMARY, TOP_POSTS, "Paris")
        assert result == "The mood is tense."
        kwargs = generate.call_args.kwargs
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_output_tokens"] == 1000
        assert "PulseLens" in kwargs["system_instruction"]

    @pytest.mark.parametrize(
        "question, summary, posts, region, field",
        [
            ("", SUMMARY, [], "Paris", "question"),
            (42, SUMMARY, [], "Paris", "question"),
            ("Why?", None, [], "Paris", "emotionsSummary"),
            ("Why?", SUMMARY, "not a list", "Paris", "topPosts"),
            ("Why?", SUMMARY, [], "", "region"),
            ("Why?", SUMMARY, [], None, "region"),
        ],
    )
    async def test_validation(self, question, summary, posts, region, field):
        with pytest.raises(ChatValidationError) as exc_info:
            await chat_responder.answer(question, summary, posts, region)
        assert field in exc_info.value.details
        assert exc_info.value.status_code == 400

    async def test_missing_top_posts_is_allowed(self):
        result = await chat_responder.answer("Why?", SUMMARY, None, "Paris")
        assert result

    async def test_empty_content_is_upstream_error(self):
        with patch.object(gemini_client, "generate", new=AsyncMock(return_value="   ")):
            with pytest.raises(ChatUpstreamError) as exc_info:
                await chat_responder.answer("Why?", SUMMARY, TOP_POSTS, "Paris")
        assert exc_info.value.status_code == 502

    async def test_sdk_failure_is_upstream_error(self):
        with patch.object(gemini_client, "generate", new=AsyncMock(side_effect=RuntimeError("500 internal"))):
            with pytest.raises(ChatUpstreamError):
                await chat_responder.answer("Why?", SUMMARY, TOP_POSTS, "Paris")

    async def test_quota_is_rate_limited(self):
        error = RuntimeError("429 Resource exhausted: quota exceeded")
        with patch.object(gemini_client, "generate", new=AsyncMock(side_effect=error)):
            with pytest.raises(UpstreamRateLimited) as exc_info:
                await chat_responder.answer("Why?", SUMMARY, TOP_POSTS, "Paris")
        assert exc_info.value.status_code == 429


class TestUnavailable:
    def setup_method(self):
        self._mock_mode = gemini_client.mock_mode
        self._available = gemini_client.available
        gemini_client.mock_mode = False
        gemini_client.available = False

    def teardown_method(self):
        gemini_client.mock_mode = self._mock_mode
        gemini_client.available = self._available

    async def test_no_credential_is_500(self):
        with pytest.raises(ChatUnavailable) as exc_info:
            await chat_responder.answer("Why?", SUMMARY, TOP_POSTS, "Paris")
        assert exc_info.value.status_code == 500

    async def test_route_returns_error_payload(self, client):
        r = await client.post("/api/v1/chat", json=VALID)
        assert r.status_code == 500
        assert r.json()["category"] == "llm_unavailable"


class TestChatRoute:
    async def test_valid_request(self, client):
        r = await client.post("/api/v1/chat", json=VALID)
        assert r.status_code == 200
        assert r.json()["answer"]

    async def test_top_tweets_alias(self, client):
        generate = AsyncMock(return_value="Answer.")
        body = {**VALID, "topTweets": TOP_POSTS}
        del body["topPosts"]
        with patch.object(gemini_client, "generate", new=generate):
            r = await client.post("/api/v1/chat", json=body)
        assert r.status_code == 200
        assert "Article #2 [joy]" in generate.call_args.args[0]

    async def test_missing_question_is_400(self, client):
        r = await client.post("/api/v1/chat", json={**VALID, "question": "  "})
        assert r.status_code == 400
        body = r.json()
        assert body["category"] == "invalid_request"
        assert "question" in body["details"]

    async def test_get_method_not_allowed(self, client):
        r = await client.get("/api/v1/chat")
        assert r.status_code == 405
