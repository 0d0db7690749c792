"""
chat_responder.py — Grounded Q&A over the posts a /pulse call returned.

The client sends back the summary and top posts it already has; nothing is
re-fetched. One Gemini call per question.

Errors (all PulseError subclasses, rendered by main.py):
  ChatValidationError   400  a field is missing or the wrong type
  ChatUnavailable       500  no LLM credential configured
  UpstreamRateLimited   429  Gemini quota / rate limit
  ChatUpstreamError     502  any other Gemini failure, or an empty answer
"""

import logging
from collections.abc import Mapping
from typing import Any

from pulselens.ai.gemini_client import LLMUnavailableError, gemini_client
from pulselens.core.errors import (
    ChatUnavailable,
    ChatUpstreamError,
    ChatValidationError,
    RateLimitInfo,
    UpstreamRateLimited,
    looks_rate_limited,
)
from pulselens.models.post import EMOTIONS

logger = logging.getLogger(__name__)

CHAT_SYSTEM_PROMPT = """\
You are PulseLens, a calm, neutral and emotionally aware assistant. You help \
users interpret the emotional patterns reflected in news articles and posts \
about a region.

Principles:
1. Speak only from the stories provided. Never invent facts, motives, causes \
or outcomes; if the evidence is weak or inconclusive, say so.
2. Cite stories by number (Article #1, Article #2, ...) and include 2-3 \
examples with short quotes when describing a trend.
3. Group articles that cover the same person, event or story into one section \
instead of listing them separately.
4. Translate non-English titles, formatted as "Original Title - Translated Title".
5. Summarise the dominant emotions, acknowledge mixed signals, and tie the \
emotional summary back to the story content.
6. Stay neutral: no political, ideological or cultural side-taking.
7. Treat trauma and violence calmly, without graphic detail.
8. When there are too few stories to show a trend, say so and keep the \
interpretation light.
9. Use short sections or bullet points when they help."""

# Words in a question that narrow the summary to particular emotions.
_EMOTION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "anger": ("anger", "angry"),
    "sadness": ("sadness", "sad"),
    "fear": ("fear", "afraid", "worried"),
    "joy": ("joy", "happy", "joyful"),
    "hope": ("hope", "hopeful"),
    "neutral": ("neutral",),
}


def _validate(question: Any, emotions_summary: Any, top_posts: Any, region: Any) -> None:
    if not isinstance(question, str) or not question.strip():
        raise ChatValidationError("Chat processing failed", details="Missing or invalid question")
    if not isinstance(emotions_summary, Mapping):
        raise ChatValidationError("Chat processing failed", details="Missing or invalid emotionsSummary")
    if top_posts is not None and not isinstance(top_posts, list):
        raise ChatValidationError("Chat processing failed", details="Missing or invalid topPosts")
    if not isinstance(region, str) or not region.strip():
        raise ChatValidationError("Chat processing failed", details="Missing or invalid region")


def _count(summary: Mapping[str, Any], emotion: str) -> int:
    try:
        return int(summary.get(emotion, 0) or 0)
    except (TypeError, ValueError):
        return 0


def mentioned_emotions(question: str) -> list[str]:
    lowered = question.lower()
    return [
        emotion for emotion, words in _EMOTION_KEYWORDS.items()
        if any(word in lowered for word in words)
    ]


def build_summary_block(question: str, summary: Mapping[str, Any], region: str) -> str:
    total = sum(_count(summary, emotion) for emotion in EMOTIONS)
    focus = mentioned_emotions(question)
    lines = [f"Emotional Summary for {region}:"]
    if focus:
        lines += [f"  {emotion}: {_count(summary, emotion)} articles" for emotion in focus]
    else:
        lines += [f"  {emotion}: {_count(summary, emotion)}" for emotion in EMOTIONS]
    lines.append(f"  Total: {total} articles")
    return "\n".join(lines)


def format_articles(top_posts: list[Any]) -> str:
    if not top_posts:
        return "No sample articles provided"
    formatted = []
    for number, item in enumerate(top_posts, start=1):
        data = item if isinstance(item, Mapping) else {"text": str(item)}
        text = str(data.get("text", "")).replace('"', '\\"').replace("\n", " ")
        emotion = data.get("emotion", "neutral")
        formatted.append(f'Article #{number} [{emotion}]: "{text}"')
    return "\n\n".join(formatted)


def build_user_message(
    question: str, summary: Mapping[str, Any], top_posts: list[Any], region: str
) -> str:
    return (
        f"Question: {question.strip()}\n\n"
        f"Region: {region}\n\n"
        f"{build_summary_block(question, summary, region)}\n\n"
        f"Sample Articles/Stories ({len(top_posts)} total):\n"
        f"{format_articles(top_posts)}\n\n"
        "Additional Context:\n"
        "- Focus on the emotional patterns most relevant to the question\n"
        "- Group articles about the same story together and cite them by number\n"
        "- Connect the emotional summary directly to the stories you reference"
    )


async def answer(question: Any, emotions_summary: Any, top_posts: Any, region: Any) -> str:
    _validate(question, emotions_summary, top_posts, region)
    posts = top_posts or []
    prompt = build_user_message(question, emotions_summary, posts, region)

    try:
        content = await gemini_client.generate(
            prompt,
            system_instruction=CHAT_SYSTEM_PROMPT,
            response_key="chat",
            temperature=0.7,
            max_output_tokens=1000,
        )
    except LLMUnavailableError as exc:
        raise ChatUnavailable(
            "Chat processing failed", details="GEMINI_API_KEY is not configured"
        ) from exc
    except Exception as exc:
        message = str(exc)
        if looks_rate_limited(message=message):
            raise UpstreamRateLimited(
                "Chat is temporarily rate limited",
                details=message[:200],
                suggestion="Wait a minute and ask again.",
                rate_limit_info=RateLimitInfo(source="gemini"),
            ) from exc
        raise ChatUpstreamError("Chat processing failed", details=message[:200]) from exc

    if not content or not content.strip():
        logger.error("Gemini returned an empty chat answer for region %r", region)
        raise ChatUpstreamError("Chat processing failed", details="No response from the model")

    logger.info("Chat answered for region %r (%d sample posts)", region, len(posts))
    return content.strip()
