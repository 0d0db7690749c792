"""
emotion_classifier.py — One dominant emotion per text, via Gemini.

Contract: never raises. Anything that goes wrong (no credential, SDK
error, unparseable reply) yields {"neutral", 0.5}. Input shorter than 3
characters after trimming is {"neutral", 1.0} without a model call.

Batches run every call concurrently and preserve input order. There is no
throttling here; upstream rate limits surface as per-item neutral fallbacks.
"""

import asyncio
import json
import logging
import math
import re
from collections.abc import Iterable, Sequence

from pulselens.ai.gemini_client import gemini_client
from pulselens.models.post import EMOTIONS, EmotionResult

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 3

EMOTION_SYSTEM_PROMPT = """\
You are an emotion classification system. Analyze the given text and classify \
it into ONE of these emotions: anger, sadness, fear, joy, hope, or neutral.

Rules:
- Output ONLY valid JSON, no additional text or commentary
- The JSON must have this exact structure: {"emotion": "one_of_the_emotions", "confidence": 0.0_to_1.0}
- Confidence should be a number between 0 and 1
- Choose the emotion that best represents the overall sentiment
- If the text is ambiguous or lacks clear emotion, use "neutral"
- Valid emotions are: anger, sadness, fear, joy, hope, neutral"""

_FALLBACK = EmotionResult(emotion="neutral", confidence=0.5)


def _coerce_confidence(raw: object) -> float:
    try:
        value = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.5
    if math.isnan(value):
        return 0.5
    return max(0.0, min(1.0, value))


def parse_emotion_reply(raw: str) -> EmotionResult:
    """JSON reply → EmotionResult, coercing anything unexpected.

    The whole reply is parsed first; failing that, the outermost {...} span.
    """
    raw = raw or ""
    try:
        data = json.loads(raw)
    except ValueError:
        m = re.search(r"\{[\s\S]*\}", raw)
        if not m:
            raise ValueError(f"no JSON object in reply: {raw[:80]!r}")
        data = json.loads(m.group())
    if not isinstance(data, dict):
        raise ValueError("reply JSON is not an object")

    emotion = str(data.get("emotion", "")).strip().lower()
    if emotion not in EMOTIONS:
        emotion = "neutral"
    return EmotionResult(emotion=emotion, confidence=_coerce_confidence(data.get("confidence", 0.5)))


async def classify_emotion(text: str) -> EmotionResult:
    if not text or len(text.strip()) < MIN_TEXT_LENGTH:
        return EmotionResult(emotion="neutral", confidence=1.0)

    if gemini_client.mode == "unavailable":
        return _FALLBACK.model_copy()

    try:
        raw = await gemini_client.generate(
            f'Classify this text: "{text}"',
            system_instruction=EMOTION_SYSTEM_PROMPT,
            response_key="emotion",
            temperature=0.3,
            max_output_tokens=50,
            json_output=True,
        )
        return parse_emotion_reply(raw)
    except Exception as exc:
        logger.warning("Emotion classification failed, defaulting to neutral: %s", exc)
        return _FALLBACK.model_copy()


async def classify_emotions_batch(texts: Sequence[str]) -> list[EmotionResult]:
    return list(await asyncio.gather(*(classify_emotion(text) for text in texts)))


def summarize_emotions(results: Iterable[EmotionResult]) -> dict[str, int]:
    """Count per emotion. All six keys are always present."""
    summary = {emotion: 0 for emotion in EMOTIONS}
    for result in results:
        summary[result.emotion] = summary.get(result.emotion, 0) + 1
    return summary
