"""
GeminiClient — Async wrapper around Google Generative AI SDK.

Used by three callers, all through the module-level singleton:
  - emotion_classifier  → strict-JSON {emotion, confidence}, temperature 0.3
  - location_extractor  → JSON array of place names, temperature 0.3
  - chat_responder      → free text, temperature 0.7

Supports three runtime states:
  - MOCK mode (AI_MOCK_MODE=true, default): returns deterministic canned
    responses. Use for tests and local dev without API keys.
  - REAL mode: makes actual Gemini API calls. Requires GEMINI_API_KEY.
  - UNAVAILABLE: AI_MOCK_MODE=false but no key. Callers decide how to
    degrade: the classifier answers neutral/0.5, chat fails with a 500.

Extension pattern: add new mock response keys to _MOCK_RESPONSES and
reference them in generate() calls via the response_key parameter.
"""

import logging
import os
from typing import Any, Optional

# Python 3.14 + protobuf native extension can fail when importing Gemini deps.
# Keep this as default-only so users can still override it explicitly.
os.environ.setdefault("PROTOCOL_BUFFERS_PYTHON_IMPLEMENTATION", "python")

import google.generativeai as genai

from pulselens.core.config import settings

logger = logging.getLogger(__name__)


class LLMUnavailableError(RuntimeError):
    """Raised by generate() when no credential is configured outside mock mode."""


# Canned responses for mock mode.
# Keys map to response_key arguments in generate() calls.
_MOCK_RESPONSES: dict[str, str] = {
    "default": (
        "[MOCK] This is a placeholder Gemini response. "
        "Set AI_MOCK_MODE=false and provide GEMINI_API_KEY for real responses."
    ),
    "emotion": '{"emotion": "neutral", "confidence": 0.5}',
    "locations": "[]",
    "chat": (
        "[MOCK] The emotional climate in this region is mixed. "
        "Article #1 is the strongest signal in the sample, but with this few "
        "stories any trend should be read cautiously."
    ),
}


class GeminiClient:
    """
    Central Gemini interface for the whole PulseLens backend.

    Owns mock injection, the credential check, error logging and the model
    name. Don't instantiate per-request; use the `gemini_client` singleton.
    """

    def __init__(self) -> None:
        self.mock_mode = settings.ai_mock_mode
        self.model_name = settings.gemini_model
        self.available = True

        if not self.mock_mode:
            if not settings.gemini_api_key:
                logger.warning(
                    "GEMINI_API_KEY not set and AI_MOCK_MODE=false — LLM features "
                    "degrade (emotions default to neutral, chat is disabled)."
                )
                self.available = False
            else:
                genai.configure(api_key=settings.gemini_api_key)
                self._genai = genai

        if self.mock_mode:
            logger.info("GeminiClient initialised in MOCK mode")
        elif self.available:
            logger.info("GeminiClient initialised in REAL mode (model: %s)", self.model_name)

    @property
    def mode(self) -> str:
        if self.mock_mode:
            return "mock"
        return "real" if self.available else "unavailable"

    async def generate(
        self,
        prompt: str,
        *,
        system_instruction: Optional[str] = None,
        response_key: str = "default",
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
        json_output: bool = False,
        **generation_kwargs: Any,
    ) -> str:
        """
        Generate text from the configured Gemini model.

        Args:
            prompt:             The user message.
            system_instruction: Persona / output-format rules, sent separately.
            response_key:       Mock response key (ignored in real mode).
            temperature:        Sampling temperature.
            max_output_tokens:  Hard bound on the completion length.
            json_output:        Ask the model for application/json output.

        Returns:
            Generated text string (may be empty if the model returned nothing).

        Raises:
            LLMUnavailableError: no credential outside mock mode.
            Exception: Propagates Gemini SDK errors in real mode.
        """
        if self.mock_mode:
            return _MOCK_RESPONSES.get(response_key, _MOCK_RESPONSES["default"])

        if not self.available:
            raise LLMUnavailableError("GEMINI_API_KEY is not configured")

        generation_config: dict[str, Any] = dict(generation_kwargs)
        if temperature is not None:
            generation_config["temperature"] = temperature
        if max_output_tokens is not None:
            generation_config["max_output_tokens"] = max_output_tokens
        if json_output:
            generation_config["response_mime_type"] = "application/json"

        try:
            gemini_model = self._genai.GenerativeModel(
                self.model_name,
                system_instruction=system_instruction,
            )
            response = await gemini_model.generate_content_async(
                prompt,
                generation_config=generation_config or None,
            )
            return response.text or ""
        except Exception as exc:
            logger.error("Gemini API error (model=%s): %s", self.model_name, exc)
            raise


# Module-level singleton — import and use this everywhere
gemini_client = GeminiClient()
