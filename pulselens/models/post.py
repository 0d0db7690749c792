"""
post.py — Pydantic models for ingested posts and their emotion labels.

Wire format is camelCase (createdAt) to match the map UI; Python code
uses the snake_case attribute names. Both are accepted on input.

UnifiedPost shape
─────────────────
  {
    "text":      "Flooding closes roads across Brooklyn",
    "createdAt": "2026-10-19T08:15:00+00:00",
    "source":    "gdelt",            ← newsapi | gdelt | bluesky | mock
    "uri":       "https://...",      ← synthesized "<source>-<index>" if absent
    "cid":       "gdelt-3",
    "lat":       40.6782,            ← both null unless the source geocoded it
    "lon":       -73.9442,
    "tone":      -4.2                ← GDELT only
  }
"""

import math
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

Emotion = Literal["anger", "sadness", "fear", "joy", "hope", "neutral"]
SourceTag = Literal["newsapi", "gdelt", "bluesky", "mock"]

EMOTIONS: tuple[str, ...] = ("anger", "sadness", "fear", "joy", "hope", "neutral")


class EmotionResult(BaseModel):
    emotion: Emotion = "neutral"
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class UnifiedPost(BaseModel):
    """One ingested item, pre-classification."""

    model_config = ConfigDict(populate_by_name=True)

    text: str
    created_at: str = Field(alias="createdAt")
    source: SourceTag
    uri: str
    cid: str
    lat: Optional[float] = None
    lon: Optional[float] = None
    tone: Optional[float] = None

    @model_validator(mode="after")
    def _coordinates_paired(self) -> "UnifiedPost":
        # lat/lon are both set or both None, never half-populated.
        if self.lat is None or self.lon is None:
            self.lat = None
            self.lon = None
        return self

    @property
    def has_coordinates(self) -> bool:
        return (
            self.lat is not None
            and self.lon is not None
            and math.isfinite(self.lat)
            and math.isfinite(self.lon)
        )


class ClassifiedPost(UnifiedPost):
    """A UnifiedPost after emotion classification, as returned in PulseResponse.posts."""

    id: str
    emotion: EmotionResult
