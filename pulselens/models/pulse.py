"""
pulse.py — Request/response models for POST /api/v1/pulse and /api/v1/chat.
"""

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from pulselens.models.geo import FeatureCollection
from pulselens.models.post import ClassifiedPost


class Coordinates(BaseModel):
    lat: float
    lon: float


class TopPost(BaseModel):
    text: str            # cut to 280 chars
    emotion: str
    confidence: float    # sort key, highest first


class PulseRequest(BaseModel):
    # Empty / omitted region is a valid global request.
    region: Optional[str] = Field(default="", max_length=200)


class PulseResponse(BaseModel):
    """Full pipeline payload; this is also what the cache stores."""

    model_config = ConfigDict(populate_by_name=True)

    region: str
    coordinates: Coordinates
    geo_json: FeatureCollection = Field(alias="geoJson")
    emotions_summary: dict[str, int] = Field(alias="emotionsSummary")
    top_posts: list[TopPost] = Field(alias="topPosts")
    posts: list[ClassifiedPost]


class ChatRequest(BaseModel):
    """
    Loosely typed on purpose: the chat responder validates each field itself
    and reports the offending field name with a 400.
    """

    question: Any = None
    emotions_summary: Any = Field(default=None, alias="emotionsSummary")
    top_posts: Any = Field(
        default=None,
        validation_alias=AliasChoices("topPosts", "topTweets", "top_posts"),
    )
    region: Any = None

    model_config = ConfigDict(populate_by_name=True)


class ChatResponse(BaseModel):
    answer: str


class ErrorResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    error: str
    category: str
    details: Optional[str] = None
    suggestion: Optional[str] = None
    region: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    auth_error: Optional[bool] = Field(default=None, alias="authError")
    rate_limited: Optional[bool] = Field(default=None, alias="rateLimited")
    rate_limit_info: Optional[dict[str, Any]] = Field(default=None, alias="rateLimitInfo")
