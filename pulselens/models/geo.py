"""
geo.py — GeoJSON models for the emotion heat map.

Coordinates follow GeoJSON axis order: [longitude, latitude].
Mapbox reads `intensity` to weight the heat-map layer and `color` for the
circle layer, so every feature carries both.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class PointGeometry(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: tuple[float, float]  # (lon, lat)


class FeatureProperties(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    emotion: str
    confidence: float
    intensity: float                 # == confidence; drives heat-map weight
    color: str                       # hex colour from EMOTION_COLORS
    text: str
    source: str
    url: Optional[str] = None
    created_at: str = Field(alias="createdAt")
    tone: Optional[float] = None     # GDELT sentiment, null elsewhere


class Feature(BaseModel):
    type: Literal["Feature"] = "Feature"
    geometry: PointGeometry
    properties: FeatureProperties


class FeatureCollection(BaseModel):
    type: Literal["FeatureCollection"] = "FeatureCollection"
    features: list[Feature] = Field(default_factory=list)
