"""
pulse.py — Emotion map endpoint.

Route:
  POST /api/v1/pulse — region → GeoJSON emotion map, summary and top posts.

Body: {"region": "Paris"}; an empty or missing region is a global request.
Terminal failures (unknown region, no posts, no region matches, upstream
throttling) are PulseErrors rendered by main.py with their own status code.
"""

import logging

from fastapi import APIRouter, Request

from pulselens.core.rate_limit import limiter
from pulselens.models.pulse import ErrorResponse, PulseRequest, PulseResponse
from pulselens.services.ingestion import pulse_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/pulse", tags=["pulse"])


@router.post(
    "",
    response_model=PulseResponse,
    responses={404: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
@limiter.limit("30/minute")
async def get_pulse(request: Request, payload: PulseRequest):
    """
    Run the ingestion pipeline for a region.

    Responses are cached per region for CACHE_TTL_SECONDS, so repeated map
    refreshes don't re-hit the upstream APIs or the LLM.
    """
    return await pulse_pipeline.handle_region_request(payload.region or "")
