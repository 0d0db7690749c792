"""
Health check endpoint.

Used by:
  - Docker HEALTHCHECK / load balancers
  - The map UI, to tell "API down" apart from "LLM not configured"

Always 200 while the process is alive; degraded dependencies are reported
in the body instead.
"""

from fastapi import APIRouter
from pydantic import BaseModel

from pulselens.ai.gemini_client import gemini_client
from pulselens.core.config import settings
from pulselens.sources.firehose import firehose_consumer

router = APIRouter()


class HealthResponse(BaseModel):
    status: str       # Always "ok" if the API process is alive
    version: str
    environment: str
    llm: str          # "mock" | "real" | "unavailable"
    firehose: str     # "connected" | "connecting" | "stopped"


@router.get("", response_model=HealthResponse, summary="API health check")
async def health_check() -> HealthResponse:
    if firehose_consumer.connected:
        firehose = "connected"
    elif firehose_consumer.running:
        firehose = "connecting"
    else:
        firehose = "stopped"

    return HealthResponse(
        status="ok",
        version="0.1.0",
        environment=settings.environment,
        llm=gemini_client.mode,
        firehose=firehose,
    )
