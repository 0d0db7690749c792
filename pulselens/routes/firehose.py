"""
firehose.py — Control and inspect the Bluesky firehose consumer.

Routes:
  GET /api/v1/firehose/start   — start the consumer (no-op if running)
  GET /api/v1/firehose/status  — buffer stats + connection state

The consumer otherwise starts at boot only when FIREHOSE_AUTOSTART=true.
"""

import logging

from fastapi import APIRouter

from pulselens.sources.firehose import firehose_buffer, firehose_consumer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/firehose", tags=["firehose"])


@router.get("/start")
async def start_firehose():
    started = firehose_consumer.start()
    return {
        "success": True,
        "message": "Firehose started" if started else "Firehose already running",
        "wasAlreadyRunning": not started,
        "stats": firehose_buffer.stats(),
        "consumer": firehose_consumer.status(),
    }


@router.get("/status")
async def firehose_status():
    return {
        "stats": firehose_buffer.stats(),
        "consumer": firehose_consumer.status(),
    }
