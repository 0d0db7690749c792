"""
PulseLens API — Application entry point.

Bootstraps FastAPI, wires up middleware, registers route groups and
manages the firehose consumer lifecycle.

Extension points:
  - Add new route groups with app.include_router() below
  - Add new middleware in the middleware block
  - Change startup behaviour in the lifespan context manager
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from pulselens.core.config import settings
from pulselens.core.errors import PulseError
from pulselens.core.rate_limit import limiter
from pulselens.routes.chat import router as chat_router
from pulselens.routes.firehose import router as firehose_router
from pulselens.routes.health import router as health_router
from pulselens.routes.pulse import router as pulse_router
from pulselens.sources.firehose import firehose_consumer

# ─── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ─── Lifespan ──────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: optionally start the Bluesky firehose consumer.
    Shutdown: cancel it so the websocket closes cleanly.
    """
    logger.info("Starting PulseLens API (env: %s)", settings.environment)
    if settings.firehose_autostart:
        firehose_consumer.start()
    yield
    logger.info("Shutting down PulseLens API")
    await firehose_consumer.stop()


# ─── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="PulseLens API",
    description=(
        "Regional emotion maps from news and social posts, plus a grounded "
        "chat assistant. Emotion labels are LLM estimates, not ground truth."
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
)


# ─── Rate limiting ─────────────────────────────────────────────────────────────
# Routes opt-in with @limiter.limit("N/minute") + request: Request parameter.
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ─── Pipeline errors ───────────────────────────────────────────────────────────
@app.exception_handler(PulseError)
async def pulse_error_handler(request: Request, exc: PulseError) -> JSONResponse:
    logger.info("%s %s → %d %s: %s", request.method, request.url.path, exc.status_code, exc.category, exc.message)
    return JSONResponse(exc.to_payload(), status_code=exc.status_code)


# ─── Middleware ─────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Routes ────────────────────────────────────────────────────────────────────
app.include_router(health_router, prefix="/health", tags=["health"])
app.include_router(pulse_router)
app.include_router(chat_router)
app.include_router(firehose_router)


@app.get("/", tags=["root"])
async def root():
    """API root — basic metadata."""
    return {
        "name": "PulseLens API",
        "version": "0.1.0",
        "status": "running",
        "environment": settings.environment,
        "docs": "/docs",
    }
