"""
Terminal pipeline errors.

Only failures that make an entire response impossible are raised as
PulseError: an unresolvable region, zero usable posts, bad chat input, or
an unusable LLM for chat. Source-client and classifier failures are caught
at their join point and never reach this module.

main.py registers a single exception handler that renders any PulseError
as JSON with its own status code, so routes simply let these propagate.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class RateLimitInfo(BaseModel):
    """Quota metadata sniffed from an upstream's rate-limit headers."""

    source: str
    remaining: Optional[int] = None
    limit: Optional[int] = None
    reset: Optional[str] = None
    retry_after: Optional[str] = Field(default=None, alias="retryAfter")

    model_config = ConfigDict(populate_by_name=True)


class PulseError(Exception):
    status_code: int = 500
    category: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        details: Optional[str] = None,
        suggestion: Optional[str] = None,
        region: Optional[str] = None,
        coordinates: Optional[dict[str, float]] = None,
        rate_limit_info: Optional[RateLimitInfo] = None,
        auth_error: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.suggestion = suggestion
        self.region = region
        self.coordinates = coordinates
        self.rate_limit_info = rate_limit_info
        self.auth_error = auth_error

    @property
    def rate_limited(self) -> bool:
        return self.rate_limit_info is not None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "category": self.category}
        if self.details:
            payload["details"] = self.details
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        if self.region is not None:
            payload["region"] = self.region
        if self.coordinates is not None:
            payload["coordinates"] = self.coordinates
        if self.auth_error:
            payload["authError"] = True
        if self.rate_limit_info is not None:
            payload["rateLimited"] = True
            payload["rateLimitInfo"] = self.rate_limit_info.model_dump(
                by_alias=True, exclude_none=True
            )
        return payload


# ── Region / ingestion ────────────────────────────────────────────────────────

class RegionNotFound(PulseError):
    status_code = 404
    category = "region_not_found"


class GeocodeUnavailable(PulseError):
    status_code = 404
    category = "geocode_unavailable"

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        # A throttled geocoder is worth retrying; everything else is not.
        if self.rate_limited:
            self.status_code = 429


class NoPostsFound(PulseError):
    status_code = 404
    category = "no_posts"


class NoRegionMatches(PulseError):
    status_code = 404
    category = "no_region_matches"


class UpstreamRateLimited(PulseError):
    status_code = 429
    category = "rate_limited"


# ── Chat ──────────────────────────────────────────────────────────────────────

class ChatValidationError(PulseError):
    status_code = 400
    category = "invalid_request"


class ChatUnavailable(PulseError):
    status_code = 500
    category = "llm_unavailable"


class ChatUpstreamError(PulseError):
    status_code = 502
    category = "llm_error"


# ── Rate-limit sniffing ───────────────────────────────────────────────────────

_RATE_LIMIT_MARKERS = ("rate limit", "ratelimit", "too many requests", "quota", "resource exhausted", "429")


def looks_rate_limited(status_code: Optional[int] = None, message: str = "") -> bool:
    """True when a status code or error text indicates upstream throttling."""
    if status_code == 429:
        return True
    lowered = message.lower()
    return any(marker in lowered for marker in _RATE_LIMIT_MARKERS)


def rate_limit_info_from_headers(source: str, headers: Any) -> RateLimitInfo:
    """Build RateLimitInfo from X-RateLimit-* / Retry-After response headers."""

    def _int(name: str) -> Optional[int]:
        raw = headers.get(name) if headers is not None else None
        try:
            return int(raw) if raw is not None else None
        except (TypeError, ValueError):
            return None

    return RateLimitInfo(
        source=source,
        remaining=_int("x-ratelimit-remaining"),
        limit=_int("x-ratelimit-limit"),
        reset=headers.get("x-ratelimit-reset") if headers is not None else None,
        retry_after=headers.get("retry-after") if headers is not None else None,
    )
