"""
Shared contract for every upstream post source.

Each adapter turns one upstream into UnifiedPost objects and reports how
the fetch went through a tagged SourceResult:

  ok     — posts were found
  empty  — the upstream answered, but legitimately had nothing
           (or the adapter is not configured)
  error  — the upstream broke: transport error, non-2xx, malformed payload

The orchestrator treats `empty` and `error` the same (no posts), but logs
them differently and uses `rate_limit` to decide whether a fully empty
fan-out should be reported as throttling rather than "no posts".

To add a source:
  1. Subclass PostSource, set `name`, implement fetch()
  2. Append an instance to the pipeline's source list (services/ingestion.py)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Optional

from pulselens.core.errors import RateLimitInfo
from pulselens.models.post import UnifiedPost

SourceStatus = Literal["ok", "empty", "error"]


@dataclass(frozen=True)
class SourceQuery:
    """What a single /pulse request asks every source for."""

    region: str = ""                 # trimmed user query, "" for global
    main_region: str = ""            # canonical token from region_filter.extract_main_region
    country_code: str = "us"
    country_name: str = "United States"

    @property
    def is_global(self) -> bool:
        return not self.region


@dataclass
class SourceResult:
    source: str
    status: SourceStatus
    posts: list[UnifiedPost] = field(default_factory=list)
    reason: Optional[str] = None
    rate_limit: Optional[RateLimitInfo] = None

    @classmethod
    def ok(cls, source: str, posts: list[UnifiedPost]) -> "SourceResult":
        if not posts:
            return cls(source=source, status="empty", reason="no results")
        return cls(source=source, status="ok", posts=posts)

    @classmethod
    def empty(cls, source: str, reason: str) -> "SourceResult":
        return cls(source=source, status="empty", reason=reason)

    @classmethod
    def error(
        cls, source: str, reason: str, rate_limit: Optional[RateLimitInfo] = None
    ) -> "SourceResult":
        return cls(source=source, status="error", reason=reason, rate_limit=rate_limit)


class PostSource:
    name: str = "source"

    async def fetch(self, query: SourceQuery) -> SourceResult:
        raise NotImplementedError


def utc_now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def to_iso(value: object) -> str:
    """Best-effort ISO-8601 normalisation; falls back to ingestion time."""
    if isinstance(value, str) and value.strip():
        raw = value.strip()
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return utc_now_iso()
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.isoformat()
    return utc_now_iso()
