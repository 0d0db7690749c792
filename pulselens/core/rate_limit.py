"""
rate_limit.py — Global rate limiter instance for the inbound API.

Uses slowapi (a Starlette-compatible wrapper around the `limits` library).
Requests are keyed by client IP address.

Usage in routes:
    from fastapi import Request
    from pulselens.core.rate_limit import limiter

    @router.post("")
    @limiter.limit("30/minute")
    async def my_endpoint(request: Request, payload: MyRequest):
        ...

Every /pulse request can fan out to four upstream APIs plus one LLM call
per post, so the limits here protect our own upstream quotas as much as
the server.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
