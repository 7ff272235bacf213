"""
rate_limit.py — Global rate limiter instance.

Uses slowapi (a Starlette-compatible wrapper around the `limits` library).
Requests are keyed by client IP address. Search is the only route that
opts in: it is called on every keystroke by typeahead clients.

Usage in routes:
    from fastapi import Request
    from geo_directory.core.rate_limit import limiter

    @router.get("/search")
    @limiter.limit(settings.search_rate_limit)
    async def search(request: Request, q: str):
        ...
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
