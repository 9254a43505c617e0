"""Rate limiting for the public, token-bearing endpoints."""

from fastapi import Request
from slowapi import Limiter


def client_ip(request: Request) -> str:
    """Client address as resolved by the proxy headers middleware.

    ``X-Forwarded-For`` is only honoured when the connecting peer is listed in
    ``FORWARDED_ALLOW_IPS``, so callers cannot pick their own rate-limit key.
    """
    return request.client.host if request.client else "unknown"


limiter = Limiter(key_func=client_ip)
