"""
Rate limiting utilities for API endpoints.
Uses slowapi to slow down password guessing on protected galleries and CMS uploads.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request


def get_client_identifier(request: Request) -> str:
    """
    Get client identifier for rate limiting.
    Uses forwarded IP if behind proxy, otherwise remote address.

    Args:
        request: FastAPI request object

    Returns:
        str: Client identifier (IP address)
    """
    # Check for forwarded IP (if behind reverse proxy)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Get first IP in chain (original client)
        return forwarded.split(",")[0].strip()

    # Fall back to direct remote address
    return get_remote_address(request)


# Create limiter instance
limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=["300/hour"],
    storage_uri="memory://"  # Per-process counters; point at Redis when running several workers
)


# Rate limit configurations for specific use cases
RATE_LIMITS = {
    "unlock": "5/minute",  # Gallery password attempts per minute per IP
    "upload": "60/hour",  # Photo uploads per hour per IP
}
