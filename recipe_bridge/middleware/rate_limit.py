"""Per-client rate limiting for the Gemini-backed routes, using slowapi."""

from fastapi import Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address

from recipe_bridge.config import settings

# Keyed on the peer address only. Behind a reverse proxy, run uvicorn with
# --proxy-headers and --forwarded-allow-ips so the peer is the real client.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_hour}/hour"],
    storage_uri="memory://",
)


def get_rate_limit_exceeded_handler():
    return _rate_limit_exceeded_handler


def rate_limit_dependency(request: Request) -> None:
    """
    Rate limit dependency for FastAPI.

    Raises:
        RateLimitExceeded: If the client's hourly budget is spent
    """
    # slowapi has no public "hit" helper outside its decorator and middleware
    limiter._check_request_limit(request, endpoint_func=None)
