"""Request/response logging middleware."""

import logging
import re
import time
from typing import Any, Callable, Dict

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from recipe_bridge.core.request_id import REQUEST_ID_HEADER, resolve_request_id, set_request_id
from recipe_bridge.core.staging_store import loggable_id

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = ("api_key", "apikey", "password", "token", "secret", "auth")
_STAGED_RECIPE_PATH = re.compile(r"^(/api/recipe/)([^/]+)$")


def mask_sensitive_data(data: Any) -> Any:
    """Recursively mask sensitive fields in data."""
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if any(sensitive in str(key).lower() for sensitive in SENSITIVE_KEYS):
                masked[key] = "***"
            else:
                masked[key] = mask_sensitive_data(value)
        return masked
    if isinstance(data, list):
        return [mask_sensitive_data(item) for item in data]
    return data


def loggable_path(path: str) -> str:
    """Request path with any staging id cut down to its loggable prefix."""
    match = _STAGED_RECIPE_PATH.match(path)
    if not match:
        return path
    return match.group(1) + loggable_id(match.group(2))


def get_request_params(request: Request) -> Dict[str, Any]:
    """
    Loggable request parameters.

    Bodies are never read here: staged recipe HTML and uploaded photos are
    described by content type and length only. Routes log their own params.
    """
    params: Dict[str, Any] = {}
    if request.query_params:
        query = mask_sensitive_data(dict(request.query_params))
        if "id" in query:
            query["id"] = loggable_id(query["id"])
        params["query"] = query

    content_type = request.headers.get("content-type")
    if content_type:
        params["content_type"] = content_type.split(";")[0]
    content_length = request.headers.get("content-length")
    if content_length:
        params["content_length"] = content_length
    return params


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging requests and responses with timing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        set_request_id(request_id)
        request.state.request_id = request_id

        start_time = time.time()
        method = request.method
        path = loggable_path(request.url.path)

        logger.info(
            f"API Request: {method} {path}",
            extra={
                "request_id": request_id,
                "method": method,
                "path": path,
                "params": get_request_params(request),
                "client_ip": request.client.host if request.client else None,
                "user_agent": request.headers.get("user-agent", "Unknown"),
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"API Error: {method} {path} - {str(e)}",
                extra={
                    "request_id": request_id,
                    "method": method,
                    "path": path,
                    "process_time_ms": round((time.time() - start_time) * 1000, 2),
                },
                exc_info=True,
            )
            raise

        logger.info(
            f"API Response: {method} {path} - {response.status_code}",
            extra={
                "request_id": request_id,
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "process_time_ms": round((time.time() - start_time) * 1000, 2),
            },
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
