"""Request timing middleware and in-process metrics."""

import logging
import threading
import time
from typing import Callable, Dict

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from recipe_bridge.middleware.logging import loggable_path

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 2.0
VERY_SLOW_REQUEST_SECONDS = 5.0


class PerformanceMetrics:
    """Counters shared by every request handled by this process."""

    def __init__(
        self,
        slow_threshold: float = SLOW_REQUEST_SECONDS,
        very_slow_threshold: float = VERY_SLOW_REQUEST_SECONDS,
    ):
        self.slow_threshold = slow_threshold
        self.very_slow_threshold = very_slow_threshold
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        self.request_count = 0
        self.total_duration = 0.0
        self.slow_requests = 0
        self.very_slow_requests = 0
        self.errors = 0

    def record_request(self, duration: float, is_error: bool = False) -> None:
        """
        Record a request metric.

        Args:
            duration: Request duration in seconds
            is_error: Whether the request ended in a 5xx or an exception
        """
        with self._lock:
            self.request_count += 1
            self.total_duration += duration
            if is_error:
                self.errors += 1
            if duration >= self.very_slow_threshold:
                self.very_slow_requests += 1
            elif duration >= self.slow_threshold:
                self.slow_requests += 1

    def get_summary(self) -> Dict[str, float]:
        with self._lock:
            count = self.request_count
            average_ms = (self.total_duration / count) * 1000 if count else 0.0
            slow_pct = (self.slow_requests / count) * 100 if count else 0.0
            error_rate = (self.errors / count) * 100 if count else 0.0
            return {
                "total_requests": count,
                "average_duration_ms": round(average_ms, 2),
                "slow_requests": self.slow_requests,
                "very_slow_requests": self.very_slow_requests,
                "slow_request_percentage": round(slow_pct, 2),
                "errors": self.errors,
                "error_rate": round(error_rate, 2),
            }


# Global metrics instance
metrics = PerformanceMetrics()


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Times each request, records it in `metrics` and flags slow ones by its thresholds."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        method = request.method
        path = loggable_path(request.url.path)
        request_id = getattr(request.state, "request_id", "unknown")

        try:
            response = await call_next(request)
        except Exception:
            metrics.record_request(time.time() - start_time, is_error=True)
            raise

        duration = time.time() - start_time
        duration_ms = round(duration * 1000, 2)
        metrics.record_request(duration, is_error=response.status_code >= 500)
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        log_data = {
            "request_id": request_id,
            "method": method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
        if duration >= metrics.very_slow_threshold:
            logger.error(f"VERY SLOW REQUEST: {method} {path} took {duration_ms}ms", extra=log_data)
        elif duration >= metrics.slow_threshold:
            logger.warning(f"Slow request: {method} {path} took {duration_ms}ms", extra=log_data)
        return response
