"""Monitoring and observability middleware"""
import time
from typing import Callable

from fastapi import Request, Response
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

from tokenguard.utils.logger import logger


# ===== Prometheus Metrics =====

# Request metrics
http_requests_total = Counter(
    "tokenguard_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "tokenguard_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"]
)

http_errors_total = Counter(
    "tokenguard_http_errors_total",
    "Total HTTP errors",
    ["method", "endpoint", "status"]
)

# Ledger metrics
tokens_revoked_total = Counter(
    "tokenguard_tokens_revoked_total",
    "Tokens added to the revocation ledger",
    ["token_type", "reason"]
)

revocation_checks_total = Counter(
    "tokenguard_revocation_checks_total",
    "Revocation ledger lookups",
    ["result"]  # revoked, clear
)

tokens_reaped_total = Counter(
    "tokenguard_tokens_reaped_total",
    "Expired ledger entries removed by the reaper"
)

revocation_check_duration_seconds = Histogram(
    "tokenguard_revocation_check_duration_seconds",
    "Latency of revocation ledger lookups in seconds",
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0)
)

# Error metrics
authentication_failures_total = Counter(
    "tokenguard_authentication_failures_total",
    "Total authentication failures",
    ["reason"]  # MISSING_TOKEN, TOKEN_EXPIRED, TOKEN_BLACKLISTED, ...
)


class MonitoringMiddleware(BaseHTTPMiddleware):
    """Middleware for monitoring and metrics collection"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and collect metrics"""
        start_time = time.time()

        method = request.method
        endpoint = request.url.path

        request_id = request.headers.get("x-request-id", f"req_{int(time.time() * 1000)}")
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            status = response.status_code

            # Route template keeps token values (/check-token/<jwt>) out of label values
            route = request.scope.get("route")
            if route is not None and hasattr(route, "path"):
                endpoint = route.path

            duration = time.time() - start_time
            http_requests_total.labels(
                method=method,
                endpoint=endpoint,
                status=status
            ).inc()

            http_request_duration_seconds.labels(
                method=method,
                endpoint=endpoint
            ).observe(duration)

            # Log slow requests
            if duration > 1.0:
                logger.warning(
                    f"Slow request detected: {method} {endpoint}",
                    extra={
                        "request_id": request_id,
                        "method": method,
                        "path": endpoint,
                    }
                )

            if status >= 400:
                http_errors_total.labels(
                    method=method,
                    endpoint=endpoint,
                    status=status
                ).inc()

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration:.3f}s"

            return response

        except Exception as e:
            http_errors_total.labels(
                method=method,
                endpoint="unmatched",
                status=500
            ).inc()

            logger.error(
                f"Request failed: {method}: {e}",
                extra={
                    "request_id": request_id,
                    "method": method,
                },
                exc_info=True
            )
            raise


def record_revocation(token_type: str, reason: str):
    """Record a new ledger entry"""
    tokens_revoked_total.labels(token_type=token_type, reason=reason).inc()


def record_revocation_check(revoked: bool, duration: float):
    """Record a ledger lookup and its latency"""
    revocation_checks_total.labels(result="revoked" if revoked else "clear").inc()
    revocation_check_duration_seconds.observe(duration)


def record_reaped(count: int):
    """Record expired entries removed by the reaper"""
    if count:
        tokens_reaped_total.inc(count)


def record_auth_failure(reason: str):
    """Record authentication failure"""
    authentication_failures_total.labels(reason=reason).inc()
