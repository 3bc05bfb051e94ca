"""Middleware modules for production-ready features"""
from tokenguard.middleware.monitoring import (
    MonitoringMiddleware,
    record_auth_failure,
    record_reaped,
    record_revocation,
    record_revocation_check,
)
from tokenguard.middleware.rate_limit import get_rate_limit, limiter

__all__ = [
    "MonitoringMiddleware",
    "record_auth_failure",
    "record_reaped",
    "record_revocation",
    "record_revocation_check",
    "limiter",
    "get_rate_limit",
]
