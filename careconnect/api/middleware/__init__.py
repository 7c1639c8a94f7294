"""Middleware package."""

from careconnect.api.middleware.request_id import RequestIdMiddleware, get_request_id
from careconnect.api.middleware.logging import LoggingMiddleware

__all__ = [
    "RequestIdMiddleware",
    "get_request_id",
    "LoggingMiddleware",
]
