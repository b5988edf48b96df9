"""Concrete infrastructure implementations and shared helpers."""

from .cache import ReadThroughCache
from .clock import SystemClock
from .http import HttpxTransport, build_http_client, parse_retry_after, response_details
from .resilience import RetryPolicy
from .storage import JsonFileStorage

__all__ = [
    "HttpxTransport",
    "JsonFileStorage",
    "ReadThroughCache",
    "RetryPolicy",
    "SystemClock",
    "build_http_client",
    "parse_retry_after",
    "response_details",
]
