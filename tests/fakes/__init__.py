"""Exports for test fakes."""

from .clock import FakeClock
from .credentials import StaticCredentialSource
from .http import ScriptedTransport, json_response
from .storage import InMemoryStorage

__all__ = [
    "FakeClock",
    "InMemoryStorage",
    "ScriptedTransport",
    "StaticCredentialSource",
    "json_response",
]
