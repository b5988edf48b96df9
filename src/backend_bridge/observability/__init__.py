"""Observability helpers for backend_bridge."""

from .logging import get_logger, set_level, short_id

__all__ = ["get_logger", "set_level", "short_id"]
