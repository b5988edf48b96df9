"""backend_bridge: resilient request orchestration for the troubleshooting backend."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

DISTRIBUTION_NAME = "backend-bridge"

try:
    __version__ = version(DISTRIBUTION_NAME)
except PackageNotFoundError:
    # Source checkout without an installed distribution.
    __version__ = "0.0.0+unknown"
