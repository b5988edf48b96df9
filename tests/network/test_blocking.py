"""Test that network access is properly blocked in tests."""

import socket

import httpx
import pytest

from tests.support.errors import NetworkIsolationError


class TestNetworkBlocking:
    """Verify that the network blocking fixture works."""

    def test_socket_connect_is_blocked(self) -> None:
        """Attempting to connect a socket should raise NetworkIsolationError."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            with pytest.raises(NetworkIsolationError) as exc_info:
                sock.connect(("127.0.0.1", 80))
            assert "Tests must not make network connections" in str(exc_info.value)
        finally:
            sock.close()

    def test_httpx_would_fail_without_mock(self) -> None:
        """A real httpx request is stopped by the socket block."""
        with httpx.Client(trust_env=False, timeout=1.0) as client:
            with pytest.raises(NetworkIsolationError) as exc_info:
                client.get("http://127.0.0.1:9/health")
        assert "Tests must not make network connections" in str(exc_info.value)
