"""Unit tests for the audit middleware."""
import pytest

from booking_core.logging_middleware import REQUEST_ID_HEADER, classify


class TestClassify:
    """Test mapping of requests to booking actions."""

    @pytest.mark.parametrize(
        ("method", "path", "action"),
        [
            ("POST", "/bookings", "submit"),
            ("POST", "/bookings/12/approve", "approve"),
            ("POST", "/bookings/12/reject", "reject"),
            ("POST", "/bookings/12/cancel", "cancel"),
            ("POST", "/bookings/sweep", "sweep"),
            ("GET", "/bookings/availability", "preview"),
            ("GET", "/bookings/12", "read"),
            ("DELETE", "/bookings/12", "other"),
        ],
    )
    def test_actions(self, method, path, action):
        """Test each known route."""
        assert classify(method, path) == action


class TestRequestId:
    """Test request id propagation."""

    def test_generated_when_missing(self, bookings_client):
        """Test that responses always carry a request id."""
        response = bookings_client.get("/health")
        assert response.headers[REQUEST_ID_HEADER]

    def test_echoed_when_sent(self, bookings_client):
        """Test that a caller-supplied id is kept."""
        response = bookings_client.get("/health", headers={REQUEST_ID_HEADER: "trace-42"})
        assert response.headers[REQUEST_ID_HEADER] == "trace-42"
