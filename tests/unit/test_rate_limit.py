"""Unit tests for rate limit keys."""
from starlette.requests import Request

from booking_core.auth import create_access_token
from booking_core.rate_limit import caller_key


def make_request(headers: dict[str, str]) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/bookings/me",
        "headers": [(name.lower().encode(), value.encode()) for name, value in headers.items()],
        "client": ("10.0.0.7", 50000),
    }
    return Request(scope)


class TestCallerKey:
    """Test how requests are bucketed."""

    def test_bearer_subject(self):
        """Test that authenticated calls are keyed by user."""
        token = create_access_token({"sub": "alice"})
        assert caller_key(make_request({"Authorization": f"Bearer {token}"})) == "user:alice"

    def test_anonymous_falls_back_to_address(self):
        """Test that calls without a token are keyed by client address."""
        assert caller_key(make_request({})) == "ip:10.0.0.7"

    def test_garbage_token_falls_back_to_address(self):
        """Test that malformed tokens do not break limiting."""
        assert caller_key(make_request({"Authorization": "Bearer not-a-jwt"})) == "ip:10.0.0.7"
