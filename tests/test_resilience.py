"""Tests for retry behaviour and the shared HTTP client."""

from __future__ import annotations

from typing import List

import httpx
import pytest

from adapters.lib.errors import InternalError
from adapters.lib.http import USER_AGENT, HttpClient
from adapters.lib.resilience import RetryConfig, call_with_retry, parse_retry_after

URL = "https://graph.test/v1.0/users"


def no_wait(max_attempts: int = 3) -> RetryConfig:
    return RetryConfig(max_attempts=max_attempts, backoff_seconds=0, jitter=False, respect_retry_after=False)


class TestRetryConfig:
    """Tests for RetryConfig presets."""

    def test_presets(self):
        """Test the attempt counts of each preset."""
        assert RetryConfig.none().max_attempts == 1
        assert RetryConfig.default().max_attempts == 3
        assert RetryConfig.aggressive().max_attempts == 5

    def test_rejects_zero_attempts(self):
        """Test that at least one attempt is required."""
        with pytest.raises(ValueError):
            RetryConfig(max_attempts=0)


@pytest.mark.parametrize(
    "value,expected",
    [("", None), (None, None), ("5", 5.0), ("0", None), ("abc", None), ("600", 60.0), ("1.5", 1.5)],
)
def test_parse_retry_after(value, expected):
    """Test Retry-After parsing and capping."""
    assert parse_retry_after(value) == expected


class TestCallWithRetry:
    """Tests for call_with_retry."""

    @staticmethod
    def responses(*statuses: int):
        calls: List[int] = []
        queue = list(statuses)

        def operation() -> httpx.Response:
            calls.append(1)
            return httpx.Response(queue.pop(0) if len(queue) > 1 else queue[0])

        return operation, calls

    def test_single_attempt_without_retry(self):
        """Test that no retry config calls the operation once."""
        operation, calls = self.responses(503, 200)
        response = call_with_retry(operation, RetryConfig.none())
        assert response.status_code == 503
        assert len(calls) == 1

    def test_retries_retryable_status(self):
        """Test that 429 and 5xx are retried until success."""
        operation, calls = self.responses(429, 502, 200)
        response = call_with_retry(operation, no_wait())
        assert response.status_code == 200
        assert len(calls) == 3

    def test_returns_last_response_when_exhausted(self):
        """Test that the caller still sees the upstream status after the last attempt."""
        operation, calls = self.responses(503)
        response = call_with_retry(operation, no_wait(max_attempts=2))
        assert response.status_code == 503
        assert len(calls) == 2

    def test_client_errors_are_not_retried(self):
        """Test that 4xx other than 429 return immediately."""
        operation, calls = self.responses(404, 200)
        response = call_with_retry(operation, no_wait())
        assert response.status_code == 404
        assert len(calls) == 1

    def test_transport_errors_are_retried_then_raised(self):
        """Test that connection errors are retried and the last one raised."""
        calls: List[int] = []

        def operation() -> httpx.Response:
            calls.append(1)
            raise httpx.ConnectError("refused")

        with pytest.raises(httpx.ConnectError):
            call_with_retry(operation, no_wait())
        assert len(calls) == 3


class TestHttpClient:
    """Tests for HttpClient."""

    def test_sends_user_agent_and_headers(self):
        """Test that caller headers and the User-Agent are sent."""
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        with HttpClient(transport=httpx.MockTransport(handler)) as client:
            response = client.get(URL, headers={"Authorization": "Bearer t"}, timeout_seconds=5)

        assert response.status_code == 200
        assert seen[0].headers["User-Agent"] == USER_AGENT
        assert seen[0].headers["Authorization"] == "Bearer t"

    def test_error_statuses_are_returned(self):
        """Test that non-2xx responses are not raised."""
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        with HttpClient(transport=transport) as client:
            assert client.get(URL, headers={}, timeout_seconds=5).status_code == 500

    def test_timeout(self):
        """Test that timeouts become internal errors naming the timeout."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with HttpClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(InternalError) as exc_info:
                client.get(URL, headers={}, timeout_seconds=7, service="Azure AD")

        assert exc_info.value.message == (
            "Failed to execute Azure AD request: timed out. Request to datasource timed out after 7 seconds."
        )

    def test_transport_error(self):
        """Test that other transport failures become internal errors."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with HttpClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(InternalError, match="Failed to execute Rootly request: connection refused."):
                client.get(URL, headers={}, timeout_seconds=5, service="Rootly")

    def test_retries_when_configured(self):
        """Test that a retry config on the client retries throttled requests."""
        statuses = [429, 200]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(statuses.pop(0))

        with HttpClient(transport=httpx.MockTransport(handler), retry_config=no_wait()) as client:
            assert client.get(URL, headers={}, timeout_seconds=5).status_code == 200
        assert statuses == []
