"""Resilience utilities for upstream HTTP calls.

Retry is opt-in: the pagination core never retries on its own, and the
default ``RetryConfig.none()`` performs exactly one attempt. Callers that
know an upstream is flaky can hand a ``RetryConfig`` to the HTTP client.

Implementation: Uses tenacity library internally for retry logic.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

import httpx
import tenacity
from tenacity.wait import wait_base

logger = logging.getLogger(__name__)

__all__ = ["RetryConfig", "RETRYABLE_STATUS_CODES", "call_with_retry", "parse_retry_after"]

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

# Upper bound on a server-supplied Retry-After wait
MAX_RETRY_AFTER_SECONDS = 60.0


class RetryConfig:
    """Configuration for retry behavior of upstream requests."""

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        exponential: bool = True,
        jitter: bool = True,
        respect_retry_after: bool = True,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.exponential = exponential
        self.jitter = jitter
        self.respect_retry_after = respect_retry_after

    @classmethod
    def none(cls) -> "RetryConfig":
        """No retry - fail immediately."""
        return cls(max_attempts=1)

    @classmethod
    def default(cls) -> "RetryConfig":
        """Default retry: 3 attempts with exponential backoff."""
        return cls()

    @classmethod
    def aggressive(cls) -> "RetryConfig":
        """Aggressive retry: 5 attempts with longer backoff."""
        return cls(max_attempts=5, backoff_seconds=5.0)

    def __repr__(self) -> str:
        return (
            f"RetryConfig(max_attempts={self.max_attempts}, "
            f"backoff_seconds={self.backoff_seconds})"
        )


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given in seconds. HTTP-date values are ignored."""
    if not value:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    if seconds <= 0:
        return None
    return min(seconds, MAX_RETRY_AFTER_SECONDS)


def _is_retryable_response(response: httpx.Response) -> bool:
    return response.status_code in RETRYABLE_STATUS_CODES


def _is_retryable_exception(exc: BaseException) -> bool:
    return isinstance(exc, httpx.TransportError)


def _build_wait(config: RetryConfig) -> Callable[[tenacity.RetryCallState], float]:
    base: wait_base
    if config.exponential:
        base = tenacity.wait_exponential(multiplier=config.backoff_seconds, min=config.backoff_seconds)
    else:
        base = tenacity.wait_fixed(config.backoff_seconds)

    if config.jitter:
        base = base + tenacity.wait_random(0, config.backoff_seconds * 0.5)

    def wait(retry_state: tenacity.RetryCallState) -> float:
        outcome = retry_state.outcome
        if config.respect_retry_after and outcome is not None and not outcome.failed:
            retry_after = parse_retry_after(outcome.result().headers.get("Retry-After"))
            if retry_after is not None:
                return retry_after
        return base(retry_state)

    return wait


def _return_last_outcome(retry_state: tenacity.RetryCallState) -> httpx.Response:
    # Re-raises the last exception, or hands back the last (retryable) response
    assert retry_state.outcome is not None
    return retry_state.outcome.result()


def call_with_retry(
    operation: Callable[[], httpx.Response],
    config: RetryConfig,
    operation_name: str = "request",
) -> httpx.Response:
    """Execute an HTTP operation, retrying transport errors and retryable statuses.

    When attempts are exhausted the last response is returned as-is (so the
    caller still sees the upstream status) or the last exception is raised.
    """
    if config.max_attempts == 1:
        return operation()

    def before_sleep_handler(retry_state: tenacity.RetryCallState) -> None:
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            reason = str(outcome.exception())
        elif outcome is not None:
            reason = f"HTTP {outcome.result().status_code}"
        else:
            reason = "unknown"
        logger.warning(
            "%s attempt %d/%d failed: %s. Retrying in %.1fs...",
            operation_name,
            retry_state.attempt_number,
            config.max_attempts,
            reason,
            retry_state.next_action.sleep if retry_state.next_action else 0,
        )

    retryer = tenacity.Retrying(
        stop=tenacity.stop_after_attempt(config.max_attempts),
        wait=_build_wait(config),
        retry=(
            tenacity.retry_if_exception(_is_retryable_exception)
            | tenacity.retry_if_result(_is_retryable_response)
        ),
        before_sleep=before_sleep_handler,
        retry_error_callback=_return_last_outcome,
    )

    return retryer(operation)
