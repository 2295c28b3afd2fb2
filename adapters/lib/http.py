"""HTTP transport shared by the adapters.

A thin wrapper around ``httpx.Client`` that applies a per-request timeout,
a descriptive User-Agent, opt-in retries, and turns transport failures into
``InternalError`` so datasources only deal with adapter errors.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx
import requests_toolbelt
import tenacity
from requests_toolbelt.utils.user_agent import user_agent

from adapters import __version__
from adapters.lib.errors import InternalError
from adapters.lib.resilience import RetryConfig, call_with_retry

logger = logging.getLogger(__name__)

__all__ = ["HttpClient", "USER_AGENT", "timeout_message"]

USER_AGENT = user_agent(
    "adapter-foundry",
    __version__,
    extras=[
        ("httpx", getattr(httpx, "__version__", "unknown")),
        ("tenacity", getattr(tenacity, "__version__", "unknown")),
        ("requests-toolbelt", getattr(requests_toolbelt, "__version__", "unknown")),
    ],
)


def timeout_message(timeout_seconds: int) -> str:
    return f"Request to datasource timed out after {timeout_seconds} seconds."


class HttpClient:
    """Synchronous GET client used by the datasources.

    Example:
        with HttpClient() as client:
            response = client.get(
                "https://graph.microsoft.com/v1.0/users?$select=id",
                headers={"Authorization": "Bearer ..."},
                timeout_seconds=10,
                service="Azure AD",
            )
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.Client(transport=transport)
        self.retry_config = retry_config or RetryConfig.none()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def get(
        self,
        url: str,
        *,
        headers: Dict[str, str],
        timeout_seconds: int,
        service: str = "datasource",
    ) -> httpx.Response:
        """Issue a GET request.

        Non-2xx responses are returned, not raised: status handling belongs to
        the caller. Timeouts and transport errors raise ``InternalError``.
        """
        request_headers = {"User-Agent": USER_AGENT}
        request_headers.update(headers)

        def do_request() -> httpx.Response:
            logger.debug("GET %s", url)
            return self._client.get(url, headers=request_headers, timeout=timeout_seconds)

        try:
            return call_with_retry(do_request, self.retry_config, f"{service} request")
        except httpx.TimeoutException as exc:
            raise InternalError(
                f"Failed to execute {service} request: {exc}. {timeout_message(timeout_seconds)}",
                details={"url": url, "timeout_seconds": timeout_seconds},
            ) from exc
        except httpx.HTTPError as exc:
            raise InternalError(
                f"Failed to execute {service} request: {exc}.",
                details={"url": url},
            ) from exc
