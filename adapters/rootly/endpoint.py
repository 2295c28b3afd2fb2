"""Rootly request and URL construction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode

from adapters.lib.config import DEFAULT_REQUEST_TIMEOUT_SECONDS

__all__ = ["RootlyRequest", "construct_endpoint"]


@dataclass(frozen=True)
class RootlyRequest:
    """One page request against the Rootly API.

    ``cursor`` is the page number to fetch; None means the first page.
    """

    base_url: str
    authorization: str
    entity: str
    page_size: int
    cursor: Optional[str] = None
    filter: str = ""
    includes: str = ""
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS


def construct_endpoint(request: RootlyRequest) -> str:
    """Build the JSON:API URL for ``request``.

    Parameters are sorted by name; a filter that does not parse as a query
    string is dropped.

    Example:
        >>> construct_endpoint(RootlyRequest("https://api.rootly.com/v1", "", "incidents", 10,
        ...                                  filter="status=started"))
        'https://api.rootly.com/v1/incidents?filter%5Bstatus%5D=started&page%5Bnumber%5D=1&page%5Bsize%5D=10'
    """
    params: List[Tuple[str, str]] = []

    if request.page_size > 0:
        params.append(("page[size]", str(request.page_size)))

    params.append(("page[number]", request.cursor or "1"))

    if request.filter:
        try:
            pairs = parse_qsl(request.filter, keep_blank_values=True, strict_parsing=True)
        except ValueError:
            pairs = []
        params.extend((f"filter[{key}]", value) for key, value in pairs)

    if request.includes:
        params.append(("include", request.includes))

    params.sort(key=lambda pair: pair[0])

    return f"{request.base_url}/{request.entity}?{urlencode(params)}"
