"""Adapter library modules.

This package contains the page request/response contract, the composite
cursor pagination engine, and the HTTP, config, logging and conversion
utilities shared by every adapter.
"""

from adapters.lib.config import CommonConfig, load_config_file
from adapters.lib.conversion import convert_objects
from adapters.lib.env import expand_env_vars, load_env_file
from adapters.lib.errors import (
    AdapterError,
    DatasourceConfigError,
    EntityConfigError,
    ErrorCode,
    InternalError,
    InvalidPageRequestError,
    UpstreamError,
    http_error,
)
from adapters.lib.framework import (
    Adapter,
    AttributeConfig,
    AttributeType,
    EntityConfig,
    Page,
    PageRequest,
)
from adapters.lib.http import HttpClient
from adapters.lib.logging import AdapterLogger, JSONFormatter, setup_logging
from adapters.lib.pagination import (
    CompositeCursor,
    DatasourceResponse,
    accumulate_page,
    decode_cursor,
    encode_cursor,
    fetch_collection_page,
    paginate_objects,
    validate_composite_cursor,
)
from adapters.lib.resilience import RetryConfig

__all__ = [
    # Contract
    "Adapter",
    "AttributeConfig",
    "AttributeType",
    "EntityConfig",
    "Page",
    "PageRequest",
    # Config
    "CommonConfig",
    "load_config_file",
    "expand_env_vars",
    "load_env_file",
    # Errors
    "AdapterError",
    "DatasourceConfigError",
    "EntityConfigError",
    "ErrorCode",
    "InternalError",
    "InvalidPageRequestError",
    "UpstreamError",
    "http_error",
    # Pagination
    "CompositeCursor",
    "DatasourceResponse",
    "accumulate_page",
    "decode_cursor",
    "encode_cursor",
    "fetch_collection_page",
    "paginate_objects",
    "validate_composite_cursor",
    # Transport and logging
    "HttpClient",
    "RetryConfig",
    "AdapterLogger",
    "JSONFormatter",
    "setup_logging",
    "convert_objects",
]
