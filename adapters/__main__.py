"""CLI entrypoint for adapter-foundry.

Fetches pages of one entity from an adapter and prints them as JSON:

    python -m adapters azuread --entity GroupMember --address graph.microsoft.com \\
        --config azuread.yaml --attribute id --attribute memberId --page-size 100 --all

The bearer token comes from ``--token`` or the adapter's environment
variable (``AZUREAD_TOKEN`` / ``ROOTLY_TOKEN``), which may be set in a
``.env`` file.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from adapters import __version__
from adapters.azuread import AzureADAdapter, AzureADConfig, AzureADDatasource
from adapters.lib.config import load_config_file
from adapters.lib.env import load_env_file, read_secret
from adapters.lib.errors import AdapterError
from adapters.lib.framework import Adapter, AttributeConfig, AttributeType, EntityConfig, PageRequest
from adapters.lib.http import HttpClient
from adapters.lib.logging import setup_logging
from adapters.lib.resilience import RetryConfig
from adapters.rootly import RootlyAdapter, RootlyConfig, RootlyDatasource

logger = logging.getLogger(__name__)

# adapter name -> (token env var, config factory, adapter factory)
ADAPTERS: Dict[str, Tuple[str, Callable[[Dict[str, Any]], Any], Callable[[HttpClient], Adapter[Any]]]] = {
    "azuread": (
        "AZUREAD_TOKEN",
        AzureADConfig.from_dict,
        lambda client: AzureADAdapter(AzureADDatasource(client)),
    ),
    "rootly": (
        "ROOTLY_TOKEN",
        RootlyConfig.from_dict,
        lambda client: RootlyAdapter(RootlyDatasource(client)),
    ),
}


def parse_attribute(value: str) -> AttributeConfig:
    """Parse ``name`` or ``name:type`` (``type`` one of AttributeType, ``[]`` suffix for lists)."""
    name, _, type_name = value.partition(":")
    if not name:
        raise argparse.ArgumentTypeError(f"Invalid attribute: {value!r}")

    is_list = type_name.endswith("[]")
    type_name = type_name[:-2] if is_list else type_name

    try:
        attribute_type = AttributeType(type_name) if type_name else AttributeType.STRING
    except ValueError:
        choices = ", ".join(t.value for t in AttributeType)
        raise argparse.ArgumentTypeError(f"Unknown attribute type {type_name!r} (choose from {choices})") from None

    return AttributeConfig(
        external_id=name,
        type=attribute_type,
        list=is_list,
        unique_id=name == "id",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="adapter-foundry",
        description="Fetch pages of an entity from an identity or incident datasource",
    )
    parser.add_argument("adapter", choices=sorted(ADAPTERS), help="Adapter to run")
    parser.add_argument("--entity", required=True, help="Entity external ID (e.g. User, GroupMember, incidents)")
    parser.add_argument("--address", required=True, help="Datasource address (https:// is added if missing)")
    parser.add_argument("--config", help="Path to YAML adapter config")
    parser.add_argument(
        "--attribute",
        action="append",
        type=parse_attribute,
        dest="attributes",
        help="Attribute to return, as name[:type]. Repeat for more. Defaults to id only",
    )
    parser.add_argument("--page-size", type=int, default=100, help="Objects per page (default: 100)")
    parser.add_argument("--cursor", default="", help="Cursor returned with the previous page")
    parser.add_argument("--token", help="Bearer token (default: from the adapter's environment variable)")
    parser.add_argument("--env-file", help="Path to a .env file (default: ./.env if present)")
    parser.add_argument("--all", action="store_true", help="Follow cursors until the sync completes")
    parser.add_argument("--max-pages", type=int, help="Stop after this many pages when using --all")
    parser.add_argument(
        "--retry",
        choices=["none", "default", "aggressive"],
        default="none",
        help="Retry policy for 429/5xx responses and transport errors (default: none)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose (DEBUG level) logging")
    parser.add_argument("--log-format", choices=["human", "json"], default="human", help="Log format")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--version", action="version", version=f"adapter-foundry {__version__}")
    return parser


def _authorization(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    return token if token.startswith("Bearer ") else f"Bearer {token}"


def iter_pages(
    adapter: Adapter[Any],
    request: PageRequest[Any],
    *,
    follow: bool = False,
    max_pages: Optional[int] = None,
) -> Iterator[Dict[str, Any]]:
    """Yield one page, or every page when ``follow`` is set, as each arrives."""
    count = 0
    while True:
        page = adapter.get_page(request)
        count += 1
        logger.info("Fetched page %d with %d objects", count, len(page.objects))
        yield page.to_dict()

        if not follow or not page.next_cursor:
            return
        if max_pages is not None and count >= max_pages:
            logger.info("Stopping after %d pages; resume with --cursor %s", count, page.next_cursor)
            return

        request.cursor = page.next_cursor


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose, json_format=args.log_format == "json", log_file=args.log_file)
    load_env_file(args.env_file)

    token_env, config_factory, adapter_factory = ADAPTERS[args.adapter]

    try:
        config_data = load_config_file(args.config) if args.config else {}
        config = config_factory(config_data)
    except (AdapterError, FileNotFoundError) as exc:
        logger.error("Failed to load config %s: %s", args.config, exc)
        return 1

    request: PageRequest[Any] = PageRequest(
        address=args.address,
        entity=EntityConfig(
            external_id=args.entity,
            attributes=args.attributes or [parse_attribute("id")],
        ),
        page_size=args.page_size,
        config=config,
        auth=_authorization(read_secret(args.token, token_env)),
        cursor=args.cursor,
    )

    retry_config = getattr(RetryConfig, args.retry)()

    # --all writes one JSON line per page as it arrives
    indent = None if args.all else 2

    with HttpClient(retry_config=retry_config) as client:
        adapter = adapter_factory(client)
        try:
            for page in iter_pages(adapter, request, follow=args.all, max_pages=args.max_pages):
                json.dump(page, sys.stdout, default=str, indent=indent)
                sys.stdout.write("\n")
                sys.stdout.flush()
        except AdapterError as exc:
            logger.error("%s request failed: %s", args.adapter, exc)
            json.dump({"error": exc.to_dict()}, sys.stdout, default=str)
            sys.stdout.write("\n")
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
