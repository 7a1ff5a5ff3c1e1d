#!/usr/bin/env python3
"""
Entry point for photobridge.

Examples:
  python main.py seed 173128 1,2,3 --events 6276436,6276437 --count 10
  python main.py diff "Album A" "Album B"
  python main.py cart 1,2,3 --sales-id 173128
  python main.py auth-google
"""

import argparse
import sys

import structlog

from photobridge.auth import GoogleAuthManager, static_source_acquirer
from photobridge.batch import BatchDispatcher
from photobridge.config import load_config
from photobridge.credentials import CredentialCache
from photobridge.errors import PhotoBridgeError, ValidationError
from photobridge.google_photos_api import GooglePhotosClient
from photobridge.logging_config import configure_logging
from photobridge.source_api import SourceCatalogClient
from photobridge.syncer import PhotoBridge
from photobridge.transport import RetryingTransport

log = structlog.stdlib.get_logger()


def int_list(value: str):
    try:
        return [int(v) for v in value.split(",") if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected comma separated integers, got {value!r}")


def parse_arguments(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Copy source catalog photos into Google Photos albums")
    parser.add_argument("--config", help="Path to sync_config.json")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed", help="Upload each group's photos into a new album")
    seed.add_argument("sales_id", type=int)
    seed.add_argument("group_ids", type=int_list, nargs="?", help="Comma separated group ids (default: LOOKMEE_GROUP_IDS)")
    seed.add_argument("--events", type=int_list, help="Comma separated event ids")
    seed.add_argument("--count", type=int, help="Upload at most this many photos per group")

    make_diff = sub.add_parser("diff", help="Create an album with the items of SOURCE missing from EXCLUDE")
    make_diff.add_argument("source")
    make_diff.add_argument("exclude", nargs="?")

    cart = sub.add_parser("cart", help="Add photos to the cart")
    cart.add_argument("photo_ids", type=int_list)
    cart.add_argument("--sales-id", type=int)

    sub.add_parser("auth-google", help="Obtain a Google refresh token")

    return parser.parse_args(argv)


def build_bridge(config, need_source: bool, need_photos: bool) -> PhotoBridge:
    """
    Fresh transport, caches and clients for one run.
    """
    transport = RetryingTransport(max_retries=config.max_retries, backoff_base=config.backoff_base)

    source = None
    if need_source:
        config.require_source()
        source_credentials = CredentialCache(static_source_acquirer(config), name="source session")
        source = SourceCatalogClient(config.organization_id, source_credentials, transport)

    photos = None
    if need_photos:
        google = GoogleAuthManager.from_config(config)
        photos = GooglePhotosClient(
            CredentialCache(google.acquire, name="google access token"),
            transport,
            BatchDispatcher(config.chunk_size),
        )

    return PhotoBridge(config, source, photos)


def run(args, config) -> int:
    if args.command == "auth-google":
        if not config.google_client_id or not config.google_client_secret:
            raise ValidationError("GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET are required")
        token = GoogleAuthManager(config.google_client_id, config.google_client_secret).generate_refresh_token()
        print(f"GOOGLE_REFRESH_TOKEN={token}")
        return 0

    if args.command == "seed":
        group_ids = args.group_ids or config.group_ids
        bridge = build_bridge(config, need_source=True, need_photos=True)
        outcomes = bridge.seed_albums(args.sales_id, group_ids, args.events, args.count)
        return 1 if any(isinstance(o, Exception) for o in outcomes.values()) else 0

    if args.command == "diff":
        bridge = build_bridge(config, need_source=False, need_photos=True)
        result = bridge.make_diff_album(args.source, args.exclude)
        log.info("summary", **vars(result))
        return 0

    if args.command == "cart":
        bridge = build_bridge(config, need_source=True, need_photos=False)
        result = bridge.add_to_cart(args.photo_ids, args.sales_id)
        log.info("summary", sales_id=result.sales_id, added=result.added_count)
        return 0

    raise ValidationError(f"Unknown command {args.command}")


def main(argv=None) -> int:
    args = parse_arguments(argv)

    try:
        config = load_config(args.config)
    except PhotoBridgeError as e:
        configure_logging(log_level="INFO")
        log.error("invalid_configuration", error=str(e))
        return 1

    configure_logging(
        log_level="DEBUG" if args.verbose else config.log_level,
        json_logs=config.json_logs,
        log_file=config.log_file,
    )

    try:
        return run(args, config)
    except PhotoBridgeError as e:
        log.error("command_failed", command=args.command, error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
