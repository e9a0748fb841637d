#!/usr/bin/env python
"""
Trac Query Script.

Command-line access to a Trac project over XML-RPC:
- Check that the XML-RPC API is reachable.
- List ticket types.
- List the tickets of a release.

Usage:
    python scripts/trac_query.py --config config/trac_connection.yaml --check
    python scripts/trac_query.py --url http://tracserv/trac/Project --categories
    python scripts/trac_query.py --url http://tracserv/trac/Project --user builder \
        --password secret --release 1.2 --category defect
"""

import argparse
import sys

from loguru import logger

from tracrpc.config import CONNECTION_DEFAULTS, ConfigurationError, load_connection
from tracrpc.trac import TracIssueTracker, TracProviderError
from tracrpc.xmlrpc import RpcError


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Trac XML-RPC query tool")
    parser.add_argument(
        "--config",
        type=str,
        default="",
        help="Path to a trac_connection YAML/JSON file",
    )
    parser.add_argument("--url", type=str, default="", help="Trac project URL")
    parser.add_argument("--user", type=str, default="", help="User name (Basic auth)")
    parser.add_argument("--password", type=str, default="", help="Password (Basic auth)")
    parser.add_argument(
        "--release",
        type=str,
        default="",
        help="Release number whose tickets are listed",
    )
    parser.add_argument(
        "--category",
        type=str,
        default="",
        help="Only list tickets of this ticket type",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only validate the connection",
    )
    parser.add_argument(
        "--categories",
        action="store_true",
        help="List ticket types",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def build_connection(args):
    """Merge the config file (if any) with command-line overrides."""
    if args.config:
        connection = load_connection(args.config)
    else:
        connection = dict(CONNECTION_DEFAULTS)

    if args.url:
        connection["base_url"] = args.url
    if args.user:
        connection["username"] = args.user
    if args.password:
        connection["password"] = args.password
    if args.category:
        connection["category_filter"] = args.category
    return connection


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else "INFO")

    try:
        connection = build_connection(args)
    except ConfigurationError as e:
        logger.error(f"[Trac] Cannot load configuration: {e}")
        return 2

    if not connection.get("base_url"):
        logger.error("[Trac] A project URL is required (--url or --config)")
        return 2

    try:
        tracker = TracIssueTracker.from_config(connection)
        tracker.validate_connection()
        if args.check:
            logger.info("[Trac] Connection OK")
            return 0

        if args.categories:
            for category in tracker.get_categories():
                print(category)
            return 0

        for issue in tracker.get_issues(args.release):
            print(f"#{issue.issue_id}\t{issue.status}\t{issue.title}")
    except (RpcError, TracProviderError) as e:
        logger.error(f"[Trac] {type(e).__name__}: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
