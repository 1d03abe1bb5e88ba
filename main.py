#!/usr/bin/env python3
"""
gator: a command-line RSS/Atom feed aggregator.

Usage:
    python main.py register <name>            # Create a user and log in as them
    python main.py login <name>               # Switch the current user
    python main.py users                      # List users
    python main.py reset                      # Delete all users, feeds and posts
    python main.py addfeed <name> <url>       # Add a feed and follow it
    python main.py feeds                      # List all feeds
    python main.py follow <url>               # Follow an existing feed
    python main.py following                  # List feeds you follow
    python main.py unfollow <url>             # Stop following a feed
    python main.py agg <time_between_reqs>    # Fetch feeds forever, e.g. agg 1m (Ctrl-C stops)
    python main.py browse [limit]             # Newest posts from feeds you follow
"""

import argparse
import logging
import sys

from commands import CommandContext, CommandError, build_registry
from config import load_config
from fetcher import RSSFetcher
from storage import Storage


def setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def cli(argv: list[str] | None = None):
    registry = build_registry()

    parser = argparse.ArgumentParser(
        prog="gator",
        description="Command-line RSS/Atom feed aggregator",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    parser.add_argument("command", nargs="?", choices=registry.names(), help="Command to run")
    parser.add_argument("args", nargs="*", help="Command arguments")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(args.verbose)
    config = load_config()

    storage = Storage(config.db_path)
    fetcher = RSSFetcher(timeout=config.fetch_timeout, user_agent=config.user_agent)
    ctx = CommandContext(config=config, storage=storage, fetcher=fetcher)

    try:
        registry.run(ctx, args.command, *args.args)
    except CommandError as e:
        print(f"Error running command {args.command}: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        fetcher.close()
        storage.close()


if __name__ == "__main__":
    cli()
