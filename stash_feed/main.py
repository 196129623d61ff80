"""Command-line entry point.

Prints one feed page or one autocomplete lookup as JSON, which is handy
for checking a Stash instance and a filter combination by hand.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from . import config
from .engine import AUTOCOMPLETE_KINDS, StashFeedEngine
from .graphql import StashGraphQLClient
from .logger import setup_logging
from .normalizer import build_filter_spec

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stash-feed")
    sub = parser.add_subparsers(dest="command", required=True)

    sample = sub.add_parser("sample", help="fetch one feed page")
    sample.add_argument("--query", default="")
    sample.add_argument("--tags", nargs="*", default=[])
    sample.add_argument("--performers", nargs="*", default=[])
    sample.add_argument("--studios", nargs="*", default=[])
    sample.add_argument("--saved-filter")
    sample.add_argument("--shuffle", action="store_true")
    sample.add_argument("--offset", type=int, default=0)
    sample.add_argument("--limit", type=int, default=config.settings.FEED_PAGE_SIZE)
    sample.add_argument("--seed")
    sample.add_argument("--short-form", action="store_true")
    sample.add_argument("--max-duration", type=int)
    sample.add_argument("--orientation", action="append", default=[])

    search = sub.add_parser("search", help="autocomplete tags or performers")
    search.add_argument("kind", choices=AUTOCOMPLETE_KINDS)
    search.add_argument("term", nargs="?", default="")
    search.add_argument("--limit", type=int, default=10)
    return parser


def _spec_from_args(args: argparse.Namespace):
    return build_filter_spec(
        {
            "query": args.query,
            "tags": args.tags,
            "performers": args.performers,
            "studios": args.studios,
            "saved_filter_id": args.saved_filter,
            "shuffle": args.shuffle,
            "offset": args.offset,
            "limit": args.limit,
            "sort_seed": args.seed,
            "short_form": args.short_form,
            "max_duration": args.max_duration,
            "orientations": args.orientation,
        },
        default_limit=config.settings.FEED_PAGE_SIZE,
    )


async def _run(args: argparse.Namespace) -> dict:
    client = StashGraphQLClient.from_settings(config.settings)
    async with StashFeedEngine(client, config.settings) as engine:
        if args.command == "search":
            items = await engine.search_autocomplete(args.kind, args.term, args.limit)
            return {"items": items}

        page = await engine.fetch_sample(_spec_from_args(args))
        return {
            "items": page.items,
            "total_count": page.total_count,
            "next_offset": page.next_filter.offset,
            "sort_seed": page.next_filter.sort_seed,
            "error": str(page.error) if page.error else None,
        }


def run(argv: list[str] | None = None) -> int:
    setup_logging()
    config.validate_settings()
    args = build_parser().parse_args(argv)
    logger.info("Querying %s", config.settings.STASH_URL)
    result = asyncio.run(_run(args))
    json.dump(result, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    return 1 if result.get("error") else 0


if __name__ == "__main__":
    sys.exit(run())
