"""Implementations of the ``permalinks`` subcommands.

Each command opens the database, runs one registry call under
``anyio.run``, and prints a plain-text report to stdout. Library errors
are printed to stderr and exit with code 1.
"""

import argparse
import sys
from collections.abc import Awaitable, Callable

import anyio

from permalinks.config import PermalinkConfig
from permalinks.data import Database
from permalinks.entry import OwnerIdentity, PermalinkEntry
from permalinks.errors import PermalinkError
from permalinks.registry import PermalinkRegistry
from permalinks.slugs import sanitize


def _run(main: Callable[[], Awaitable[None]]) -> None:
    try:
        anyio.run(main)
    except PermalinkError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


def _describe(entry: PermalinkEntry) -> str:
    marker = "*" if entry.is_current else " "
    scope = ",".join(entry.scope) or "-"
    updated = entry.updated_at.isoformat() if entry.updated_at else "-"
    return f"{marker} {entry.value}  owner={entry.owner}  scope={scope}  updated={updated}"


def run_migrate(args: argparse.Namespace) -> None:
    async def main() -> None:
        async with Database(args.db) as db:
            result = await PermalinkRegistry(db).setup()
        print(result.summary)

    _run(main)


def run_sanitize(args: argparse.Namespace) -> None:
    config = PermalinkConfig(language=args.language)
    slug = sanitize(
        args.text,
        args.keep_stopwords,
        language=config.language,
        limit=config.keyword_limit,
    )
    if slug is None:
        print("Error: text does not produce a permalink", file=sys.stderr)
        raise SystemExit(1)
    print(slug)


def run_dispatch(args: argparse.Namespace) -> None:
    async def main() -> None:
        async with Database(args.db) as db:
            result = await PermalinkRegistry(db).dispatch(args.path, dict(args.scope) or None)
        print(f"found: {result.found}")
        print(f"redirect: {result.redirect}")
        print(f"redirect_path: {result.redirect_path or '-'}")
        for part, entry in zip(result.parts, result.objects, strict=True):
            print(f"  {part} -> {_describe(entry) if entry else 'unresolved'}")

    _run(main)


def run_history(args: argparse.Namespace) -> None:
    async def main() -> None:
        async with Database(args.db) as db:
            registry = PermalinkRegistry(db)
            query = registry.for_owner(OwnerIdentity(args.kind, args.id)).oldest_first()
            entries = await registry.fetch(query)
        if not entries:
            print(f"No permalinks for {args.kind}#{args.id}")
            return
        for entry in entries:
            print(_describe(entry))

    _run(main)
