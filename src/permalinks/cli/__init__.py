"""Permalinks CLI — schema setup and slug inspection.

Entry point registered as ``permalinks`` in ``pyproject.toml``::

    [project.scripts]
    permalinks = "permalinks.cli:main"
"""

import argparse
import logging
import sys


def _scope_item(text: str) -> tuple[str, str]:
    key, sep, value = text.partition("=")
    if not sep or not key:
        msg = f"expected key=value, got {text!r}"
        raise argparse.ArgumentTypeError(msg)
    return key, value


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``permalinks`` command."""
    parser = argparse.ArgumentParser(
        prog="permalinks",
        description="Permalinks — unique, historied URL slugs and path dispatching.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log registry activity")
    subparsers = parser.add_subparsers(dest="command")

    # -- permalinks migrate -----------------------------------------------
    migrate_parser = subparsers.add_parser("migrate", help="Create or upgrade the permalinks table")
    migrate_parser.add_argument("--db", required=True, help="Database URL (sqlite:///path)")

    # -- permalinks sanitize ----------------------------------------------
    sanitize_parser = subparsers.add_parser("sanitize", help="Print the slug for a text")
    sanitize_parser.add_argument("text", help="Free text to turn into a slug")
    sanitize_parser.add_argument(
        "--keep-stopwords",
        action="store_true",
        help="Do not drop stopwords before slugifying",
    )
    sanitize_parser.add_argument("--language", default="en", help="Stopword language")

    # -- permalinks dispatch ----------------------------------------------
    dispatch_parser = subparsers.add_parser("dispatch", help="Resolve a request path")
    dispatch_parser.add_argument("path", help="Absolute request path (e.g. /something/pretty)")
    dispatch_parser.add_argument("--db", required=True, help="Database URL (sqlite:///path)")
    dispatch_parser.add_argument(
        "--scope",
        type=_scope_item,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Restrict resolution to a scope (repeatable)",
    )

    # -- permalinks history -----------------------------------------------
    history_parser = subparsers.add_parser("history", help="List the permalinks of an owner")
    history_parser.add_argument("kind", help="Owner type (e.g. Asset)")
    history_parser.add_argument("id", help="Owner id")
    history_parser.add_argument("--db", required=True, help="Database URL (sqlite:///path)")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    from permalinks.cli import _commands

    if args.command == "migrate":
        _commands.run_migrate(args)
    elif args.command == "sanitize":
        _commands.run_sanitize(args)
    elif args.command == "dispatch":
        _commands.run_dispatch(args)
    elif args.command == "history":
        _commands.run_history(args)
