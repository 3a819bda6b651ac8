"""Permalinks — unique, historied URL slugs and path dispatching.

Turns free text into slugs that are unique within a scope, remembers every
slug an owner ever had, and resolves request paths back into owners while
detecting stale slugs that should redirect.

Basic usage::

    from permalinks import Database, OwnerIdentity, PermalinkRegistry

    registry = PermalinkRegistry(Database("sqlite:///permalinks.db"))
    await registry.setup()

    asset = OwnerIdentity("Asset", "1")
    await registry.create(asset, "Pretty")
    await registry.create(asset, "New")

    result = await registry.dispatch("/pretty")
    result.found, result.redirect, result.redirect_path  # True, True, "/new"
"""

__version__ = "0.1.0"
__all__ = [
    "ConfigurationError",
    "ConflictError",
    "Database",
    "DispatchResult",
    "Dispatcher",
    "LinkableConfig",
    "OwnerIdentity",
    "PathError",
    "PermalinkBinding",
    "PermalinkConfig",
    "PermalinkEntry",
    "PermalinkError",
    "PermalinkQuery",
    "PermalinkRegistry",
    "StopwordExtractor",
    "ValidationError",
    "sanitize",
    "scope_list",
]

_ERRORS = frozenset(
    {"ConfigurationError", "ConflictError", "PathError", "PermalinkError", "ValidationError"}
)


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import permalinks`` fast while providing a clean top-level API.
    """
    if name in _ERRORS:
        from permalinks import errors

        return getattr(errors, name)

    if name == "Database":
        from permalinks.data import Database

        return Database

    if name in ("Dispatcher", "DispatchResult"):
        from permalinks import dispatcher

        return getattr(dispatcher, name)

    if name in ("OwnerIdentity", "PermalinkEntry"):
        from permalinks import entry

        return getattr(entry, name)

    if name in ("LinkableConfig", "PermalinkBinding"):
        from permalinks import linkable

        return getattr(linkable, name)

    if name == "PermalinkConfig":
        from permalinks.config import PermalinkConfig

        return PermalinkConfig

    if name == "PermalinkQuery":
        from permalinks.store import PermalinkQuery

        return PermalinkQuery

    if name == "PermalinkRegistry":
        from permalinks.registry import PermalinkRegistry

        return PermalinkRegistry

    if name == "StopwordExtractor":
        from permalinks.keywords import StopwordExtractor

        return StopwordExtractor

    if name == "sanitize":
        from permalinks.slugs import sanitize

        return sanitize

    if name == "scope_list":
        from permalinks.scope import scope_list

        return scope_list

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
