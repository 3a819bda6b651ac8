"""Request path dispatching.

Maps every segment of a path to the permalink entry holding that slug and
tells whether the client used a stale slug::

    result = await Dispatcher("/something/pretty").resolve(registry)
    result.objects        # (category_entry, asset_entry)
    result.found          # True
    result.redirect       # True if "pretty" is no longer the asset's current slug
    result.redirect_path  # "/something/new"

Resolution is read-only: one batched query for all segments, plus one
current-entry lookup per stale segment when redirecting.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

import anyio

from permalinks.entry import OwnerIdentity, PermalinkEntry
from permalinks.errors import PathError
from permalinks.scope import Scope
from permalinks.store import PermalinkQuery

if TYPE_CHECKING:
    from permalinks.registry import PermalinkRegistry

logger = logging.getLogger("permalinks.dispatcher")

_EXTENSION = re.compile(r"\.[^/.]*$")


def split_path(path: str) -> tuple[str, ...]:
    """Path segments without query string, fragment, or file extension.

    ::

        split_path("/something//pretty.html?page=2")  # ("something", "pretty")
    """
    path = path.split("?", 1)[0].split("#", 1)[0]
    path = _EXTENSION.sub("", path)
    return tuple(part for part in path.split("/") if part)


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """Outcome of resolving one path.

    ``objects`` has one slot per path segment, ``None`` where a segment did
    not resolve. ``redirect`` is ``None`` unless every segment resolved;
    ``redirect_path`` is ``None`` unless a redirect is needed.
    """

    path: str
    parts: tuple[str, ...]
    objects: tuple[PermalinkEntry | None, ...]
    found: bool
    redirect: bool | None = None
    redirect_path: str | None = None


class Dispatcher:
    """Resolves an absolute request path into permalink entries.

    ``scope`` restricts resolution to entries of one scope; without it,
    entries of every scope are considered.
    """

    __slots__ = ("_parts", "_path", "scope")

    def __init__(self, path: str, *, scope: Scope | None = None) -> None:
        self._path = ""
        self._parts: tuple[str, ...] | None = None
        self.path = path
        self.scope = scope

    @property
    def path(self) -> str:
        return self._path

    @path.setter
    def path(self, value: str) -> None:
        if not isinstance(value, str) or not value.startswith("/"):
            msg = f"Path must be absolute, got {value!r}"
            raise PathError(msg)
        self._path = value
        self._parts = None

    @property
    def parts(self) -> tuple[str, ...]:
        if self._parts is None:
            self._parts = split_path(self._path)
        return self._parts

    async def resolve(self, registry: PermalinkRegistry) -> DispatchResult:
        parts = self.parts
        query = (
            PermalinkQuery()
            .with_values(parts)
            .for_scope(self.scope)
            .order_by("id ASC")
        )
        matches = await registry.fetch(query)
        objects = _place(parts, matches)

        found = None not in objects
        if not found:
            logger.debug("Unresolved segments in %r", self._path)
            return DispatchResult(path=self._path, parts=parts, objects=objects, found=False)

        resolved = [entry for entry in objects if entry is not None]
        redirect = any(not entry.is_current for entry in resolved)
        redirect_path = None
        if redirect:
            redirect_path = "/" + "/".join(await _current_values(registry, resolved))
            logger.debug("Redirecting %r to %r", self._path, redirect_path)

        return DispatchResult(
            path=self._path,
            parts=parts,
            objects=objects,
            found=True,
            redirect=redirect,
            redirect_path=redirect_path,
        )


def _place(
    parts: tuple[str, ...], matches: list[PermalinkEntry]
) -> tuple[PermalinkEntry | None, ...]:
    """Fill slots in segment order, each owner and each slug text at most once.

    A segment takes the first match (by id) with its value whose owner has
    no slot yet. A segment repeating an already claimed value stays empty.
    """
    slots: list[PermalinkEntry | None] = [None] * len(parts)
    owners: set[OwnerIdentity | None] = set()
    values: set[str] = set()
    for i, part in enumerate(parts):
        if part in values:
            continue
        for match in matches:
            if match.value == part and match.owner not in owners:
                slots[i] = match
                owners.add(match.owner)
                values.add(part)
                break
    return tuple(slots)


async def _current_values(registry: PermalinkRegistry, entries: list[PermalinkEntry]) -> list[str]:
    """Current slug per entry, looked up concurrently for the stale ones.

    An owner without a current entry keeps the requested slug.
    """
    values = [entry.value for entry in entries]

    async def lookup(index: int, entry: PermalinkEntry) -> None:
        current = await registry.current_for(entry)
        if current is None:
            logger.warning("No current permalink for %s, keeping %r", entry.owner, entry.value)
            return
        values[index] = current.value

    async with anyio.create_task_group() as tg:
        for index, entry in enumerate(entries):
            if not entry.is_current:
                tg.start_soon(lookup, index, entry)
    return values
