"""Permalink persistence: an immutable filter builder and the repository.

``PermalinkQuery`` accumulates WHERE clauses through chaining methods and
compiles to SQL + parameters, the same way for SELECT, UPDATE, and DELETE.
Every method returns a new frozen query and never mutates the original,
so queries compose freely::

    query = (
        PermalinkQuery()
        .for_owner(OwnerIdentity("Asset", "1"))
        .for_scope({"realm": "rugby"})
        .current()
    )
    query.sql  # SELECT * FROM permalinks WHERE linkable_type = ? AND ...

``PermalinkStore`` runs queries against a ``Database`` and converts rows
into ``PermalinkEntry`` objects.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import UTC, datetime

from permalinks.data import Database
from permalinks.entry import OwnerIdentity, PermalinkEntry
from permalinks.errors import ValidationError
from permalinks.scope import Scope, scope_key

TABLE = "permalinks"

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"


def format_timestamp(moment: datetime) -> str:
    """Fixed-width UTC text, so SQL ordering matches time ordering."""
    return moment.astimezone(UTC).strftime(_TIMESTAMP_FORMAT)


def parse_timestamp(text: str) -> datetime:
    return datetime.strptime(text, _TIMESTAMP_FORMAT)


def value_pattern(slug: str) -> str:
    """Regex matching ``slug`` bare or with a numeric suffix (``slug-3``)."""
    return rf"^{re.escape(slug)}(-\d+)?$"


@dataclass(frozen=True, slots=True)
class PermalinkRow:
    """Raw ``permalinks`` table row."""

    id: int
    value: str
    scope: str
    scope_key: str
    linkable_type: str
    linkable_id: str
    is_current: bool
    created_at: str
    updated_at: str

    def to_entry(self) -> PermalinkEntry:
        return PermalinkEntry(
            id=self.id,
            value=self.value,
            scope=tuple(json.loads(self.scope)),
            owner=OwnerIdentity(kind=self.linkable_type, id=self.linkable_id),
            is_current=self.is_current,
            created_at=parse_timestamp(self.created_at),
            updated_at=parse_timestamp(self.updated_at),
            persisted_value=self.value,
        )


@dataclass(frozen=True, slots=True)
class _Inserted:
    id: int


@dataclass(frozen=True, slots=True)
class PermalinkQuery:
    """Immutable filter over the ``permalinks`` table. Clauses are ANDed."""

    _wheres: tuple[tuple[str, tuple[object, ...]], ...] = ()
    _order: str | None = None
    _limit: int | None = None

    # ── Building ─────────────────────────────────────────────────────────

    def where(self, clause: str, /, *params: object) -> PermalinkQuery:
        """Add a raw WHERE clause."""
        return replace(self, _wheres=(*self._wheres, (clause, params)))

    def for_owner(self, owner: OwnerIdentity) -> PermalinkQuery:
        return self.where("linkable_type = ? AND linkable_id = ?", owner.kind, owner.id)

    def for_scope(self, scope: Scope | None) -> PermalinkQuery:
        """Restrict to one scope. ``None`` leaves the query unrestricted.

        An empty scope (``{}`` or ``()``) selects unscoped entries only.
        """
        if scope is None:
            return self
        return self.where("scope_key = ?", scope_key(scope))

    def matching(self, *slugs: str) -> PermalinkQuery:
        """Values equal to any of ``slugs``, bare or numbered."""
        if not slugs:
            return self.where("0")
        clause = " OR ".join("value REGEXP ?" for _ in slugs)
        return self.where(f"({clause})", *(value_pattern(s) for s in slugs))

    def with_values(self, values: Iterable[str]) -> PermalinkQuery:
        """Values exactly in ``values``."""
        values = list(dict.fromkeys(values))
        if not values:
            return self.where("0")
        placeholders = ", ".join("?" for _ in values)
        return self.where(f"value IN ({placeholders})", *values)

    def excluding(self, entry_id: int | None) -> PermalinkQuery:
        if entry_id is None:
            return self
        return self.where("id != ?", entry_id)

    def current(self, flag: bool = True) -> PermalinkQuery:
        return self.where("is_current = ?", flag)

    def order_by(self, clause: str) -> PermalinkQuery:
        """Set ORDER BY. Replaces any previous ordering."""
        return replace(self, _order=clause)

    def take(self, n: int) -> PermalinkQuery:
        return replace(self, _limit=n)

    def oldest_first(self) -> PermalinkQuery:
        return self.order_by("updated_at ASC, id ASC")

    def latest(self) -> PermalinkQuery:
        """The most recently updated match only."""
        return self.order_by("updated_at DESC, id DESC").take(1)

    # ── Compilation ──────────────────────────────────────────────────────

    @property
    def where_sql(self) -> str:
        if not self._wheres:
            return ""
        return " WHERE " + " AND ".join(w[0] for w in self._wheres)

    @property
    def sql(self) -> str:
        """The exact SELECT that will run."""
        sql = f"SELECT * FROM {TABLE}{self.where_sql}"
        if self._order:
            sql += f" ORDER BY {self._order}"
        if self._limit is not None:
            sql += f" LIMIT {self._limit}"
        return sql

    @property
    def params(self) -> tuple[object, ...]:
        """The bound parameters, in order."""
        result: list[object] = []
        for _, p in self._wheres:
            result.extend(p)
        return tuple(result)


def _owner(entry: PermalinkEntry) -> OwnerIdentity:
    if entry.owner is None:
        msg = "Permalink entry has no owner"
        raise ValidationError(msg)
    return entry.owner


class PermalinkStore:
    """Repository of permalink entries over a ``Database``."""

    __slots__ = ("_db",)

    def __init__(self, db: Database) -> None:
        self._db = db

    # -- Reads --

    async def fetch(self, query: PermalinkQuery) -> list[PermalinkEntry]:
        rows = await self._db.fetch(PermalinkRow, query.sql, *query.params)
        return [row.to_entry() for row in rows]

    async def fetch_one(self, query: PermalinkQuery) -> PermalinkEntry | None:
        row = await self._db.fetch_one(PermalinkRow, query.take(1).sql, *query.params)
        return row.to_entry() if row else None

    async def count(self, query: PermalinkQuery) -> int:
        sql = f"SELECT COUNT(*) FROM {TABLE}{query.where_sql}"
        return await self._db.fetch_val(sql, *query.params, as_type=int) or 0

    async def get(self, entry_id: int) -> PermalinkEntry | None:
        return await self.fetch_one(PermalinkQuery().where("id = ?", entry_id))

    # -- Writes --

    async def insert(self, entry: PermalinkEntry, now: datetime) -> PermalinkEntry:
        owner = _owner(entry)
        stamp = format_timestamp(now)
        rows = await self._db.fetch(
            _Inserted,
            f"INSERT INTO {TABLE} "
            "(value, scope, scope_key, linkable_type, linkable_id, is_current, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?) RETURNING id",
            entry.value,
            json.dumps(list(entry.scope)),
            entry.scope_key,
            owner.kind,
            owner.id,
            entry.is_current,
            stamp,
            stamp,
        )
        return replace(
            entry,
            id=rows[0].id,
            created_at=parse_timestamp(stamp),
            updated_at=parse_timestamp(stamp),
            persisted_value=entry.value,
        )

    async def update(self, entry: PermalinkEntry, now: datetime) -> PermalinkEntry:
        owner = _owner(entry)
        stamp = format_timestamp(now)
        await self._db.execute(
            f"UPDATE {TABLE} SET value = ?, scope = ?, scope_key = ?, linkable_type = ?, "
            "linkable_id = ?, is_current = ?, updated_at = ? WHERE id = ?",
            entry.value,
            json.dumps(list(entry.scope)),
            entry.scope_key,
            owner.kind,
            owner.id,
            entry.is_current,
            stamp,
            entry.id,
        )
        return replace(entry, updated_at=parse_timestamp(stamp), persisted_value=entry.value)

    async def set_current(self, query: PermalinkQuery, flag: bool) -> int:
        """Set ``is_current`` on every match without touching ``updated_at``."""
        return await self._db.execute(
            f"UPDATE {TABLE} SET is_current = ?{query.where_sql}", flag, *query.params
        )

    async def delete(self, query: PermalinkQuery) -> int:
        return await self._db.execute(f"DELETE FROM {TABLE}{query.where_sql}", *query.params)
