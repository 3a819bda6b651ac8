"""Stdlib ``sqlite3`` driven from async code through anyio worker threads.

Each statement costs one thread hop: execute, drain the cursor, and return
a ``Result``. Draining eagerly is what ``INSERT ... RETURNING`` needs, and
permalink queries never stream large result sets.

The connection is opened with ``autocommit=True`` (Python 3.12+), so single
statements commit on their own; ``begin()`` switches to manual mode for the
duration of a transaction. ``check_same_thread=False`` lets any worker
thread use it; callers serialize access.

A ``REGEXP`` function is registered so value patterns such as
``^hey-joe(-\\d+)?$`` can be matched inside SQL.
"""

import re
import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import anyio


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def regexp(pattern: str, value: str | None) -> bool:
    """SQLite ``REGEXP`` implementation: ``value REGEXP pattern``."""
    if value is None:
        return False
    return _compile(pattern).search(value) is not None


@dataclass(frozen=True, slots=True)
class Result:
    """Everything a statement produced, read in the worker thread."""

    columns: tuple[str, ...]
    rows: list[tuple[Any, ...]]
    rowcount: int

    def records(self) -> list[dict[str, Any]]:
        return [dict(zip(self.columns, row, strict=True)) for row in self.rows]


class AsyncConnection:
    """One ``sqlite3.Connection`` used from async code."""

    __slots__ = ("_conn",)

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def begin(self) -> None:
        # Leaving autocommit mode opens a transaction implicitly.
        self._conn.autocommit = False

    def end(self) -> None:
        self._conn.autocommit = True

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> Result:
        def run() -> Result:
            cursor = self._conn.execute(sql, params)
            rows = cursor.fetchall()
            columns = tuple(desc[0] for desc in cursor.description or ())
            return Result(columns=columns, rows=rows, rowcount=cursor.rowcount)

        return await anyio.to_thread.run_sync(run)

    async def executescript(self, sql: str) -> None:
        """Run several statements. Commits any pending transaction first."""
        await anyio.to_thread.run_sync(self._conn.executescript, sql)

    async def commit(self) -> None:
        await anyio.to_thread.run_sync(self._conn.commit)

    async def rollback(self) -> None:
        await anyio.to_thread.run_sync(self._conn.rollback)

    async def close(self) -> None:
        await anyio.to_thread.run_sync(self._conn.close)


async def connect(path: str) -> AsyncConnection:
    """Open a connection with ``REGEXP`` registered and WAL journaling."""

    def open_() -> sqlite3.Connection:
        conn = sqlite3.connect(path, autocommit=True, check_same_thread=False)
        conn.create_function("REGEXP", 2, regexp, deterministic=True)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    return AsyncConnection(await anyio.to_thread.run_sync(open_))
