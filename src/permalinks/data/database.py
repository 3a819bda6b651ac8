"""Typed async database access over SQLite.

SQL in, frozen dataclasses out. Blocking ``sqlite3`` calls run in anyio
worker threads; the single connection is serialized with an ``anyio.Lock``.

Connection URL format::

    sqlite:///path/to/db.sqlite    # SQLite file
    sqlite:///:memory:             # In-memory SQLite

Every statement goes through ``Database._run``, which picks the
connection, maps driver errors, and times the statement for ``echo``.
"""

from __future__ import annotations

import sqlite3
import sys
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, TypeVar, overload

import anyio

from permalinks.data._mapping import map_row, map_rows
from permalinks.data._sqlite import AsyncConnection, Result, connect
from permalinks.data.errors import DataError, IntegrityError, QueryError

T = TypeVar("T")

_SQLITE_PREFIXES = ("sqlite:///", "sqlite://")

# Connection owned by the transaction() running in this task.
_transaction_conn: ContextVar[AsyncConnection] = ContextVar("permalinks_transaction")


def _sqlite_path(url: str) -> str:
    """``sqlite:///data/app.db`` -> ``data/app.db``; ``sqlite:///:memory:`` -> ``:memory:``."""
    for prefix in _SQLITE_PREFIXES:
        if url.startswith(prefix):
            return url[len(prefix) :]
    msg = f"Unsupported database URL scheme: {url!r}. Supported: sqlite:///path"
    raise DataError(msg)


def _query_error(exc: sqlite3.Error) -> QueryError:
    if isinstance(exc, sqlite3.IntegrityError):
        return IntegrityError(str(exc))
    return QueryError(str(exc))


class Database:
    """Typed async database access.

    Usage::

        db = Database("sqlite:///permalinks.db")

        rows = await db.fetch(Row, "SELECT * FROM permalinks WHERE value = ?", "hey-joe")
        count = await db.fetch_val("SELECT COUNT(*) FROM permalinks")

        async with db.transaction():
            await db.execute("UPDATE permalinks SET is_current = ? WHERE id = ?", False, 1)
            await db.execute("DELETE FROM permalinks WHERE id = ?", 2)

    Constraint violations raise ``IntegrityError``; every other driver
    failure raises ``QueryError``. ``echo=True`` prints each statement with
    its timing to stderr.
    """

    __slots__ = ("_conn", "_echo", "_lifecycle", "_lock", "_path", "_url")

    def __init__(self, url: str, /, *, echo: bool = False) -> None:
        self._url = url
        self._path = _sqlite_path(url)
        self._echo = echo
        # Both locks need a running event loop, so they are created on first use.
        self._lifecycle: anyio.Lock | None = None
        self._lock: anyio.Lock | None = None
        self._conn: AsyncConnection | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def connected(self) -> bool:
        return self._conn is not None

    # -- Lifecycle --

    async def connect(self) -> None:
        """Open the connection. Called automatically by the first statement."""
        if self._conn is not None:
            return
        async with self._get_lifecycle_lock():
            if self._conn is None:
                self._conn = await connect(self._path)

    async def disconnect(self) -> None:
        async with self._get_lifecycle_lock():
            conn, self._conn = self._conn, None
        if conn is not None:
            await conn.close()

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.disconnect()

    # -- Connection handling --

    def _get_lifecycle_lock(self) -> anyio.Lock:
        if self._lifecycle is None:
            self._lifecycle = anyio.Lock()
        return self._lifecycle

    def _get_lock(self) -> anyio.Lock:
        if self._lock is None:
            self._lock = anyio.Lock()
        return self._lock

    async def _opened(self) -> AsyncConnection:
        await self.connect()
        if self._conn is None:
            msg = f"Database {self._url!r} was disconnected"
            raise DataError(msg)
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Run the enclosed statements atomically.

        Commits on clean exit, rolls back on any exception. Statements
        inside the block run on the transaction's connection; a nested
        ``transaction()`` joins the outer one.
        """
        if _transaction_conn.get(None) is not None:
            yield
            return

        conn = await self._opened()
        async with self._get_lock():
            token = _transaction_conn.set(conn)
            conn.begin()
            try:
                yield
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise
            finally:
                conn.end()
                _transaction_conn.reset(token)

    async def _run(self, sql: str, params: tuple[Any, ...]) -> Result:
        started = time.perf_counter()
        try:
            conn = _transaction_conn.get(None)
            if conn is not None:
                return await conn.execute(sql, params)
            conn = await self._opened()
            async with self._get_lock():
                return await conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise _query_error(exc) from exc
        finally:
            self._echo_statement(sql, params, time.perf_counter() - started)

    def _echo_statement(self, sql: str, params: tuple[Any, ...], elapsed: float) -> None:
        if not self._echo:
            return
        shown = f"  params={params!r}" if params else ""
        print(f"[permalinks.data] {elapsed * 1000:6.1f}ms  {sql}{shown}", file=sys.stderr)

    # -- Queries --

    async def fetch(self, cls: type[T], sql: str, /, *params: Any) -> list[T]:
        """All rows as ``cls`` instances."""
        result = await self._run(sql, params)
        return map_rows(cls, result.records())

    async def fetch_one(self, cls: type[T], sql: str, /, *params: Any) -> T | None:
        """The first row as a ``cls`` instance, or ``None``."""
        records = (await self._run(sql, params)).records()
        return map_row(cls, records[0]) if records else None

    @overload
    async def fetch_val(self, sql: str, /, *params: Any) -> Any: ...
    @overload
    async def fetch_val(self, sql: str, /, *params: Any, as_type: type[T]) -> T | None: ...

    async def fetch_val(self, sql: str, /, *params: Any, as_type: type | None = None) -> Any:
        """First column of the first row (``COUNT``, ``MAX``, ...)."""
        result = await self._run(sql, params)
        if not result.rows:
            return None
        value = result.rows[0][0]
        if as_type is not None and value is not None:
            return as_type(value)
        return value

    async def execute(self, sql: str, /, *params: Any) -> int:
        """Run an INSERT/UPDATE/DELETE and return the number of affected rows."""
        return (await self._run(sql, params)).rowcount

    async def execute_script(self, sql: str, /) -> None:
        """Run several statements at once (migrations). Not transactional."""
        started = time.perf_counter()
        conn = await self._opened()
        try:
            async with self._get_lock():
                await conn.executescript(sql)
        except sqlite3.Error as exc:
            raise _query_error(exc) from exc
        finally:
            self._echo_statement(sql, (), time.perf_counter() - started)
