"""Typed async database access for permalinks.

SQL in, frozen dataclasses out. Not an ORM.

Basic usage::

    from permalinks.data import Database

    db = Database("sqlite:///permalinks.db")

    @dataclass(frozen=True, slots=True)
    class Slug:
        id: int
        value: str

    slugs = await db.fetch(Slug, "SELECT id, value FROM permalinks WHERE is_current = ?", True)
"""

from permalinks.data.database import Database
from permalinks.data.errors import DataError, IntegrityError, MigrationError, QueryError
from permalinks.data.migrate import MigrationResult, migrate

__all__ = [
    "DataError",
    "Database",
    "IntegrityError",
    "MigrationError",
    "MigrationResult",
    "QueryError",
    "migrate",
]
