"""Forward-only SQL migrations.

A migration is a ``NNN_description.sql`` file; versions are applied in
ascending order and recorded in ``_permalinks_migrations``. Nothing is ever
rolled back: a failing migration stops the run and later ones stay pending.

Usage::

    from permalinks.data import Database, migrate

    db = Database("sqlite:///permalinks.db")
    result = await migrate(db, "migrations/")
    print(result.summary)

``PermalinkRegistry.setup()`` applies the schema shipped with the package.
"""

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from permalinks.data.database import Database
from permalinks.data.errors import MigrationError

_FILENAME = re.compile(r"^(?P<version>\d+)_(?P<label>.+)\.sql$")

_TRACKING_TABLE = "_permalinks_migrations"


@dataclass(frozen=True, slots=True)
class Migration:
    version: int
    name: str
    sql: str


@dataclass(frozen=True, slots=True)
class MigrationResult:
    """What a ``migrate`` run did."""

    applied: list[str]
    already_applied: int
    total_available: int

    @property
    def summary(self) -> str:
        if not self.applied:
            return f"Already up to date ({self.already_applied} migrations applied)"
        return f"Applied {len(self.applied)} migration(s): {', '.join(self.applied)}"


@dataclass(frozen=True, slots=True)
class _Applied:
    version: int


def _parse(sql_file: Path) -> Migration:
    match = _FILENAME.match(sql_file.name)
    if match is None:
        msg = f"Invalid migration filename: {sql_file.name} (expected NNN_description.sql)"
        raise MigrationError(msg)
    sql = sql_file.read_text(encoding="utf-8").strip()
    if not sql:
        msg = f"Empty migration file: {sql_file.name}"
        raise MigrationError(msg)
    return Migration(version=int(match["version"]), name=sql_file.stem, sql=sql)


def discover_migrations(directory: str | Path) -> list[Migration]:
    """Migrations in ``directory``, sorted by version.

    Raises:
        MigrationError: Missing directory, bad filename, empty file, or
            two files with the same version.
    """
    path = Path(directory)
    if not path.is_dir():
        msg = f"Migration directory does not exist: {path}"
        raise MigrationError(msg)

    by_version: dict[int, Migration] = {}
    for sql_file in path.glob("*.sql"):
        migration = _parse(sql_file)
        if migration.version in by_version:
            other = by_version[migration.version].name
            msg = f"Duplicate migration version {migration.version}: {other} and {migration.name}"
            raise MigrationError(msg)
        by_version[migration.version] = migration
    return [by_version[v] for v in sorted(by_version)]


async def _applied_versions(db: Database) -> set[int]:
    await db.execute(
        f"CREATE TABLE IF NOT EXISTS {_TRACKING_TABLE} ("
        "version INTEGER PRIMARY KEY, name TEXT NOT NULL, applied_at TEXT NOT NULL)"
    )
    rows = await db.fetch(_Applied, f"SELECT version FROM {_TRACKING_TABLE}")
    return {row.version for row in rows}


async def migrate(db: Database, directory: str | Path) -> MigrationResult:
    """Apply the pending migrations from ``directory``.

    Raises:
        MigrationError: If discovery fails or a migration cannot be applied.
    """
    migrations = discover_migrations(directory)
    done = await _applied_versions(db)

    applied: list[str] = []
    for migration in (m for m in migrations if m.version not in done):
        try:
            await db.execute_script(migration.sql)
            await db.execute(
                f"INSERT INTO {_TRACKING_TABLE} (version, name, applied_at) VALUES (?, ?, ?)",
                migration.version,
                migration.name,
                datetime.now(UTC).isoformat(),
            )
        except Exception as exc:
            msg = f"Migration {migration.name} failed: {exc}"
            raise MigrationError(msg) from exc
        applied.append(migration.name)

    return MigrationResult(
        applied=applied,
        already_applied=len(done),
        total_available=len(migrations),
    )
