"""Data layer error hierarchy."""

from permalinks.errors import PermalinkError


class DataError(PermalinkError):
    """Base for all permalinks.data errors."""


class QueryError(DataError):
    """Raised when a SQL statement fails."""


class IntegrityError(QueryError):
    """Raised when a statement violates a constraint (e.g. a unique index)."""


class MigrationError(DataError):
    """Raised when a migration cannot be discovered or applied."""
