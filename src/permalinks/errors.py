"""Permalinks exception hierarchy.

Shared by every permalinks module, so all of them raise and catch the
same types.
"""


class PermalinkError(Exception):
    """Base for all permalinks-specific errors."""


class ConfigurationError(PermalinkError):
    """Raised when permalinks are wired up incorrectly.

    Typically an owner type bound without the attributes that feed its
    slug. An integration bug, not a data error.
    """


class ValidationError(PermalinkError):
    """Raised when an entry cannot be stored as given.

    For example a blank value or a scope value that resolves to nothing.
    """


class PathError(PermalinkError):
    """Raised when the dispatcher is given a path that is not absolute."""


class ConflictError(PermalinkError):
    """Raised when a slug kept colliding with concurrent writers.

    The registry retries the increment a bounded number of times before
    giving up; callers may retry the whole operation.
    """

    def __init__(self, value: str, attempts: int) -> None:
        self.value = value
        self.attempts = attempts
        super().__init__(f"Permalink {value!r} is still taken after {attempts} attempt(s)")
