"""Permalink entries and owner references.

Both are frozen dataclasses. Changing an entry means building a copy with
``dataclasses.replace``; the registry hands back the copy it stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from permalinks.scope import scope_key


@dataclass(frozen=True, slots=True)
class OwnerIdentity:
    """Reference to the entity a permalink points at.

    A back-reference only: entries never own or load their owner.
    ``id`` is always stored as a string.
    """

    kind: str
    id: str

    def __post_init__(self) -> None:
        if not isinstance(self.id, str):
            object.__setattr__(self, "id", str(self.id))

    @classmethod
    def of(cls, obj: Any) -> OwnerIdentity:
        """Identity of an owner object.

        Uses ``obj.permalink_identity`` when the object provides one,
        otherwise its class name and ``obj.id``.
        """
        if isinstance(obj, OwnerIdentity):
            return obj
        identity = getattr(obj, "permalink_identity", None)
        if isinstance(identity, OwnerIdentity):
            return identity
        return cls(kind=type(obj).__name__, id=str(obj.id))

    def __str__(self) -> str:
        return f"{self.kind}#{self.id}"


class OwnerResolver(Protocol):
    """Loads owner objects for entries. Supplied by the integration."""

    async def find(self, kind: str, id: str) -> Any | None: ...


@dataclass(frozen=True, slots=True)
class PermalinkEntry:
    """One slug of one owner within one scope.

    ``persisted_value`` is the value as last read from or written to the
    store and ``source`` the raw text last assigned. Neither takes part in
    equality.
    """

    value: str
    owner: OwnerIdentity | None = None
    scope: tuple[str, ...] = ()
    is_current: bool = True
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    persisted_value: str | None = field(default=None, compare=False, repr=False)
    source: str | None = field(default=None, compare=False, repr=False)

    @property
    def is_new(self) -> bool:
        return self.id is None

    @property
    def scope_key(self) -> str:
        return scope_key(self.scope)
