"""Permalink registry: slug assignment, incrementing, and current tracking.

The registry turns free text into a slug that is unique within its scope,
stores it for an owner, and keeps exactly one entry per owner and scope
marked as current.

Usage::

    db = Database("sqlite:///permalinks.db")
    registry = PermalinkRegistry(db)
    await registry.setup()

    owner = OwnerIdentity("Article", "42")
    first = await registry.create(owner, "Hey Joe!")         # "hey-joe"
    other = await registry.create(owner, "Hey Joe!")         # "hey-joe-2"

    result = await registry.dispatch("/hey-joe")
    result.redirect_path                                     # "/hey-joe-2"

Uniqueness is enforced by the store's ``(scope, value)`` index. Computing
the next free number and writing it are two steps, so a concurrent writer
can take the number first; the losing save rolls back, recomputes against
fresh data and tries again, at most ``config.max_retries`` times.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from permalinks.config import PermalinkConfig
from permalinks.data import Database, IntegrityError, MigrationResult, migrate
from permalinks.dispatcher import DispatchResult, Dispatcher
from permalinks.entry import OwnerIdentity, OwnerResolver, PermalinkEntry
from permalinks.errors import ConfigurationError, ConflictError, ValidationError
from permalinks.keywords import KeywordExtractor, StopwordExtractor
from permalinks.scope import Scope, scope_list
from permalinks.slugs import is_blank, remove_stopwords, sanitize, to_slug
from permalinks.store import PermalinkQuery, PermalinkStore

logger = logging.getLogger("permalinks.registry")

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PermalinkRegistry:
    """Assigns, stores, and looks up permalink entries.

    All collaborators are injected: the database, an optional keyword
    extractor, an optional owner resolver, and a clock.
    """

    __slots__ = ("_clock", "_config", "_db", "_extractor", "_resolver", "_store")

    def __init__(
        self,
        db: Database,
        /,
        *,
        config: PermalinkConfig | None = None,
        extractor: KeywordExtractor | None = None,
        resolver: OwnerResolver | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._db = db
        self._config = config or PermalinkConfig()
        self._extractor = extractor or StopwordExtractor()
        self._resolver = resolver
        self._clock = clock or _utcnow
        self._store = PermalinkStore(db)

    @property
    def config(self) -> PermalinkConfig:
        return self._config

    @property
    def store(self) -> PermalinkStore:
        return self._store

    async def setup(self) -> MigrationResult:
        """Create or upgrade the ``permalinks`` table."""
        return await migrate(self._db, MIGRATIONS_DIR)

    # -- Sanitizing --

    def sanitize(self, text: str | None, keep_stopwords: bool = False) -> str | None:
        """Slug for ``text`` without looking at stored entries."""
        return sanitize(
            text,
            keep_stopwords,
            extractor=self._extractor,
            language=self._config.language,
            limit=self._config.keyword_limit,
        )

    async def _existing(
        self, entry: PermalinkEntry, slug: str, cache: dict[str, list[PermalinkEntry]]
    ) -> list[PermalinkEntry]:
        """Other entries in the entry's scope holding ``slug`` or ``slug-N``."""
        if slug not in cache:
            query = (
                PermalinkQuery()
                .for_scope(entry.scope)
                .matching(slug)
                .excluding(entry.id)
            )
            cache[slug] = await self._store.fetch(query)
        return cache[slug]

    async def _sanitize_in_scope(
        self, entry: PermalinkEntry, text: str, cache: dict[str, list[PermalinkEntry]]
    ) -> str | None:
        """Prefer the stopword-free slug unless another entry already uses it."""
        full = to_slug(text) or None
        reduced = to_slug(
            remove_stopwords(
                text,
                self._extractor,
                language=self._config.language,
                limit=self._config.keyword_limit,
            )
        )
        if not reduced or reduced == full:
            return full
        existing = await self._existing(entry, reduced, cache)
        if any(e.value == reduced for e in existing):
            return full
        return reduced

    @staticmethod
    def _increment(slug: str, existing: list[PermalinkEntry]) -> str:
        """``slug`` if free, else ``slug-N`` with the smallest free N >= 2."""
        taken = {e.value for e in existing}
        if slug not in taken:
            return slug
        number = 2
        while f"{slug}-{number}" in taken:
            number += 1
        return f"{slug}-{number}"

    # -- Assignment --

    async def assign_value(self, entry: PermalinkEntry, text: str) -> PermalinkEntry:
        """Return ``entry`` with a slug derived from ``text``.

        A stored entry whose text still produces its stored value is
        returned unchanged; anything else is incremented against the other
        entries of the same scope.

        Raises:
            ValidationError: If ``text`` is blank or yields no slug.
        """
        if is_blank(text):
            msg = "Permalink text must not be blank"
            raise ValidationError(msg)
        cache: dict[str, list[PermalinkEntry]] = {}
        candidate = await self._sanitize_in_scope(entry, text, cache)
        if candidate is None:
            msg = f"{text!r} does not produce a permalink"
            raise ValidationError(msg)
        if not entry.is_new and candidate == entry.persisted_value:
            return replace(entry, value=candidate, source=text)

        value = self._increment(candidate, await self._existing(entry, candidate, cache))
        if value != candidate:
            logger.debug("Incremented %r to %r in scope %r", candidate, value, entry.scope)
        return replace(entry, value=value, source=text)

    async def build(
        self, owner: OwnerIdentity, text: str, scope: Scope | None = None
    ) -> PermalinkEntry:
        """A new, unsaved, current entry for ``owner``."""
        entry = PermalinkEntry(value="", owner=owner, scope=scope_list(scope))
        return await self.assign_value(entry, text)

    @staticmethod
    def mark_current(entry: PermalinkEntry) -> PermalinkEntry:
        """Flag ``entry`` as current. Siblings are demoted when it is saved."""
        return replace(entry, is_current=True)

    # -- Persistence --

    def _validate(self, entry: PermalinkEntry) -> None:
        if is_blank(entry.value):
            msg = "Permalink value must not be blank"
            raise ValidationError(msg)
        if entry.owner is None:
            msg = f"Permalink {entry.value!r} has no owner"
            raise ValidationError(msg)

    @staticmethod
    def _siblings(owner: OwnerIdentity, entry: PermalinkEntry) -> PermalinkQuery:
        return (
            PermalinkQuery()
            .for_owner(owner)
            .for_scope(entry.scope)
            .excluding(entry.id)
        )

    async def save(self, entry: PermalinkEntry) -> PermalinkEntry:
        """Insert or update ``entry`` and return the stored copy.

        When the entry is current, every other entry of the same owner and
        scope is demoted in the same transaction.

        Raises:
            ValidationError: If the value is blank or the owner missing.
            ConflictError: If the value stayed taken after all retries.
        """
        attempts = 0
        while True:
            self._validate(entry)
            now = self._clock()
            try:
                async with self._db.transaction():
                    if entry.is_new:
                        saved = await self._store.insert(entry, now)
                    else:
                        saved = await self._store.update(entry, now)
                    if saved.is_current and saved.owner is not None:
                        siblings = self._siblings(saved.owner, saved).current()
                        await self._store.set_current(siblings, False)
            except IntegrityError as exc:
                attempts += 1
                if entry.source is None or attempts > self._config.max_retries:
                    raise ConflictError(entry.value, attempts) from exc
                logger.warning(
                    "Permalink %r was taken concurrently, recomputing (attempt %d of %d)",
                    entry.value,
                    attempts,
                    self._config.max_retries,
                )
                entry = await self.assign_value(entry, entry.source)
                continue
            return saved

    async def create(
        self, owner: OwnerIdentity, text: str, scope: Scope | None = None
    ) -> PermalinkEntry:
        """Build and save a new current entry for ``owner``."""
        return await self.save(await self.build(owner, text, scope))

    async def delete(self, entry: PermalinkEntry) -> bool:
        """Delete ``entry``; returns ``False`` if it was already gone.

        If the deleted entry was current, the most recently updated entry
        left for the same owner and scope becomes current.
        """
        if entry.id is None:
            return False
        async with self._db.transaction():
            stored = await self._store.get(entry.id)
            if stored is None:
                return False
            await self._store.delete(PermalinkQuery().where("id = ?", stored.id))
            if stored.is_current and stored.owner is not None:
                await self._promote_latest(stored.owner, stored.scope)
        return True

    async def _promote_latest(self, owner: OwnerIdentity, scope: tuple[str, ...]) -> None:
        query = PermalinkQuery().for_owner(owner).for_scope(scope).latest()
        latest = await self._store.fetch_one(query)
        if latest is None:
            return
        await self._store.update(self.mark_current(latest), self._clock())
        logger.debug("Promoted %r to current for %s", latest.value, owner)

    async def delete_all_for_owner(self, owner: OwnerIdentity) -> int:
        """Delete every entry of a destroyed owner. Returns the number deleted."""
        return await self._store.delete(self.for_owner(owner))

    async def reload(self, entry: PermalinkEntry) -> PermalinkEntry | None:
        """Fresh copy of ``entry`` from the store, or ``None`` if deleted."""
        if entry.id is None:
            return None
        return await self._store.get(entry.id)

    # -- Lookups --

    async def current_for(self, entry: PermalinkEntry) -> PermalinkEntry | None:
        """The current entry of ``entry``'s owner within ``entry``'s scope."""
        if entry.owner is None:
            return None
        if entry.is_current:
            return entry
        return await self._store.fetch_one(self._siblings(entry.owner, entry).current())

    async def resolve_owner(self, entry: PermalinkEntry) -> Any | None:
        """Load the owner object through the configured resolver."""
        if entry.owner is None:
            return None
        if self._resolver is None:
            msg = "PermalinkRegistry was created without an owner resolver"
            raise ConfigurationError(msg)
        return await self._resolver.find(entry.owner.kind, entry.owner.id)

    def for_owner(self, owner: OwnerIdentity) -> PermalinkQuery:
        return PermalinkQuery().for_owner(owner)

    def for_value(self, text: str, do_sanitize: bool = True) -> PermalinkQuery:
        """Entries holding the slug of ``text``, bare or numbered.

        Sanitized lookups match both the stopword-free and the full slug.
        With ``do_sanitize=False`` the text is used as the slug verbatim.
        """
        if not do_sanitize:
            return PermalinkQuery().matching(text)
        slugs = dict.fromkeys([self.sanitize(text), self.sanitize(text, keep_stopwords=True)])
        return PermalinkQuery().matching(*(s for s in slugs if s))

    def for_scope(self, scope: Scope | None) -> PermalinkQuery:
        return PermalinkQuery().for_scope(scope)

    async def fetch(self, query: PermalinkQuery) -> list[PermalinkEntry]:
        return await self._store.fetch(query)

    async def fetch_one(self, query: PermalinkQuery) -> PermalinkEntry | None:
        return await self._store.fetch_one(query)

    async def count(self, query: PermalinkQuery | None = None) -> int:
        return await self._store.count(query or PermalinkQuery())

    # -- Dispatching --

    async def dispatch(self, path: str, scope: Scope | None = None) -> DispatchResult:
        """Resolve a request path into entries. See ``Dispatcher``."""
        return await Dispatcher(path, scope=scope).resolve(self)
