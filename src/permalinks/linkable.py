"""Binding owner types to the registry.

An owner type declares which of its attributes feed the slug, the scope
its slugs live in, and whether slugs are stored at all::

    ARTICLES = LinkableConfig(
        attributes=("title",),
        scope={"site": lambda article: article.site_id},
    )
    articles = PermalinkBinding(registry, ARTICLES)

    # after the article was created or its title changed
    await articles.sync(article, changed={"title"})
    article.permalink  # "hey-joe"

    # when the article is deleted
    await articles.destroy(article)

Owners are plain objects with a writable ``permalink`` attribute and an
identity (see ``OwnerIdentity.of``). The binding never decides when to run;
the surrounding application calls it from its own save/delete hooks.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from permalinks.entry import OwnerIdentity, PermalinkEntry
from permalinks.errors import ConfigurationError, ValidationError
from permalinks.registry import PermalinkRegistry
from permalinks.slugs import is_blank


@dataclass(frozen=True, slots=True)
class LinkableConfig:
    """How one owner type gets its permalinks.

    ``scope`` values are constants or callables taking the owner.
    ``repository=False`` only sanitizes the owner's ``permalink`` attribute;
    no entries are stored and no history is kept.
    """

    attributes: tuple[str, ...]
    scope: Mapping[str, object] = field(default_factory=dict)
    repository: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.attributes, str):
            object.__setattr__(self, "attributes", (self.attributes,))
        if not self.attributes:
            msg = "Permalink attributes have not been assigned"
            raise ConfigurationError(msg)


class PermalinkBinding:
    """Keeps the permalinks of one owner type in sync with its attributes."""

    __slots__ = ("_config", "_registry")

    def __init__(self, registry: PermalinkRegistry, config: LinkableConfig) -> None:
        self._registry = registry
        self._config = config

    @property
    def config(self) -> LinkableConfig:
        return self._config

    def resolve_scope(self, owner: Any) -> dict[str, object]:
        """Scope of ``owner``'s permalinks, with callables evaluated."""
        resolved: dict[str, object] = {}
        for key, source in self._config.scope.items():
            value = source(owner) if callable(source) else source
            if value is None:
                msg = f"Scope value {key!r} of {OwnerIdentity.of(owner)} resolved to nothing"
                raise ValidationError(msg)
            resolved[key] = value
        return resolved

    def text_for(self, owner: Any) -> str:
        """The configured attribute values of ``owner``, joined by spaces."""
        values = (getattr(owner, name, None) for name in self._config.attributes)
        return " ".join(str(v) for v in values if v is not None and not is_blank(str(v)))

    def _needs_permalink(self, owner: Any, changed: Iterable[str] | None) -> bool:
        if is_blank(getattr(owner, "permalink", None)) or changed is None:
            return True
        return not set(changed).isdisjoint(self._config.attributes)

    async def prepare(
        self, owner: Any, changed: Iterable[str] | None = None
    ) -> PermalinkEntry | None:
        """Derive the owner's permalink and return the entry to store.

        Skipped (``None``) when the owner already has a permalink and none of
        the attributes in ``changed`` feed it; ``changed=None`` means
        anything may have changed. A text this owner used before brings its
        old entry back as current instead of creating a new one.

        Raises:
            ValidationError: If the attributes produce no slug.
        """
        if not self._needs_permalink(owner, changed):
            return None
        text = self.text_for(owner)

        if not self._config.repository:
            value = self._registry.sanitize(text)
            if value is None:
                msg = f"{OwnerIdentity.of(owner)} has no text for a permalink"
                raise ValidationError(msg)
            owner.permalink = value
            return None

        identity = OwnerIdentity.of(owner)
        scope = self.resolve_scope(owner)
        query = self._registry.for_value(text).for_owner(identity).for_scope(scope).latest()
        existing = await self._registry.fetch_one(query)
        if existing is not None:
            entry = self._registry.mark_current(existing)
        else:
            entry = await self._registry.build(identity, text, scope)
        owner.permalink = entry.value
        return entry

    async def store(self, entry: PermalinkEntry | None) -> PermalinkEntry | None:
        """Save an entry returned by ``prepare``."""
        if entry is None:
            return None
        return await self._registry.save(entry)

    async def sync(self, owner: Any, changed: Iterable[str] | None = None) -> PermalinkEntry | None:
        """``prepare`` and ``store`` in one call."""
        saved = await self.store(await self.prepare(owner, changed))
        if saved is not None:
            owner.permalink = saved.value
        return saved

    async def current(self, owner: Any) -> PermalinkEntry | None:
        """The owner's current entry within its scope."""
        query = (
            self._registry.for_owner(OwnerIdentity.of(owner))
            .for_scope(self.resolve_scope(owner))
            .current()
        )
        return await self._registry.fetch_one(query)

    async def history(self, owner: Any) -> list[PermalinkEntry]:
        """Every entry of the owner, least recently updated first."""
        query = self._registry.for_owner(OwnerIdentity.of(owner)).oldest_first()
        return await self._registry.fetch(query)

    async def destroy(self, owner: Any) -> int:
        """Delete every entry of a deleted owner."""
        return await self._registry.delete_all_for_owner(OwnerIdentity.of(owner))
