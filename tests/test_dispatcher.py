"""Tests for permalinks.dispatcher — path resolution and redirects."""

import logging

import pytest

from permalinks.dispatcher import Dispatcher, DispatchResult, split_path
from permalinks.entry import OwnerIdentity
from permalinks.errors import PathError

CATEGORY = OwnerIdentity("Category", "1")
ASSET = OwnerIdentity("Asset", "1")
OTHER = OwnerIdentity("Asset", "2")


@pytest.fixture
async def site(registry):
    """A category "something" and an asset "pretty"."""
    category = await registry.create(CATEGORY, "Something")
    asset = await registry.create(ASSET, "Pretty")
    return category, asset


class TestSplitPath:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/", ()),
            ("/pretty", ("pretty",)),
            ("/something/pretty", ("something", "pretty")),
            ("/something//pretty/", ("something", "pretty")),
            ("/pretty.html", ("pretty",)),
            ("/pretty?page=2", ("pretty",)),
            ("/pretty#top", ("pretty",)),
            ("/something/pretty.json?x=1#y", ("something", "pretty")),
        ],
    )
    def test_split(self, path: str, expected: tuple[str, ...]) -> None:
        assert split_path(path) == expected


class TestDispatcherPath:
    def test_relative_path_raises(self) -> None:
        with pytest.raises(PathError, match="absolute"):
            Dispatcher("pretty")

    def test_parts(self) -> None:
        assert Dispatcher("/something/pretty.html").parts == ("something", "pretty")

    def test_reassign_path_resets_parts(self) -> None:
        dispatcher = Dispatcher("/pretty")
        assert dispatcher.parts == ("pretty",)
        dispatcher.path = "/something/new"
        assert dispatcher.parts == ("something", "new")

    def test_reassign_invalid_path(self) -> None:
        dispatcher = Dispatcher("/pretty")
        with pytest.raises(PathError):
            dispatcher.path = "new"
        assert dispatcher.path == "/pretty"


class TestResolve:
    async def test_segment_order(self, registry, site) -> None:
        category, asset = site

        result = await registry.dispatch("/something/pretty")
        assert [e.id for e in result.objects] == [category.id, asset.id]
        assert result.found is True
        assert result.redirect is False
        assert result.redirect_path is None

        reversed_result = await registry.dispatch("/pretty/something")
        assert [e.id for e in reversed_result.objects] == [asset.id, category.id]

    async def test_result_shape(self, registry, site) -> None:
        result = await registry.dispatch("/pretty.html?page=2")
        assert isinstance(result, DispatchResult)
        assert result.path == "/pretty.html?page=2"
        assert result.parts == ("pretty",)

    async def test_unresolvable(self, registry, site) -> None:
        result = await registry.dispatch("/something/nothing")
        assert result.found is False
        assert result.redirect is None
        assert result.redirect_path is None
        assert result.objects[1] is None

    async def test_empty_database(self, registry) -> None:
        result = await registry.dispatch("/pretty")
        assert result.found is False
        assert result.objects == (None,)

    async def test_root_path(self, registry, site) -> None:
        result = await registry.dispatch("/")
        assert result.objects == ()
        assert result.found is True
        assert result.redirect is False

    async def test_one_slot_per_owner(self, registry) -> None:
        pretty = await registry.create(ASSET, "Pretty")
        await registry.create(ASSET, "New")

        result = await registry.dispatch("/pretty/new")
        assert result.objects[0].id == pretty.id
        assert result.objects[1] is None
        assert result.found is False

    async def test_one_slot_per_owner_in_segment_order(self, registry) -> None:
        await registry.create(ASSET, "New")
        pretty = await registry.create(ASSET, "Pretty")

        result = await registry.dispatch("/pretty/new")
        assert result.objects[0].id == pretty.id
        assert result.objects[1] is None
        assert result.found is False

    async def test_repeated_value_claimed_by_first_owner_only(self, registry) -> None:
        await registry.create(ASSET, "X", {"realm": "rugby"})
        await registry.create(OTHER, "X", {"realm": "hockey"})

        result = await registry.dispatch("/x/x")
        assert result.objects[0].owner == ASSET
        assert result.objects[1] is None
        assert result.found is False

    async def test_same_segment_twice(self, registry, site) -> None:
        _, asset = site
        result = await registry.dispatch("/pretty/pretty")
        assert result.objects[0].id == asset.id
        assert result.objects[1] is None

    async def test_run_through_dispatcher(self, registry, site) -> None:
        result = await Dispatcher("/something/pretty").resolve(registry)
        assert result.found is True


class TestRedirect:
    async def test_stale_slug_redirects(self, registry, site) -> None:
        await registry.create(ASSET, "New")

        result = await registry.dispatch("/pretty")
        assert result.found is True
        assert result.redirect is True
        assert result.redirect_path == "/new"

    async def test_current_slug_does_not_redirect(self, registry, site) -> None:
        await registry.create(ASSET, "New")

        result = await registry.dispatch("/new")
        assert result.redirect is False
        assert result.redirect_path is None

    async def test_redirect_keeps_segment_order(self, registry, site) -> None:
        await registry.create(ASSET, "New")
        await registry.create(CATEGORY, "Anything")

        result = await registry.dispatch("/something/pretty")
        assert result.redirect_path == "/anything/new"

    async def test_only_stale_segments_change(self, registry, site) -> None:
        await registry.create(ASSET, "New")

        result = await registry.dispatch("/something/pretty.html")
        assert result.redirect_path == "/something/new"

    async def test_owner_without_current_keeps_value(
        self, registry, site, caplog: pytest.LogCaptureFixture
    ) -> None:
        await registry.store.set_current(registry.for_owner(ASSET), False)

        with caplog.at_level(logging.WARNING, logger="permalinks.dispatcher"):
            result = await registry.dispatch("/something/pretty")

        assert result.found is True
        assert result.redirect is True
        assert result.redirect_path == "/something/pretty"
        assert "No current permalink for Asset#1" in caplog.text


class TestScope:
    async def test_scope_restricts_resolution(self, registry) -> None:
        rugby = await registry.create(ASSET, "Pretty", {"realm": "rugby"})
        soccer = await registry.create(OTHER, "Pretty", {"realm": "soccer"})

        result = await registry.dispatch("/pretty", {"realm": "soccer"})
        assert result.objects[0].id == soccer.id

        result = await registry.dispatch("/pretty", {"realm": "rugby"})
        assert result.objects[0].id == rugby.id

        result = await registry.dispatch("/pretty", {"realm": "tennis"})
        assert result.found is False

    async def test_unscoped_dispatch_sees_every_scope(self, registry) -> None:
        await registry.create(ASSET, "Pretty", {"realm": "rugby"})
        result = await registry.dispatch("/pretty")
        assert result.found is True

    async def test_redirect_within_scope(self, registry) -> None:
        await registry.create(ASSET, "Pretty", {"realm": "rugby"})
        await registry.create(ASSET, "New", {"realm": "rugby"})
        await registry.create(ASSET, "Elsewhere")

        result = await registry.dispatch("/pretty", {"realm": "rugby"})
        assert result.redirect_path == "/new"
