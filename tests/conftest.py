"""Shared fixtures: a fresh SQLite database and registry per test."""

from datetime import UTC, datetime, timedelta

import pytest

from permalinks.data import Database
from permalinks.keywords import StopwordExtractor
from permalinks.registry import PermalinkRegistry


class TickingClock:
    """Clock advancing one second per call, so every save has a distinct timestamp."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
async def db(tmp_path):
    """Connected SQLite database in a temporary file."""
    db = Database(f"sqlite:///{tmp_path / 'permalinks.db'}")
    await db.connect()
    yield db
    await db.disconnect()


@pytest.fixture
async def registry(db, clock):
    """Registry with the default English stopword list and the schema applied."""
    registry = PermalinkRegistry(db, clock=clock)
    await registry.setup()
    return registry


@pytest.fixture
async def short_registry(db, clock):
    """Registry whose only stopwords are "its" and "a"."""
    registry = PermalinkRegistry(
        db, extractor=StopwordExtractor.from_words(["its", "a"]), clock=clock
    )
    await registry.setup()
    return registry
