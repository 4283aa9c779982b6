"""Test fixtures and configuration."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import structlog

from liveblog.config import reset_settings
from liveblog.models.records import Actor, Node
from liveblog.post import LiveblogPost
from liveblog.schema import reset_field_schema
from liveblog.stores.memory import InMemoryStorage
from liveblog.vocabulary import HighlightVocabulary, reset_highlight_vocabulary

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture(autouse=True)
def _isolate(monkeypatch, tmp_path):
    """Fresh singletons, no stray config files, silent logs."""
    monkeypatch.chdir(tmp_path)
    structlog.configure(logger_factory=structlog.ReturnLoggerFactory(), cache_logger_on_first_use=False)
    monkeypatch.setattr("liveblog.cli.setup_logging", lambda *args, **kwargs: None)
    reset_settings()
    reset_field_schema()
    reset_highlight_vocabulary()
    yield
    reset_settings()
    reset_field_schema()
    reset_highlight_vocabulary()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> InMemoryStorage:
    store = InMemoryStorage()
    store.add_node(Node(id=7, kind="stream", title="Election night"))
    store.add_node(Node(id=9, kind="stream", title="Match day"))
    store.add_node(Node(id=8, kind="article", title="Not a stream"))
    store.add_actor(Actor(id=42, name="editor42"))
    store.add_actor(Actor(id=43, name="reporter43"))
    return store


@pytest.fixture
def vocabulary() -> HighlightVocabulary:
    return HighlightVocabulary(terms={"breaking": "Breaking news", "quote": "Quote"})


@pytest.fixture
def make_post(storage, vocabulary, clock):
    """Factory creating posts acting as user 42."""

    def _make(acting=42, **values) -> LiveblogPost:
        base = {"title": "Breaking", "body": "Details...", "stream_ref": 7}
        base.update(values)
        return LiveblogPost.create(base, acting, resolver=storage, vocabulary=vocabulary, clock=clock)

    return _make
