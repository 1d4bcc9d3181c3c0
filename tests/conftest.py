"""Shared pytest fixtures and fakes for miniflux-filter tests."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest

from miniflux_filter.fetchers import MinifluxAPIError
from miniflux_filter.models import Action, Article, Condition, Feed, Rule, RuleSet


def make_article(
    *,
    id: int = 1,
    title: str = "Test Article",
    content: str = "Some content",
    author: str = "Author",
    url: str = "https://example.com",
    tags: Optional[List[str]] = None,
    feed_id: int = 123,
) -> Article:
    return Article(
        id=id,
        title=title,
        url=url,
        content=content,
        author=author,
        status="unread",
        published_at="2024-01-01T00:00:00Z",
        created_at="2024-01-01T00:00:00Z",
        feed=Feed(id=feed_id, title="Test Feed", site_url="https://example.com", feed_url="https://example.com/feed"),
        tags=list(tags or []),
    )


def make_rule_set(
    feed_id: int = 123,
    *conditions: tuple,
    enabled: bool = True,
) -> RuleSet:
    """One rule per call, built from ``(field, operator, value)`` tuples."""
    return RuleSet(
        feed_id=feed_id,
        enabled=enabled,
        rules=[Rule(conditions=[Condition(f, o, v) for f, o, v in conditions], action=Action.MARK_READ)],
    )


class FakeClient:
    def __init__(self, entries: Optional[Dict[int, Union[List[Article], Exception]]] = None) -> None:
        self.entries = entries or {}
        self.fetch_calls: List[int] = []
        self.mark_calls: List[List[int]] = []
        self.mark_error: Optional[Exception] = None
        self.connection_error: Optional[Exception] = None
        self.connection_checks = 0

    def test_connection(self) -> None:
        self.connection_checks += 1
        if self.connection_error:
            raise self.connection_error

    def get_unread_entries_for_feed(self, feed_id: int) -> List[Article]:
        self.fetch_calls.append(feed_id)
        value = self.entries.get(feed_id, [])
        if isinstance(value, Exception):
            raise value
        return [a for a in value if a.status == "unread"]

    def mark_entries_as_read(self, entry_ids: List[int]) -> None:
        if self.mark_error:
            raise self.mark_error
        ids = list(entry_ids)
        self.mark_calls.append(ids)
        # Behave like the server: marked entries are no longer unread.
        for value in self.entries.values():
            if isinstance(value, list):
                for article in value:
                    if article.id in ids:
                        article.status = "read"


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def rules_dir(tmp_path: Path) -> Path:
    path = tmp_path / "rules"
    path.mkdir()
    return path


@pytest.fixture
def api_error() -> MinifluxAPIError:
    return MinifluxAPIError("Failed: 500 - boom", status_code=500, body="boom")


