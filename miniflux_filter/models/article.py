from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(slots=True)
class Feed:
    id: int
    title: str = ""
    site_url: str = ""
    feed_url: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Feed":
        return cls(
            id=int(data["id"]),
            title=data.get("title") or "",
            site_url=data.get("site_url") or "",
            feed_url=data.get("feed_url") or "",
        )


@dataclass(slots=True)
class Article:
    """A Miniflux entry as seen by the rule engine. Read-only to the core."""

    id: int
    title: str = ""
    url: str = ""
    content: str = ""
    author: str = ""
    status: str = "unread"
    published_at: Optional[str] = None
    created_at: Optional[str] = None
    feed: Optional[Feed] = None
    tags: List[str] = field(default_factory=list)

    @property
    def feed_id(self) -> Optional[int]:
        return self.feed.id if self.feed else None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Article":
        """Build an article from a ``/v1/entries`` payload item.

        Miniflux omits ``tags`` for entries without categories and may send
        ``null`` for author or content, so every text field falls back to "".
        """
        feed_data = data.get("feed")
        return cls(
            id=int(data["id"]),
            title=data.get("title") or "",
            url=data.get("url") or "",
            content=data.get("content") or "",
            author=data.get("author") or "",
            status=data.get("status") or "unread",
            published_at=data.get("published_at"),
            created_at=data.get("created_at"),
            feed=Feed.from_api(feed_data) if isinstance(feed_data, dict) else None,
            tags=[str(t) for t in (data.get("tags") or [])],
        )
