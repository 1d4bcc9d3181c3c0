from __future__ import annotations

from typing import Any, Iterable, List, Optional

import requests

from ..models import Article, Feed
from ..utils.config_loader import AppConfig
from ..utils.logging import get_logger

logger = get_logger("mff.fetchers.miniflux")

DEFAULT_LIMIT = 1000


class MinifluxAPIError(Exception):
    """Raised for transport failures and non-2xx responses from Miniflux."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MinifluxClient:
    """Thin client for the parts of the Miniflux v1 API the filter needs."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"X-Auth-Token": token})

    @classmethod
    def from_config(cls, config: AppConfig, *, session: Optional[requests.Session] = None) -> "MinifluxClient":
        return cls(config.miniflux_url, config.miniflux_token, timeout=config.http_timeout, session=session)

    def _request(self, method: str, path: str, what: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            resp = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("Miniflux request error for %s %s: %s", method, url, exc)
            raise MinifluxAPIError(f"{what}: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            body = resp.text or ""
            logger.warning("Miniflux request failed (%s): %s %s", resp.status_code, method, url)
            raise MinifluxAPIError(
                f"{what}: {resp.status_code} - {body}", status_code=resp.status_code, body=body
            )
        return resp

    @staticmethod
    def _json(resp: requests.Response, what: str) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise MinifluxAPIError(f"{what}: invalid JSON response", status_code=resp.status_code) from exc

    def _entries(self, resp: requests.Response, what: str) -> List[Article]:
        data = self._json(resp, what)
        if not isinstance(data, dict):
            raise MinifluxAPIError(f"{what}: unexpected response shape", status_code=resp.status_code)
        try:
            return [Article.from_api(item) for item in data.get("entries") or []]
        except (KeyError, TypeError, ValueError) as exc:
            raise MinifluxAPIError(f"{what}: malformed entry in response ({exc})") from exc

    def test_connection(self) -> None:
        """Probe ``/v1/me``; raises ``MinifluxAPIError`` if unreachable or unauthorized."""
        logger.debug("Testing Miniflux API connection")
        self._request("GET", "/v1/me", "Miniflux API connection failed")
        logger.info("Miniflux API connection successful")

    def get_unread_entries(self, *, limit: int = DEFAULT_LIMIT) -> List[Article]:
        logger.debug("Fetching unread entries from Miniflux")
        what = "Failed to fetch unread entries"
        resp = self._request("GET", "/v1/entries", what, params={"status": "unread", "limit": limit})
        entries = self._entries(resp, what)
        logger.info("Fetched %d unread entries", len(entries))
        return entries

    def get_unread_entries_for_feed(self, feed_id: int, *, limit: int = DEFAULT_LIMIT) -> List[Article]:
        logger.debug("Fetching unread entries for feed %s", feed_id, extra={"feed_id": feed_id})
        what = f"Failed to fetch unread entries for feed {feed_id}"
        resp = self._request(
            "GET", f"/v1/feeds/{feed_id}/entries", what, params={"status": "unread", "limit": limit}
        )
        entries = self._entries(resp, what)
        logger.debug(
            "Fetched %d unread entries for feed %s", len(entries), feed_id, extra={"feed_id": feed_id}
        )
        return entries

    def get_feeds(self) -> List[Feed]:
        logger.debug("Fetching feeds from Miniflux")
        what = "Failed to fetch feeds"
        resp = self._request("GET", "/v1/feeds", what)
        data = self._json(resp, what)
        if not isinstance(data, list):
            raise MinifluxAPIError(f"{what}: unexpected response shape", status_code=resp.status_code)
        feeds = [Feed.from_api(item) for item in data]
        logger.info("Fetched %d feeds", len(feeds))
        return feeds

    def mark_entries_as_read(self, entry_ids: Iterable[int]) -> None:
        ids = [int(i) for i in entry_ids]
        if not ids:
            return
        logger.debug("Marking %d entries as read", len(ids))
        self._request(
            "PUT",
            "/v1/entries",
            "Failed to mark entries as read",
            json={"entry_ids": ids, "status": "read"},
        )
        logger.info("Successfully marked %d entries as read", len(ids))

    def close(self) -> None:
        self._session.close()
