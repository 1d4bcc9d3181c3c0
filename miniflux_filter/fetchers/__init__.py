"""Remote access layer for the Miniflux API."""

from .miniflux import DEFAULT_LIMIT, MinifluxAPIError, MinifluxClient

__all__ = ["DEFAULT_LIMIT", "MinifluxAPIError", "MinifluxClient"]
