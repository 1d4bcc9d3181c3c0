"""Top-level package for miniflux-filter.

This package contains the application entrypoint and all supporting modules
for polling Miniflux and marking entries as read when they match per-feed
rule sets.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
