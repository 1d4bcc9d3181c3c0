from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import urlparse


class ConfigError(Exception):
    """Raised when the process configuration is invalid or missing required fields."""


REQUIRED_VARS = ("MINIFLUX_URL", "MINIFLUX_API_TOKEN")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(slots=True)
class AppConfig:
    """Process settings resolved from the environment.

    ``web_enabled`` and ``web_port`` are not used by this process; they are
    validated and carried for the HTTP control plane deployed next to it,
    which shares the same environment file.
    """

    miniflux_url: str
    miniflux_token: str
    poll_interval: int = 300
    rules_dir: str = "./rules"
    web_enabled: bool = True
    web_port: int = 8080
    log_level: str = "INFO"
    http_timeout: float = 30.0
    max_workers: int = 4
    strict_tags: bool = False


def _parse_int(env: Mapping[str, str], name: str, default: int, *, minimum: int = 1, maximum: Optional[int] = None) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got '{raw}'") from exc
    if value < minimum or (maximum is not None and value > maximum):
        bounds = f">= {minimum}" if maximum is None else f"between {minimum} and {maximum}"
        raise ConfigError(f"{name} must be {bounds}, got {value}")
    return value


def _parse_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number of seconds, got '{raw}'") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def _parse_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    # Unrecognised values fall back to the default rather than failing startup.
    raw = (env.get(name) or "").strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    return default


def load_app_config(env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Resolve ``AppConfig`` from environment variables.

    Required:
      - MINIFLUX_URL: absolute http(s) URL of the Miniflux instance
      - MINIFLUX_API_TOKEN: API token sent as ``X-Auth-Token``

    Optional (defaults in ``AppConfig``):
      - MINIFLUX_FILTER_POLL_INTERVAL, MINIFLUX_FILTER_RULES_DIR,
        MINIFLUX_FILTER_WEB_ENABLED, MINIFLUX_FILTER_WEB_PORT,
        MINIFLUX_FILTER_LOG_LEVEL, MINIFLUX_FILTER_HTTP_TIMEOUT,
        MINIFLUX_FILTER_MAX_WORKERS, MINIFLUX_FILTER_STRICT_TAGS
    """
    env = os.environ if env is None else env

    missing = [name for name in REQUIRED_VARS if not (env.get(name) or "").strip()]
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    url = env["MINIFLUX_URL"].strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"MINIFLUX_URL must start with http:// or https://, got '{url}'")

    return AppConfig(
        miniflux_url=url.rstrip("/"),
        miniflux_token=env["MINIFLUX_API_TOKEN"].strip(),
        poll_interval=_parse_int(env, "MINIFLUX_FILTER_POLL_INTERVAL", 300),
        rules_dir=(env.get("MINIFLUX_FILTER_RULES_DIR") or "./rules").strip(),
        web_enabled=_parse_bool(env, "MINIFLUX_FILTER_WEB_ENABLED", True),
        web_port=_parse_int(env, "MINIFLUX_FILTER_WEB_PORT", 8080, maximum=65535),
        log_level=(env.get("MINIFLUX_FILTER_LOG_LEVEL") or "INFO").strip().upper(),
        http_timeout=_parse_float(env, "MINIFLUX_FILTER_HTTP_TIMEOUT", 30.0),
        max_workers=_parse_int(env, "MINIFLUX_FILTER_MAX_WORKERS", 4),
        strict_tags=_parse_bool(env, "MINIFLUX_FILTER_STRICT_TAGS", False),
    )
