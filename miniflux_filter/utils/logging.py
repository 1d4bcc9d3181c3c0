"""Logging configuration utilities.

Provides a single function to initialize the root logger with a consistent
format suitable for both local development and containerized environments,
plus an in-memory collector that keeps the most recent filter log records.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Deque, List, Literal, Optional

LOG_LEVEL = os.environ.get("MINIFLUX_FILTER_LOG_LEVEL", os.environ.get("LOG_LEVEL", "INFO")).upper()
LOG_OUTPUT = os.environ.get("LOG_OUTPUT", "stdout").lower()
LOG_FILE_PATH = os.environ.get("LOG_FILE_PATH", "logs/miniflux-filter.log")
LOG_FORMAT = os.environ.get("LOG_FORMAT", "text").lower()
K8S_CLUSTER = os.environ.get("K8S_CLUSTER")
KUBERNETES_SERVICE_HOST = os.environ.get("KUBERNETES_SERVICE_HOST")

LOGGER_PREFIX = "mff"

LogOutput = Literal["stdout", "file", "both"]
LogFormat = Literal["text", "json"]


def is_kubernetes_env() -> bool:
    """Check if the application is running in a Kubernetes environment."""
    return bool(K8S_CLUSTER or KUBERNETES_SERVICE_HOST or os.path.exists("/var/run/secrets/kubernetes.io/serviceaccount"))


@dataclass(slots=True)
class LogEntry:
    timestamp: datetime
    level: str
    message: str
    target: str
    feed_id: Optional[int] = None
    entry_id: Optional[int] = None
    entry_title: Optional[str] = None


class LogCollector(logging.Handler):
    """Bounded FIFO of recent log records from the filter's own loggers.

    ``feed_id``, ``entry_id`` and ``entry_title`` are picked up from the
    ``extra=`` mapping of a log call so entries can be queried per feed.
    """

    def __init__(self, max_logs: int = 50, *, prefix: str = LOGGER_PREFIX, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        if max_logs <= 0:
            raise ValueError("max_logs must be positive")
        self.max_logs = max_logs
        self.prefix = prefix
        self._logs: Deque[LogEntry] = deque(maxlen=max_logs)
        self._lock_logs = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        if self.prefix and record.name != self.prefix and not record.name.startswith(self.prefix + "."):
            return
        try:
            entry = LogEntry(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc),
                level=record.levelname,
                message=record.getMessage(),
                target=record.name,
                feed_id=getattr(record, "feed_id", None),
                entry_id=getattr(record, "entry_id", None),
                entry_title=getattr(record, "entry_title", None),
            )
        except Exception:  # noqa: BLE001 - logging must never raise
            self.handleError(record)
            return
        with self._lock_logs:
            self._logs.append(entry)

    def get_logs(self) -> List[LogEntry]:
        with self._lock_logs:
            return list(self._logs)

    def get_recent_logs(self, limit: int) -> List[LogEntry]:
        """Newest first."""
        with self._lock_logs:
            return list(reversed(self._logs))[:limit]

    def get_logs_for_feed(self, feed_id: int, limit: Optional[int] = None) -> List[LogEntry]:
        """Newest first, restricted to records tagged with ``feed_id``."""
        with self._lock_logs:
            matching = [e for e in reversed(self._logs) if e.feed_id == feed_id]
        return matching if limit is None else matching[:limit]

    def clear(self) -> None:
        with self._lock_logs:
            self._logs.clear()

    def __len__(self) -> int:
        with self._lock_logs:
            return len(self._logs)


def configure_logging(
    level: str | int | None = None,
    output: LogOutput | None = None,
    file_path: str | None = None,
    log_format: LogFormat | None = None,
    module: Optional[str] = None,
    collector: Optional[LogCollector] = None,
) -> None:
    """Configure application logging.

    Parameters
    ----------
    level:
        Logging level as a string (e.g., "INFO") or numeric value.
    output:
        Logging output destination: "stdout", "file", or "both".
    file_path:
        Path to the log file if output is "file" or "both".
    log_format:
        Logging format: "text" or "json".
    module:
        Optional module name to set a specific logger level for; if not
        provided, config applies to the root logger only.
    collector:
        Optional in-memory collector attached alongside the regular handlers.
    """
    # Resolve effective settings at call-time so .env variables loaded in main() are respected
    if level is None:
        level = os.environ.get("MINIFLUX_FILTER_LOG_LEVEL") or os.environ.get("LOG_LEVEL") or LOG_LEVEL
    if isinstance(level, str):
        level = level.upper()
    if log_format is None:
        log_format = (os.environ.get("LOG_FORMAT") or LOG_FORMAT).lower()
    if output is None:
        if is_kubernetes_env() and "LOG_OUTPUT" not in os.environ:
            output = "stdout"
        else:
            output = (os.environ.get("LOG_OUTPUT") or LOG_OUTPUT).lower()
    if file_path is None:
        file_path = os.environ.get("LOG_FILE_PATH") or LOG_FILE_PATH

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter = (
        logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(filename)s:%(lineno)d | %(message)s")
        if log_format == "text"
        else logging.Formatter('{"timestamp": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "file": "%(filename)s:%(lineno)d", "message": "%(message)s"}')
    )

    if output in ["stdout", "both"]:
        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setFormatter(formatter)
        root_logger.addHandler(stdout_handler)

    if output in ["file", "both"]:
        log_dir = os.path.dirname(file_path)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = RotatingFileHandler(file_path, maxBytes=10 * 1024 * 1024, backupCount=5)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    if collector is not None:
        root_logger.addHandler(collector)

    if module:
        logging.getLogger(module).setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
