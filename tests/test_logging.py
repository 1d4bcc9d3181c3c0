from __future__ import annotations

import logging
import threading

import pytest

from miniflux_filter.utils.logging import LogCollector, configure_logging, get_logger


@pytest.fixture
def collector():
    handler = LogCollector(5)
    logger = get_logger("mff.test")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield handler
    logger.removeHandler(handler)


def test_collector_is_bounded(collector: LogCollector) -> None:
    logger = get_logger("mff.test")
    for i in range(12):
        logger.info("message %d", i)

    logs = collector.get_logs()
    assert len(logs) == 5
    assert [e.message for e in logs] == [f"message {i}" for i in range(7, 12)]
    assert collector.get_recent_logs(2)[0].message == "message 11"


def test_collector_captures_feed_context(collector: LogCollector) -> None:
    logger = get_logger("mff.test")
    logger.info("Entry matched", extra={"feed_id": 7, "entry_id": 99, "entry_title": "Ad"})
    logger.info("unrelated")
    logger.warning("Other feed", extra={"feed_id": 8})

    for_feed = collector.get_logs_for_feed(7)
    assert len(for_feed) == 1
    assert (for_feed[0].entry_id, for_feed[0].entry_title, for_feed[0].level) == (99, "Ad", "INFO")
    assert collector.get_logs_for_feed(8, limit=0) == []


def test_collector_ignores_foreign_loggers() -> None:
    handler = LogCollector(5)
    foreign = logging.getLogger("urllib3.test")
    foreign.addHandler(handler)
    foreign.setLevel(logging.INFO)
    try:
        foreign.info("noise")
    finally:
        foreign.removeHandler(handler)

    assert len(handler) == 0


def test_collector_clear(collector: LogCollector) -> None:
    get_logger("mff.test").info("x")
    collector.clear()

    assert collector.get_logs() == []


def test_collector_is_thread_safe(collector: LogCollector) -> None:
    logger = get_logger("mff.test")
    threads = [threading.Thread(target=lambda: [logger.info("t") for _ in range(50)]) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(collector) == 5


def test_invalid_capacity() -> None:
    with pytest.raises(ValueError):
        LogCollector(0)


def test_configure_logging_attaches_collector(tmp_path) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    handler = LogCollector(3)
    try:
        configure_logging(
            level="debug",
            output="file",
            file_path=str(tmp_path / "logs" / "filter.log"),
            collector=handler,
        )
        get_logger("mff.orchestrator").debug("hello")

        assert root.level == logging.DEBUG
        assert handler in root.handlers
        assert handler.get_logs()[0].message == "hello"
        assert (tmp_path / "logs" / "filter.log").exists()
    finally:
        for h in root.handlers[:]:
            root.removeHandler(h)
            if h is not handler:
                h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
