from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .fetchers import MinifluxAPIError, MinifluxClient
from .models import RuleSet
from .rules import evaluate, load_rule_sets
from .utils.logging import get_logger

logger = get_logger("mff.orchestrator")


@dataclass(slots=True)
class FeedResult:
    feed_id: int
    processed: int = 0
    filtered: int = 0
    marked_ids: List[int] = field(default_factory=list)
    error: Optional[str] = None


@dataclass(slots=True)
class CycleResult:
    feeds: List[FeedResult] = field(default_factory=list)
    skipped_feeds: List[int] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return sum(f.processed for f in self.feeds)

    @property
    def filtered(self) -> int:
        return sum(f.filtered for f in self.feeds)

    @property
    def failed_feeds(self) -> List[FeedResult]:
        return [f for f in self.feeds if f.error is not None]


@dataclass(slots=True)
class FilterStats:
    total_rule_sets: int
    enabled_rule_sets: int
    total_rules: int
    feeds_with_rules: List[int]

    def log_summary(self) -> None:
        logger.info("Filter Engine Statistics:")
        logger.info("  Total rule sets: %d", self.total_rule_sets)
        logger.info("  Enabled rule sets: %d", self.enabled_rule_sets)
        logger.info("  Total rules: %d", self.total_rules)
        logger.info("  Feeds with rules: %s", self.feeds_with_rules)


def group_by_feed(rule_sets: Iterable[RuleSet]) -> Dict[int, RuleSet]:
    """Map feed id to rule set. Later rule sets replace earlier ones for the same feed."""
    by_feed: Dict[int, RuleSet] = {}
    for rule_set in rule_sets:
        if rule_set.feed_id in by_feed:
            logger.warning(
                "Multiple rule sets for feed %s; using the last one loaded",
                rule_set.feed_id,
                extra={"feed_id": rule_set.feed_id},
            )
        by_feed[rule_set.feed_id] = rule_set
    return by_feed


class Orchestrator:
    """Runs one filtering cycle: load rules, fetch unread entries per feed, mark matches read."""

    def __init__(
        self,
        client: MinifluxClient,
        rules_dir: Path | str,
        *,
        dry_run: bool = False,
        max_workers: int = 4,
        strict_tags: bool = False,
    ) -> None:
        self.client = client
        self.rules_dir = Path(rules_dir)
        self.dry_run = dry_run
        self.max_workers = max(1, max_workers)
        self.strict_tags = strict_tags

    def process_feed(self, feed_id: int, rule_set: RuleSet) -> FeedResult:
        """Filter the unread entries of one feed.

        Remote failures are recorded on the result instead of raised so one
        feed never stops the others; a failed feed counts as (0, 0).
        """
        logger.debug(
            "Processing feed %s with %d rules", feed_id, len(rule_set.rules), extra={"feed_id": feed_id}
        )
        result = FeedResult(feed_id=feed_id)
        try:
            entries = self.client.get_unread_entries_for_feed(feed_id)
        except MinifluxAPIError as exc:
            logger.error("Failed to fetch entries for feed %s: %s", feed_id, exc, extra={"feed_id": feed_id})
            result.error = str(exc)
            return result

        if not entries:
            logger.debug("No unread entries for feed %s", feed_id, extra={"feed_id": feed_id})
            return result

        to_mark: List[int] = []
        for entry in entries:
            matching = evaluate(rule_set, entry, strict_tags=self.strict_tags)
            if matching:
                logger.info(
                    "Entry '%s' (ID: %s) matches rules: %s",
                    entry.title,
                    entry.id,
                    ", ".join(str(i + 1) for i in matching),
                    extra={"feed_id": feed_id, "entry_id": entry.id, "entry_title": entry.title},
                )
                to_mark.append(entry.id)

        if to_mark:
            if self.dry_run:
                logger.info(
                    "[DRY-RUN] Would mark %d entries as read for feed %s",
                    len(to_mark),
                    feed_id,
                    extra={"feed_id": feed_id},
                )
            else:
                try:
                    self.client.mark_entries_as_read(to_mark)
                except MinifluxAPIError as exc:
                    logger.error(
                        "Failed to mark entries as read for feed %s: %s", feed_id, exc, extra={"feed_id": feed_id}
                    )
                    result.error = str(exc)
                    return result
                logger.info(
                    "Marked %d entries as read for feed %s", len(to_mark), feed_id, extra={"feed_id": feed_id}
                )

        result.processed = len(entries)
        result.filtered = len(to_mark)
        result.marked_ids = to_mark
        return result

    def run_cycle(self) -> CycleResult:
        """Run one filtering cycle.

        ``RuleStoreError`` from an unreadable rules directory propagates to the
        caller; everything feed-specific is contained in the returned result.
        """
        logger.debug("Starting new filtering cycle")
        result = CycleResult()

        rule_sets = load_rule_sets(self.rules_dir)
        if not rule_sets:
            logger.debug("No rule sets found, skipping cycle")
            return result

        rules_by_feed = group_by_feed(rule_sets)
        logger.info("Processing %d rule sets for %d feeds", len(rule_sets), len(rules_by_feed))

        active: List[RuleSet] = []
        for feed_id, rule_set in rules_by_feed.items():
            if not rule_set.enabled:
                logger.debug("Skipping disabled rule set for feed %s", feed_id, extra={"feed_id": feed_id})
                result.skipped_feeds.append(feed_id)
                continue
            active.append(rule_set)

        if active:
            max_workers = min(self.max_workers, len(active))
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                future_map = {executor.submit(self.process_feed, rs.feed_id, rs): rs.feed_id for rs in active}
                for fut in as_completed(future_map):
                    feed_id = future_map[fut]
                    try:
                        result.feeds.append(fut.result())
                    except Exception as exc:  # noqa: BLE001 - keep other feeds going
                        logger.exception(
                            "Unexpected error processing feed %s: %s", feed_id, exc, extra={"feed_id": feed_id}
                        )
                        result.feeds.append(FeedResult(feed_id=feed_id, error=str(exc)))
            result.feeds.sort(key=lambda f: f.feed_id)

        logger.info(
            "Filtering cycle complete: processed %d entries, filtered %d entries, failed feeds %d",
            result.processed,
            result.filtered,
            len(result.failed_feeds),
        )
        return result

    def get_stats(self) -> FilterStats:
        return collect_stats(self.rules_dir)


def collect_stats(rules_dir: Path | str) -> FilterStats:
    rule_sets = load_rule_sets(rules_dir)
    return FilterStats(
        total_rule_sets=len(rule_sets),
        enabled_rule_sets=sum(1 for rs in rule_sets if rs.enabled),
        total_rules=sum(len(rs.rules) for rs in rule_sets),
        feeds_with_rules=[rs.feed_id for rs in rule_sets],
    )
