"""File-backed rule set storage.

The rules directory is the single source of truth. Nothing here caches: every
call reads the directory again so edits made by another process show up on
the next access.
"""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import Any, List, Optional, Tuple

import yaml

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from ..models import Condition, Field, Operator, Rule, RuleSet
from ..utils.logging import get_logger
from .validation import RuleValidationError, parse_rule_set, to_dict, validate_rule_set

logger = get_logger("mff.rules.store")

YAML_SUFFIXES = (".yaml", ".yml")
TOML_SUFFIXES = (".toml",)
RULE_FILE_SUFFIXES = YAML_SUFFIXES + TOML_SUFFIXES


class RuleStoreError(Exception):
    """Raised when the rules directory itself cannot be read or created."""


def rule_set_path(rules_dir: Path | str, feed_id: int) -> Path:
    """Conventional location of the rule file for ``feed_id``."""
    return Path(rules_dir) / f"feed_{feed_id}.yaml"


def _read_rule_file(rule_path: Path) -> Any:
    if rule_path.suffix.lower() in TOML_SUFFIXES:
        with rule_path.open("rb") as f:
            return tomllib.load(f)
    with rule_path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def load_rule_set(path: Path | str) -> RuleSet:
    """Read, parse and validate a single rule file.

    ``.yaml``/``.yml`` files are read with PyYAML, ``.toml`` files with
    tomllib. Undecodable or syntactically broken files surface as
    ``RuleValidationError`` prefixed with the path.
    """
    rule_path = Path(path)
    logger.debug("Loading rule set from %s", rule_path)

    try:
        data = _read_rule_file(rule_path)
    except (UnicodeDecodeError, yaml.YAMLError, tomllib.TOMLDecodeError) as exc:
        raise RuleValidationError(f"{rule_path}: {exc}") from exc

    try:
        rule_set = parse_rule_set(data)
    except RuleValidationError as exc:
        raise RuleValidationError(f"{rule_path}: {exc}") from exc

    logger.info(
        "Loaded rule set for feed %s with %d rules",
        rule_set.feed_id,
        len(rule_set.rules),
        extra={"feed_id": rule_set.feed_id},
    )
    return rule_set


def _rule_files(rules_dir: Path) -> List[Path]:
    try:
        entries = sorted(rules_dir.iterdir())
    except OSError as exc:
        raise RuleStoreError(f"Failed to read rules directory {rules_dir}: {exc}") from exc
    return [p for p in entries if p.suffix.lower() in RULE_FILE_SUFFIXES and p.is_file()]


def load_rule_sets(rules_dir: Path | str) -> List[RuleSet]:
    """Load every rule file in ``rules_dir`` in lexical filename order.

    A missing directory is created and yields no rule sets. A file that
    cannot be read, parsed or validated is skipped with a warning.
    """
    dir_path = Path(rules_dir)
    if not dir_path.exists():
        logger.info("Rules directory %s does not exist, creating it", dir_path)
        try:
            dir_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise RuleStoreError(f"Failed to create rules directory {dir_path}: {exc}") from exc
        return []

    rule_sets: List[RuleSet] = []
    for path in _rule_files(dir_path):
        try:
            rule_sets.append(load_rule_set(path))
        except (OSError, RuleValidationError) as exc:
            logger.warning("Failed to load rule file %s: %s", path, exc)

    logger.info("Loaded %d rule sets from %s", len(rule_sets), dir_path)
    return rule_sets


def check_rule_files(rules_dir: Path | str) -> List[Tuple[Path, Optional[str]]]:
    """Validate every rule file without loading it into a cycle.

    Returns ``(path, error)`` pairs; ``error`` is None for valid files.
    """
    dir_path = Path(rules_dir)
    if not dir_path.is_dir():
        raise RuleStoreError(f"Rules directory {dir_path} does not exist")

    results: List[Tuple[Path, Optional[str]]] = []
    for path in _rule_files(dir_path):
        try:
            load_rule_set(path)
        except (OSError, RuleValidationError) as exc:
            results.append((path, str(exc)))
        else:
            results.append((path, None))
    return results


def find_rule_set(rules_dir: Path | str, feed_id: int) -> Optional[RuleSet]:
    """Return the rule set for ``feed_id``; the lexically last file wins on duplicates."""
    found: Optional[RuleSet] = None
    for rule_set in load_rule_sets(rules_dir):
        if rule_set.feed_id == feed_id:
            found = rule_set
    return found


def save_rule_set(rule_set: RuleSet, path: Path | str) -> None:
    """Validate and write ``rule_set`` to ``path``.

    The content goes to a temporary file in the target directory first and is
    then renamed over ``path``, so readers see either the old or the new file.
    """
    target = Path(path)
    logger.debug("Saving rule set to %s", target)

    validate_rule_set(rule_set)
    content = yaml.safe_dump(to_dict(rule_set), sort_keys=False, allow_unicode=True)

    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info(
        "Saved rule set for feed %s to %s",
        rule_set.feed_id,
        target,
        extra={"feed_id": rule_set.feed_id},
    )


def delete_rule_set(rules_dir: Path | str, feed_id: int) -> bool:
    """Remove every rule file declaring ``feed_id``, whatever its name.

    Files that fail to load are left alone; they never apply to a cycle.
    Returns False when no file declared the feed.
    """
    dir_path = Path(rules_dir)
    if not dir_path.is_dir():
        return False

    deleted = False
    for path in _rule_files(dir_path):
        try:
            rule_set = load_rule_set(path)
        except (OSError, RuleValidationError):
            continue
        if rule_set.feed_id != feed_id:
            continue
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        except OSError as exc:
            raise RuleStoreError(f"Failed to delete rule file {path}: {exc}") from exc
        logger.info("Deleted rule set for feed %s from %s", feed_id, path, extra={"feed_id": feed_id})
        deleted = True
    return deleted


def create_example_rule_set(path: Path | str, feed_id: int, feed_name: str) -> RuleSet:
    """Write a starter rule file showing the supported rule shapes."""
    example = RuleSet(
        feed_id=feed_id,
        feed_name=feed_name,
        enabled=True,
        rules=[
            Rule(
                conditions=[
                    Condition(Field.TITLE, Operator.CONTAINS, "ad"),
                    Condition(Field.TITLE, Operator.CONTAINS, "advertisement"),
                ]
            ),
            Rule(conditions=[Condition(Field.CONTENT, Operator.CONTAINS, "promotional")]),
            Rule(conditions=[Condition(Field.AUTHOR, Operator.EQUALS, "spam-author")]),
        ],
    )
    save_rule_set(example, path)
    return example
