from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class _NamedEnum(str, Enum):
    """String enum whose members parse leniently from rule files.

    ``not_contains``, ``NotContains`` and ``notcontains`` all resolve to the
    same member; the canonical spelling written back to disk is the value.
    """

    @classmethod
    def parse(cls, raw: object):
        key = str(raw).strip().lower().replace("_", "").replace("-", "").replace(" ", "")
        for member in cls:
            if member.value == key:
                return member
        allowed = ", ".join(m.value for m in cls)
        raise ValueError(f"Unknown {cls.__name__.lower()} '{raw}'. Allowed: {allowed}")


class Field(_NamedEnum):
    TITLE = "title"
    CONTENT = "content"
    AUTHOR = "author"
    URL = "url"
    TAG = "tag"


class Operator(_NamedEnum):
    CONTAINS = "contains"
    NOT_CONTAINS = "notcontains"
    EQUALS = "equals"
    NOT_EQUALS = "notequals"
    STARTS_WITH = "startswith"
    ENDS_WITH = "endswith"
    MATCHES = "matches"  # regex


class Action(_NamedEnum):
    MARK_READ = "markread"


@dataclass(slots=True)
class Condition:
    field: Field
    operator: Operator
    value: str


@dataclass(slots=True)
class Rule:
    """A rule matches an article when all of its conditions match."""

    conditions: List[Condition] = field(default_factory=list)
    action: Action = Action.MARK_READ


@dataclass(slots=True)
class RuleSet:
    """Rules for one feed. ``feed_id`` is the key across all stored rule sets."""

    feed_id: int
    rules: List[Rule] = field(default_factory=list)
    enabled: bool = True
    feed_name: Optional[str] = None
