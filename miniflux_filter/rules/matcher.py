"""Condition evaluation and rule matching.

Matching rules:
- String operators are case-insensitive, except ``matches`` which runs the
  pattern case-sensitively with ``re.search`` against the raw field.
- ``tag`` conditions run against every tag; ``contains``/``notcontains`` look
  at the tags joined by a single space unless ``strict_tags`` is set.
- A rule matches when all its conditions match; rules in a set are independent.
"""

from __future__ import annotations

import re
from typing import Callable, Dict, List, Optional

from ..models import Article, Condition, Field, Operator, Rule, RuleSet
from ..utils.logging import get_logger

logger = get_logger("mff.rules.matcher")

TextTest = Callable[[str, str], bool]


def _compile(pattern: str) -> Optional[re.Pattern]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        logger.warning("Invalid regex pattern '%s' in condition: %s", pattern, exc)
        return None


def _regex_search(text: str, pattern: str) -> bool:
    compiled = _compile(pattern)
    return bool(compiled and compiled.search(text))


_SCALAR_TESTS: Dict[Operator, TextTest] = {
    Operator.CONTAINS: lambda text, value: value.lower() in text.lower(),
    Operator.NOT_CONTAINS: lambda text, value: value.lower() not in text.lower(),
    Operator.EQUALS: lambda text, value: text.lower() == value.lower(),
    Operator.NOT_EQUALS: lambda text, value: text.lower() != value.lower(),
    Operator.STARTS_WITH: lambda text, value: text.lower().startswith(value.lower()),
    Operator.ENDS_WITH: lambda text, value: text.lower().endswith(value.lower()),
    Operator.MATCHES: _regex_search,
}


def _any_tag(test: TextTest) -> Callable[[List[str], str], bool]:
    return lambda tags, value: any(test(tag, value) for tag in tags)


def _tags_match_regex(tags: List[str], pattern: str) -> bool:
    compiled = _compile(pattern)
    return bool(compiled) and any(compiled.search(tag) for tag in tags)


_TAG_TESTS: Dict[Operator, Callable[[List[str], str], bool]] = {
    Operator.CONTAINS: lambda tags, value: _SCALAR_TESTS[Operator.CONTAINS](" ".join(tags), value),
    Operator.NOT_CONTAINS: lambda tags, value: _SCALAR_TESTS[Operator.NOT_CONTAINS](" ".join(tags), value),
    Operator.EQUALS: _any_tag(_SCALAR_TESTS[Operator.EQUALS]),
    Operator.NOT_EQUALS: lambda tags, value: not _any_tag(_SCALAR_TESTS[Operator.EQUALS])(tags, value),
    Operator.STARTS_WITH: _any_tag(_SCALAR_TESTS[Operator.STARTS_WITH]),
    Operator.ENDS_WITH: _any_tag(_SCALAR_TESTS[Operator.ENDS_WITH]),
    Operator.MATCHES: _tags_match_regex,
}

# Per-tag substring semantics, opt-in through ``strict_tags``.
_STRICT_TAG_TESTS: Dict[Operator, Callable[[List[str], str], bool]] = {
    **_TAG_TESTS,
    Operator.CONTAINS: _any_tag(_SCALAR_TESTS[Operator.CONTAINS]),
    Operator.NOT_CONTAINS: lambda tags, value: not _any_tag(_SCALAR_TESTS[Operator.CONTAINS])(tags, value),
}

_SCALAR_FIELDS: Dict[Field, Callable[[Article], str]] = {
    Field.TITLE: lambda article: article.title,
    Field.CONTENT: lambda article: article.content,
    Field.AUTHOR: lambda article: article.author,
    Field.URL: lambda article: article.url,
}

for _name, _table, _enum in (
    ("scalar operator", _SCALAR_TESTS, Operator),
    ("tag operator", _TAG_TESTS, Operator),
    ("field", {**_SCALAR_FIELDS, Field.TAG: None}, Field),
):
    _missing = set(_enum) - set(_table)
    if _missing:
        raise ValueError(f"Unhandled {_name}(s): {sorted(m.value for m in _missing)}")


def condition_matches(condition: Condition, article: Article, *, strict_tags: bool = False) -> bool:
    """Return True when ``condition`` holds for ``article``. Never raises on bad regex."""
    if condition.field is Field.TAG:
        table = _STRICT_TAG_TESTS if strict_tags else _TAG_TESTS
        return table[condition.operator](article.tags, condition.value)
    text = _SCALAR_FIELDS[condition.field](article) or ""
    return _SCALAR_TESTS[condition.operator](text, condition.value)


def rule_matches(rule: Rule, article: Article, *, strict_tags: bool = False) -> bool:
    # A rule without conditions never passes validation; never let it match everything.
    if not rule.conditions:
        return False
    return all(condition_matches(c, article, strict_tags=strict_tags) for c in rule.conditions)


def evaluate(rule_set: RuleSet, article: Article, *, strict_tags: bool = False) -> List[int]:
    """Return the 0-based indices of the rules in ``rule_set`` matching ``article``.

    A disabled rule set never matches anything.
    """
    if not rule_set.enabled:
        return []

    matching: List[int] = []
    for idx, rule in enumerate(rule_set.rules):
        if rule_matches(rule, article, strict_tags=strict_tags):
            logger.debug(
                "Entry %s matches rule %d",
                article.id,
                idx + 1,
                extra={"feed_id": rule_set.feed_id, "entry_id": article.id},
            )
            matching.append(idx)
    return matching
