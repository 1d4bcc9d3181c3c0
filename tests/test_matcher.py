from __future__ import annotations

import logging

import pytest

from conftest import make_article, make_rule_set
from miniflux_filter.models import Condition, Field, Operator, Rule, RuleSet
from miniflux_filter.rules import condition_matches, evaluate, rule_matches


@pytest.mark.parametrize(
    "title, value, expected",
    [
        ("This is an Advertisement", "advertisement", True),
        ("this is an advertisement", "ADVERTISEMENT", True),
        ("Regular news", "advertisement", False),
        ("", "x", False),
    ],
)
def test_contains_is_case_insensitive(title: str, value: str, expected: bool) -> None:
    cond = Condition(Field.TITLE, Operator.CONTAINS, value)

    assert condition_matches(cond, make_article(title=title)) is expected
    assert condition_matches(Condition(Field.TITLE, Operator.NOT_CONTAINS, value), make_article(title=title)) is not expected


@pytest.mark.parametrize("value", ["spam-author", "SPAM-AUTHOR", "spam", "someone else"])
def test_equals_and_not_equals_are_complements(value: str) -> None:
    article = make_article(author="Spam-Author")
    eq = condition_matches(Condition(Field.AUTHOR, Operator.EQUALS, value), article)
    ne = condition_matches(Condition(Field.AUTHOR, Operator.NOT_EQUALS, value), article)

    assert eq is not ne


def test_equals_requires_full_string() -> None:
    article = make_article(author="Spam Author")

    assert not condition_matches(Condition(Field.AUTHOR, Operator.EQUALS, "spam"), article)
    assert condition_matches(Condition(Field.AUTHOR, Operator.EQUALS, "spam author"), article)


def test_starts_and_ends_with_on_url() -> None:
    article = make_article(url="https://Example.com/Sponsored/post.html")

    assert condition_matches(Condition(Field.URL, Operator.STARTS_WITH, "HTTPS://example"), article)
    assert condition_matches(Condition(Field.URL, Operator.ENDS_WITH, ".HTML"), article)
    assert not condition_matches(Condition(Field.URL, Operator.ENDS_WITH, ".php"), article)


def test_content_field_is_used() -> None:
    article = make_article(title="Fine", content="<p>This is a promotional offer</p>")

    assert condition_matches(Condition(Field.CONTENT, Operator.CONTAINS, "promotional"), article)
    assert not condition_matches(Condition(Field.TITLE, Operator.CONTAINS, "promotional"), article)


def test_matches_is_case_sensitive_search() -> None:
    article = make_article(title="Weekly Deals: 50% off")

    assert condition_matches(Condition(Field.TITLE, Operator.MATCHES, r"\d+% off"), article)
    assert condition_matches(Condition(Field.TITLE, Operator.MATCHES, "Deals"), article)
    assert not condition_matches(Condition(Field.TITLE, Operator.MATCHES, "deals"), article)
    assert condition_matches(Condition(Field.TITLE, Operator.MATCHES, "(?i)deals"), article)


def test_invalid_regex_evaluates_false_and_logs(caplog: pytest.LogCaptureFixture) -> None:
    article = make_article(title="anything (", tags=["a("])

    with caplog.at_level(logging.WARNING, logger="mff.rules.matcher"):
        assert condition_matches(Condition(Field.TITLE, Operator.MATCHES, "("), article) is False
        assert condition_matches(Condition(Field.TAG, Operator.MATCHES, "("), article) is False

    assert "Invalid regex pattern" in caplog.text


@pytest.mark.parametrize(
    "value, expected",
    [("sports", True), ("SPORTS", True), ("sport", False), ("news sports", False)],
)
def test_tag_equals_matches_any_tag(value: str, expected: bool) -> None:
    article = make_article(tags=["News", "Sports"])

    assert condition_matches(Condition(Field.TAG, Operator.EQUALS, value), article) is expected
    assert condition_matches(Condition(Field.TAG, Operator.NOT_EQUALS, value), article) is not expected


def test_tag_starts_ends_and_regex() -> None:
    article = make_article(tags=["News", "Sports"])

    assert condition_matches(Condition(Field.TAG, Operator.STARTS_WITH, "spo"), article)
    assert condition_matches(Condition(Field.TAG, Operator.ENDS_WITH, "WS"), article)
    assert condition_matches(Condition(Field.TAG, Operator.MATCHES, "(?i)sports"), article)
    assert not condition_matches(Condition(Field.TAG, Operator.MATCHES, "^sports$"), article)


def test_tag_contains_uses_joined_tags() -> None:
    article = make_article(tags=["foo", "bar"])

    # Crosses the tag boundary because tags are joined with a space.
    assert condition_matches(Condition(Field.TAG, Operator.CONTAINS, "oo b"), article)
    assert not condition_matches(Condition(Field.TAG, Operator.NOT_CONTAINS, "oo b"), article)


def test_strict_tags_contains_checks_each_tag() -> None:
    article = make_article(tags=["foo", "bar"])

    assert not condition_matches(Condition(Field.TAG, Operator.CONTAINS, "oo b"), article, strict_tags=True)
    assert condition_matches(Condition(Field.TAG, Operator.CONTAINS, "OO"), article, strict_tags=True)
    assert condition_matches(Condition(Field.TAG, Operator.NOT_CONTAINS, "oo b"), article, strict_tags=True)


def test_no_tags() -> None:
    article = make_article(tags=[])

    assert not condition_matches(Condition(Field.TAG, Operator.EQUALS, "news"), article)
    assert condition_matches(Condition(Field.TAG, Operator.NOT_EQUALS, "news"), article)
    assert condition_matches(Condition(Field.TAG, Operator.NOT_CONTAINS, "news"), article)


def test_rule_requires_all_conditions() -> None:
    rule = Rule(
        conditions=[
            Condition(Field.TITLE, Operator.CONTAINS, "ad"),
            Condition(Field.AUTHOR, Operator.EQUALS, "spammer"),
        ]
    )

    assert rule_matches(rule, make_article(title="An ad", author="Spammer"))
    assert not rule_matches(rule, make_article(title="An ad", author="Someone"))
    assert not rule_matches(rule, make_article(title="News", author="Spammer"))


def test_rule_without_conditions_never_matches() -> None:
    assert not rule_matches(Rule(conditions=[]), make_article())


def test_evaluate_end_to_end_example() -> None:
    rule_set = make_rule_set(123, (Field.TITLE, Operator.CONTAINS, "advertisement"))
    article = make_article(id=1, title="This is an Advertisement", tags=[])

    assert evaluate(rule_set, article) == [0]


def test_evaluate_returns_all_matching_indices_in_order() -> None:
    rule_set = RuleSet(
        feed_id=1,
        rules=[
            Rule(conditions=[Condition(Field.TITLE, Operator.CONTAINS, "ad")]),
            Rule(conditions=[Condition(Field.TITLE, Operator.CONTAINS, "nothing-here")]),
            Rule(conditions=[Condition(Field.AUTHOR, Operator.EQUALS, "bot")]),
        ],
    )

    assert evaluate(rule_set, make_article(title="Sponsored ad", author="Bot")) == [0, 2]
    assert evaluate(rule_set, make_article(title="Plain", author="Human")) == []


def test_disabled_rule_set_never_matches() -> None:
    rule_set = make_rule_set(123, (Field.TITLE, Operator.CONTAINS, "test"), enabled=False)

    assert evaluate(rule_set, make_article(title="This is a test")) == []


@pytest.mark.parametrize("field", list(Field))
@pytest.mark.parametrize("operator", list(Operator))
def test_every_field_operator_pair_is_handled(field: Field, operator: Operator) -> None:
    article = make_article(title="Sponsored", content="body", author="bot", url="https://x.test/a", tags=["News"])

    for strict in (False, True):
        assert isinstance(condition_matches(Condition(field, operator, "x"), article, strict_tags=strict), bool)
