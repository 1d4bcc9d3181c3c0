from __future__ import annotations

import re
from typing import Any, Dict, List

from ..models import Action, Condition, Field, Operator, Rule, RuleSet
from ..utils.logging import get_logger

logger = get_logger("mff.rules.validation")


class RuleValidationError(Exception):
    """Raised when a rule set is malformed or fails validation."""


REQUIRED_CONDITION_FIELDS = {"field", "operator", "value"}


def validate_rule_set(rule_set: RuleSet) -> None:
    """Check the invariants every stored rule set must satisfy.

    Locators in error messages are 1-based so they read like the rule file.
    """
    if not rule_set.rules:
        logger.warning("Rule set for feed %s has no rules", rule_set.feed_id)

    for i, rule in enumerate(rule_set.rules, start=1):
        if not rule.conditions:
            raise RuleValidationError(f"Rule {i} has no conditions")

        for j, condition in enumerate(rule.conditions, start=1):
            if not condition.value.strip():
                raise RuleValidationError(f"Rule {i} condition {j} has an empty value")

            if condition.operator is Operator.MATCHES:
                try:
                    re.compile(condition.value)
                except re.error as exc:
                    raise RuleValidationError(
                        f"Invalid regex pattern in rule {i} condition {j}: '{condition.value}' ({exc})"
                    ) from exc


def _coerce_condition(entry: Any, i: int, j: int) -> Condition:
    if not isinstance(entry, dict):
        raise RuleValidationError(f"Rule {i} condition {j} must be a mapping, got: {type(entry).__name__}")
    missing = REQUIRED_CONDITION_FIELDS - set(entry)
    if missing:
        raise RuleValidationError(f"Rule {i} condition {j} is missing fields: {sorted(missing)}")
    if entry["value"] is None or isinstance(entry["value"], (dict, list)):
        raise RuleValidationError(f"Rule {i} condition {j} value must be a string")
    try:
        return Condition(
            field=Field.parse(entry["field"]),
            operator=Operator.parse(entry["operator"]),
            value=str(entry["value"]),
        )
    except ValueError as exc:
        raise RuleValidationError(f"Rule {i} condition {j}: {exc}") from exc


def _coerce_rule(entry: Any, i: int) -> Rule:
    if not isinstance(entry, dict):
        raise RuleValidationError(f"Rule {i} must be a mapping, got: {type(entry).__name__}")
    try:
        action = Action.parse(entry.get("action") or Action.MARK_READ.value)
    except ValueError as exc:
        raise RuleValidationError(f"Rule {i}: {exc}") from exc
    conditions_raw = entry.get("conditions") or []
    if not isinstance(conditions_raw, list):
        raise RuleValidationError(f"Rule {i} 'conditions' must be a list")
    conditions = [_coerce_condition(c, i, j) for j, c in enumerate(conditions_raw, start=1)]
    return Rule(conditions=conditions, action=action)


def parse_rule_set(data: Any) -> RuleSet:
    """Convert a mapping loaded from a rule file into a validated ``RuleSet``.

    Structure:
      - feed_id: integer (required)
      - feed_name: string (optional)
      - enabled: bool (optional, default true)
      - rules: list of {action, conditions: [{field, operator, value}]}
    """
    if not isinstance(data, dict):
        raise RuleValidationError("Rule file must contain a mapping at the top level")
    if "feed_id" not in data:
        raise RuleValidationError("Missing required field 'feed_id'")

    feed_id = data["feed_id"]
    if isinstance(feed_id, bool) or not isinstance(feed_id, (int, str)):
        raise RuleValidationError(f"'feed_id' must be an integer, got: {feed_id!r}")
    try:
        feed_id = int(feed_id)
    except ValueError as exc:
        raise RuleValidationError(f"'feed_id' must be an integer, got: {feed_id!r}") from exc

    enabled = data.get("enabled", True)
    if enabled is None:
        enabled = True
    if not isinstance(enabled, bool):
        raise RuleValidationError(f"'enabled' must be true or false, got: {enabled!r}")

    rules_raw = data.get("rules") or []
    if not isinstance(rules_raw, list):
        raise RuleValidationError("'rules' must be a list")

    feed_name = data.get("feed_name")
    rule_set = RuleSet(
        feed_id=feed_id,
        rules=[_coerce_rule(r, i) for i, r in enumerate(rules_raw, start=1)],
        enabled=enabled,
        feed_name=str(feed_name) if feed_name is not None else None,
    )
    validate_rule_set(rule_set)
    return rule_set


def to_dict(rule_set: RuleSet) -> Dict[str, Any]:
    """Serialize a rule set to the mapping written to rule files."""
    rules: List[Dict[str, Any]] = [
        {
            "action": rule.action.value,
            "conditions": [
                {"field": c.field.value, "operator": c.operator.value, "value": c.value}
                for c in rule.conditions
            ],
        }
        for rule in rule_set.rules
    ]
    data: Dict[str, Any] = {"feed_id": rule_set.feed_id}
    if rule_set.feed_name is not None:
        data["feed_name"] = rule_set.feed_name
    data["enabled"] = rule_set.enabled
    data["rules"] = rules
    return data
