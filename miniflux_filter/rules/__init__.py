"""Rule engine: matching, validation and file-backed storage of rule sets."""

from .matcher import condition_matches, evaluate, rule_matches
from .store import (
    RuleStoreError,
    check_rule_files,
    create_example_rule_set,
    delete_rule_set,
    find_rule_set,
    load_rule_set,
    load_rule_sets,
    rule_set_path,
    save_rule_set,
)
from .validation import RuleValidationError, parse_rule_set, to_dict, validate_rule_set

__all__ = [
    "condition_matches",
    "evaluate",
    "rule_matches",
    "RuleStoreError",
    "check_rule_files",
    "create_example_rule_set",
    "delete_rule_set",
    "find_rule_set",
    "load_rule_set",
    "load_rule_sets",
    "rule_set_path",
    "save_rule_set",
    "RuleValidationError",
    "parse_rule_set",
    "to_dict",
    "validate_rule_set",
]
