"""Typed models used across the application."""

from .article import Article, Feed
from .rule_set import Action, Condition, Field, Operator, Rule, RuleSet

__all__ = ["Article", "Feed", "Action", "Condition", "Field", "Operator", "Rule", "RuleSet"]
