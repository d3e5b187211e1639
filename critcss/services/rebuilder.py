"""Rebuild a stylesheet from classifier decisions."""

from __future__ import annotations

import re
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from critcss.models.decision import Drop, Keep, RuleDecision
from critcss.models.stylesheet import Comment, Declaration, GroupRule, Rule, Stylesheet, StyleRule

EMBEDDED_BASE64 = re.compile(r"data:[^,'\")\s]*;base64,[^'\")\s]*", re.IGNORECASE)


def rebuild(stylesheet: Stylesheet, decisions: Sequence[RuleDecision]) -> Stylesheet:
    """Return a new stylesheet holding only the retained rules, in original order."""

    return Stylesheet(rules=rebuild_rules(stylesheet.rules, decisions))


def rebuild_rules(rules: Sequence[Rule], decisions: Sequence[RuleDecision]) -> Tuple[Rule, ...]:
    if len(rules) != len(decisions):
        raise ValueError(f"Expected {len(rules)} decisions, got {len(decisions)}")

    rebuilt: List[Rule] = []
    for rule, decision in zip(rules, decisions):
        if decision.rule != rule:
            raise ValueError("Decisions are not aligned with the rules they describe")
        kept = _apply(decision)
        if kept is not None:
            rebuilt.append(kept)
    return tuple(rebuilt)


def _apply(decision: RuleDecision) -> Optional[Rule]:
    if isinstance(decision, Drop):
        return None
    if isinstance(decision, Keep):
        return decision.rule

    rule = decision.rule
    if isinstance(rule, StyleRule) and decision.selectors is not None:
        if not decision.selectors:
            return None
        return replace(rule, selectors=tuple(decision.selectors))

    if isinstance(rule, GroupRule) and decision.children is not None:
        children = rebuild_rules(rule.rules, decision.children)
        # Never emit a wrapper without a real rule inside.
        if not any(not isinstance(child, Comment) for child in children):
            return None
        return replace(rule, rules=children)

    raise ValueError(f"Partial decision does not fit {type(rule).__name__}")


def strip_embedded_base64(stylesheet: Stylesheet, max_length: int) -> Stylesheet:
    """Drop style declarations embedding a base64 data URI longer than ``max_length``."""

    return Stylesheet(rules=tuple(_strip_rule(rule, max_length) for rule in stylesheet.rules))


def _strip_rule(rule: Rule, max_length: int) -> Rule:
    if isinstance(rule, StyleRule):
        declarations = tuple(d for d in rule.declarations if not _embeds_large_base64(d, max_length))
        if len(declarations) == len(rule.declarations):
            return rule
        return replace(rule, declarations=declarations)
    if isinstance(rule, GroupRule):
        return replace(rule, rules=tuple(_strip_rule(child, max_length) for child in rule.rules))
    return rule


def _embeds_large_base64(declaration: Declaration, max_length: int) -> bool:
    return any(len(match.group(0)) > max_length for match in EMBEDDED_BASE64.finditer(declaration.value))
