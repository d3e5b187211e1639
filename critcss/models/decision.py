"""Per-rule retain/drop decisions produced by the classifier."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .stylesheet import Rule


@dataclass(frozen=True)
class Keep:
    """Retain the rule unchanged."""

    rule: Rule


@dataclass(frozen=True)
class KeepPartial:
    """Retain the rule with a subset of its contents.

    ``selectors`` is set for style rules, ``children`` (aligned 1:1 with the
    group's nested rules) for group rules.
    """

    rule: Rule
    selectors: Optional[Tuple[str, ...]] = None
    children: Optional[Tuple["RuleDecision", ...]] = None


@dataclass(frozen=True)
class Drop:
    rule: Rule


RuleDecision = Union[Keep, KeepPartial, Drop]


def is_retained(decision: RuleDecision) -> bool:
    return not isinstance(decision, Drop)
