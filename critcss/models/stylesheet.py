"""Immutable rule tree for parsed stylesheets.

Rules form a closed union, ``StyleRule | GroupRule | AtRule | Comment``.
Conditional groups (``@media``, ``@supports`` ...) are ``GroupRule`` because
their body is nested rules; every other at-rule is an ``AtRule`` whose block,
if any, is kept verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union


GROUP_KEYWORDS = frozenset({"media", "supports", "document", "-moz-document", "container", "layer"})


@dataclass(frozen=True)
class Declaration:
    """A single ``name: value`` pair inside a style rule."""

    name: str
    value: str
    important: bool = False


@dataclass(frozen=True)
class StyleRule:
    """Selector list plus declaration block."""

    selectors: Tuple[str, ...]
    declarations: Tuple[Declaration, ...] = ()


@dataclass(frozen=True)
class GroupRule:
    """Conditional group at-rule holding nested rules."""

    keyword: str
    prelude: str
    rules: Tuple["Rule", ...] = ()


@dataclass(frozen=True)
class AtRule:
    """Any other at-rule. ``body`` is None for statements such as ``@import``."""

    keyword: str
    prelude: str
    body: Optional[str] = None


@dataclass(frozen=True)
class Comment:
    text: str


Rule = Union[StyleRule, GroupRule, AtRule, Comment]


@dataclass(frozen=True)
class Stylesheet:
    """Ordered top-level rules."""

    rules: Tuple[Rule, ...] = ()

    def count(self, include_comments: bool = False) -> int:
        """Number of top-level rules."""

        if include_comments:
            return len(self.rules)
        return sum(1 for rule in self.rules if not isinstance(rule, Comment))


@dataclass(frozen=True)
class Diagnostic:
    """A malformed construct that the parser skipped."""

    line: int
    column: int
    message: str


@dataclass(frozen=True)
class ParsedStylesheet:
    stylesheet: Stylesheet
    diagnostics: Tuple[Diagnostic, ...] = ()
