"""Serialize the rule tree back to CSS text."""

from __future__ import annotations

from typing import Iterable, List

from critcss.models.stylesheet import AtRule, Comment, Declaration, GroupRule, Rule, Stylesheet, StyleRule

INDENT = "  "


def serialize(stylesheet: Stylesheet) -> str:
    """Render ``stylesheet`` as indented CSS. An empty sheet renders as ``""``."""

    return "\n\n".join(_render_rules(stylesheet.rules, depth=0))


def serialize_declaration(declaration: Declaration) -> str:
    text = f"{declaration.name}: {declaration.value}"
    if declaration.important:
        text += " !important"
    return text + ";"


def _render_rules(rules: Iterable[Rule], depth: int) -> List[str]:
    return [_render(rule, depth) for rule in rules]


def _render(rule: Rule, depth: int) -> str:
    pad = INDENT * depth

    if isinstance(rule, Comment):
        return f"{pad}/*{rule.text}*/"

    if isinstance(rule, StyleRule):
        head = f",\n{pad}".join(rule.selectors)
        lines = [f"{pad}{INDENT}{serialize_declaration(d)}" for d in rule.declarations]
        return _block(f"{pad}{head}", lines, pad)

    if isinstance(rule, GroupRule):
        inner = "\n\n".join(_render_rules(rule.rules, depth + 1))
        return f"{_at_head(rule.keyword, rule.prelude, pad)} {{\n{inner}\n{pad}}}"

    if isinstance(rule, AtRule):
        head = _at_head(rule.keyword, rule.prelude, pad)
        if rule.body is None:
            return f"{head};"
        if not rule.body:
            return f"{head} {{}}"
        return f"{head} {{\n{pad}{INDENT}{rule.body}\n{pad}}}"

    raise TypeError(f"Unsupported rule type: {type(rule).__name__}")


def _at_head(keyword: str, prelude: str, pad: str) -> str:
    if prelude:
        return f"{pad}@{keyword} {prelude}"
    return f"{pad}@{keyword}"


def _block(head: str, lines: List[str], pad: str) -> str:
    if not lines:
        return f"{head} {{}}"
    body = "\n".join(lines)
    return f"{head} {{\n{body}\n{pad}}}"
