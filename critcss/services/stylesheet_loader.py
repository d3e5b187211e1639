"""Load stylesheet text and parse it into the immutable rule tree."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Iterable, List, Optional, Tuple
from urllib.parse import unquote, urlparse

import httpx
import tinycss2

from critcss.core.config import settings
from critcss.core.errors import InputLoadError, ParseError
from critcss.core.logging import get_logger
from critcss.models.stylesheet import (
    GROUP_KEYWORDS,
    AtRule,
    Comment,
    Declaration,
    Diagnostic,
    GroupRule,
    ParsedStylesheet,
    Rule,
    Stylesheet,
    StyleRule,
)

logger = get_logger(__name__)

LOCATION_SCHEMES = frozenset({"http", "https", "file"})

BLOCK_DELIMITERS = {"() block": ("(", ")"), "[] block": ("[", "]"), "{} block": ("{", "}")}


class StylesheetLoader:
    """Reads CSS from a path, an http(s) URL or inline text."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client

    async def load(self, source: str) -> str:
        """Return the stylesheet text for ``source``."""

        if looks_like_css(source):
            return source

        scheme = urlparse(source).scheme.lower()
        if scheme in {"http", "https"}:
            return await self._fetch(source)
        if scheme == "file":
            return await asyncio.to_thread(read_css_file, Path(unquote(urlparse(source).path)))
        return await asyncio.to_thread(read_css_file, Path(source))

    async def _fetch(self, url: str) -> str:
        try:
            if self._client is not None:
                response = await self._client.get(url)
            else:
                async with httpx.AsyncClient(
                    timeout=settings.css_fetch_timeout_seconds, follow_redirects=True
                ) as client:
                    response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("stylesheet_fetch_failed", url=url, error=str(exc))
            raise InputLoadError(f"Could not fetch stylesheet {url}: {exc}", {"source": url}) from exc
        return response.text


def looks_like_css(source: str) -> bool:
    """Inline CSS rather than a location.

    http(s) and file URLs are locations even when their query holds a ``;``.
    Anything else is inline when empty or containing CSS punctuation.
    """

    if not source.strip():
        return True
    if is_location_url(source):
        return False
    return any(ch in source for ch in "{};\n")


def is_location_url(source: str) -> bool:
    text = source.strip()
    return urlparse(text).scheme.lower() in LOCATION_SCHEMES and not any(ch in text for ch in "{}\n")


def read_css_file(path: Path) -> str:
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise InputLoadError(f"Could not read stylesheet {path}: {exc.strerror or exc}", {"source": str(path)}) from exc
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def parse_stylesheet(text: str) -> ParsedStylesheet:
    """Parse ``text`` with tinycss2.

    Malformed rules and declarations are skipped and reported as
    diagnostics. Input that is not blank yet yields no rule at all is a
    fatal ``ParseError``.
    """

    diagnostics: List[Diagnostic] = []
    nodes = tinycss2.parse_stylesheet(text, skip_comments=False, skip_whitespace=True)
    rules = tuple(_convert_rules(nodes, diagnostics))

    if not rules and diagnostics:
        first = diagnostics[0]
        raise ParseError(f"Stylesheet could not be parsed: {first.message}", first.line, first.column)

    return ParsedStylesheet(stylesheet=Stylesheet(rules=rules), diagnostics=tuple(diagnostics))


def split_selectors(prelude: Iterable) -> Tuple[str, ...]:
    """Split a qualified rule prelude at its top-level commas.

    Commas inside functions and blocks are nested tokens and never split.
    Whitespace runs collapse to a single space.
    """

    groups: List[List] = [[]]
    for token in prelude:
        if token.type == "literal" and token.value == ",":
            groups.append([])
        elif token.type == "whitespace":
            groups[-1].append(" ")
        elif token.type != "comment":
            groups[-1].append(token)

    selectors = []
    for group in groups:
        text = "".join(part if isinstance(part, str) else serialize_tokens([part]) for part in group).strip()
        selectors.append(text)
    return tuple(selectors)


def serialize_tokens(tokens: Iterable) -> str:
    """Write component values back out as they were written.

    ``tinycss2.serialize`` separates some adjacent tokens with ``/**/``
    (``2n+1`` comes back as ``2n/**/+1``); this joins token text as is.
    """

    parts = []
    for token in tokens:
        if token.type == "function":
            parts.append(f"{tinycss2.serialize_identifier(token.name)}({serialize_tokens(token.arguments)})")
        elif token.type in BLOCK_DELIMITERS:
            opening, closing = BLOCK_DELIMITERS[token.type]
            parts.append(f"{opening}{serialize_tokens(token.content)}{closing}")
        else:
            parts.append(token.serialize())
    return "".join(parts)


def _convert_rules(nodes: Iterable, diagnostics: List[Diagnostic]) -> Iterable[Rule]:
    for node in nodes:
        rule = _convert(node, diagnostics)
        if rule is not None:
            yield rule


def _convert(node, diagnostics: List[Diagnostic]) -> Optional[Rule]:
    if node.type == "comment":
        return Comment(text=node.value)

    if node.type == "error":
        diagnostics.append(Diagnostic(node.source_line, node.source_column, node.message))
        return None

    if node.type == "qualified-rule":
        selectors = split_selectors(node.prelude)
        if not all(selectors):
            diagnostics.append(Diagnostic(node.source_line, node.source_column, "Empty selector in selector list."))
            return None
        return StyleRule(selectors=selectors, declarations=_convert_declarations(node.content, diagnostics))

    if node.type == "at-rule":
        keyword = node.lower_at_keyword
        prelude = serialize_tokens(node.prelude).strip()
        if node.content is None:
            return AtRule(keyword=keyword, prelude=prelude)
        if keyword in GROUP_KEYWORDS:
            children = tinycss2.parse_rule_list(node.content, skip_comments=False, skip_whitespace=True)
            return GroupRule(keyword=keyword, prelude=prelude, rules=tuple(_convert_rules(children, diagnostics)))
        return AtRule(keyword=keyword, prelude=prelude, body=serialize_tokens(node.content).strip())

    return None


def _convert_declarations(content, diagnostics: List[Diagnostic]) -> Tuple[Declaration, ...]:
    declarations = []
    for node in tinycss2.parse_declaration_list(content, skip_comments=True, skip_whitespace=True):
        if node.type == "declaration":
            declarations.append(
                Declaration(
                    name=node.name,
                    value=serialize_tokens(node.value).strip(),
                    important=node.important,
                )
            )
        elif node.type == "error":
            diagnostics.append(Diagnostic(node.source_line, node.source_column, node.message))
        else:
            diagnostics.append(
                Diagnostic(node.source_line, node.source_column, f"Unexpected {node.type} in declaration block.")
            )
    return tuple(declarations)
