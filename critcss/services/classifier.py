"""Decide which rules of a stylesheet are needed above the fold."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

import tinycss2

from critcss.core.config import settings
from critcss.core.errors import SelectorEvaluationError
from critcss.core.logging import get_logger
from critcss.models.decision import Drop, Keep, KeepPartial, RuleDecision, is_retained
from critcss.models.stylesheet import AtRule, Comment, GroupRule, Rule, StyleRule
from critcss.services.oracle import VisibilityOracle
from critcss.services.stylesheet_loader import serialize_tokens

logger = get_logger(__name__)

LEGACY_PSEUDO_ELEMENTS = frozenset({"before", "after", "first-line", "first-letter"})
COMBINATORS = frozenset({">", "+", "~"})


@dataclass
class ClassificationStats:
    selectors_total: int = 0
    selectors_retained: int = 0
    selectors_failed: int = 0


def query_target(selector: str) -> Optional[str]:
    """Return the selector to send to the page for ``selector``.

    Pseudo-elements never match DOM nodes, so they are removed and the
    element they attach to is tested instead; vendor-prefixed pseudo-classes
    are removed the same way. Where the removed part stood alone after a
    combinator (``ul ::before``) the universal selector takes its place. A
    selector with nothing left (such as ``::selection``) cannot be tested at
    all and returns None, meaning it is always kept. Other pseudo-classes,
    ``:hover`` or ``:is(.a)`` included, are queried as written.
    """

    tokens = tinycss2.parse_component_value_list(selector.strip())
    kept: list = []
    has_subject = False
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if _is_colon(token):
            if i + 1 < len(tokens) and _is_colon(tokens[i + 1]):
                i += 3
                continue
            name = _pseudo_name(tokens[i + 1]) if i + 1 < len(tokens) else ""
            if name in LEGACY_PSEUDO_ELEMENTS or name.startswith("-"):
                i += 2
                continue
            kept.extend(tokens[i:i + 2])
            has_subject = True
            i += 2
            continue
        if token.type not in ("whitespace", "comment"):
            has_subject = True
        kept.append(token)
        i += 1

    if not has_subject:
        return None

    target = serialize_tokens(kept)
    if target.strip() and (target[-1].isspace() or target.rstrip()[-1] in COMBINATORS):
        target = target.rstrip() + " *"
    return target.strip() or None


def _is_colon(token) -> bool:
    return token.type == "literal" and token.value == ":"


def _pseudo_name(token) -> str:
    if token.type == "ident":
        return token.lower_value
    if token.type == "function":
        return token.lower_name
    return ""


def compile_force_include(entries: Iterable[str]) -> Tuple[frozenset, Tuple[Pattern, ...]]:
    """Split force-include entries into exact selectors and ``/regex/`` patterns."""

    exact = set()
    patterns = []
    for entry in entries:
        if len(entry) > 2 and entry.startswith("/") and entry.endswith("/"):
            patterns.append(re.compile(entry[1:-1]))
        else:
            exact.add(entry.strip())
    return frozenset(exact), tuple(patterns)


class RuleClassifier:
    """Tags rules keep, keep-partial or drop by querying a ``VisibilityOracle``.

    One classifier serves one job: identical queries are sent to the page
    once, and at most ``concurrency`` queries are in flight at a time.
    """

    def __init__(
        self,
        oracle: VisibilityOracle,
        strict: bool = False,
        force_include: Sequence[str] = (),
        concurrency: Optional[int] = None,
    ) -> None:
        self._oracle = oracle
        self.strict = strict
        self._forced, self._forced_patterns = compile_force_include(force_include)
        self._semaphore = asyncio.Semaphore(concurrency or settings.oracle_max_concurrency)
        self._queries: Dict[str, asyncio.Future] = {}
        self.stats = ClassificationStats()

    async def classify_all(self, rules: Sequence[Rule]) -> List[RuleDecision]:
        """Classify ``rules`` concurrently; decisions come back in input order."""

        tasks = [asyncio.ensure_future(self.classify(rule)) for rule in rules]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            cancelled = self.cancel_pending(tasks)
            if cancelled:
                logger.info("oracle_queries_cancelled", count=cancelled)
            raise

    async def classify(self, rule: Rule) -> RuleDecision:
        if isinstance(rule, StyleRule):
            return await self._classify_style(rule)
        if isinstance(rule, GroupRule):
            return await self._classify_group(rule)
        if isinstance(rule, (AtRule, Comment)):
            return Keep(rule)
        raise TypeError(f"Unsupported rule type: {type(rule).__name__}")

    def cancel_pending(self, tasks: Iterable[asyncio.Future] = ()) -> int:
        """Cancel unfinished classification tasks and page queries."""

        cancelled = 0
        for task in [*tasks, *self._queries.values()]:
            if not task.done():
                task.cancel()
                cancelled += 1
        return cancelled

    async def _classify_style(self, rule: StyleRule) -> RuleDecision:
        outcomes = await asyncio.gather(
            *(self._selector_verdict(selector) for selector in rule.selectors),
            return_exceptions=True,
        )

        kept: List[str] = []
        failures: List[SelectorEvaluationError] = []
        for selector, outcome in zip(rule.selectors, outcomes):
            if isinstance(outcome, SelectorEvaluationError):
                failures.append(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            elif outcome:
                kept.append(selector)

        self.stats.selectors_total += len(rule.selectors)
        self.stats.selectors_retained += len(kept)

        if failures:
            failed = [selector for error in failures for selector in error.selectors]
            self.stats.selectors_failed += len(failed)
            if self.strict:
                raise SelectorEvaluationError(failed, failures[0].reason)
            logger.warning("selector_evaluation_failed", selectors=failed, reason=failures[0].reason)

        if not kept:
            return Drop(rule)
        if len(kept) == len(rule.selectors):
            return Keep(rule)
        return KeepPartial(rule, selectors=tuple(kept))

    async def _classify_group(self, rule: GroupRule) -> RuleDecision:
        children = await self.classify_all(rule.rules)

        if not any(is_retained(child) and not isinstance(child.rule, Comment) for child in children):
            return Drop(rule)
        if all(isinstance(child, Keep) for child in children):
            return Keep(rule)
        return KeepPartial(rule, children=tuple(children))

    async def _selector_verdict(self, selector: str) -> bool:
        if self._is_forced(selector):
            return True
        target = query_target(selector)
        if target is None:
            return True
        try:
            return await self._visible(target)
        except SelectorEvaluationError as exc:
            raise SelectorEvaluationError([selector], exc.reason) from exc

    def _is_forced(self, selector: str) -> bool:
        if selector in self._forced:
            return True
        return any(pattern.search(selector) for pattern in self._forced_patterns)

    def _visible(self, target: str) -> asyncio.Future:
        query = self._queries.get(target)
        if query is None:
            query = self._queries[target] = asyncio.ensure_future(self._query(target))
        return query

    async def _query(self, target: str) -> bool:
        async with self._semaphore:
            return await self._oracle.matches_visible(target)
