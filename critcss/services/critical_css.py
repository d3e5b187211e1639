"""Coordinates one critical CSS extraction job end to end."""

from __future__ import annotations

import asyncio
import html
from enum import Enum
from typing import Dict, List, Optional

from critcss.core.config import settings
from critcss.core.errors import ExtractionTimeoutError, ParseError
from critcss.core.logging import get_logger
from critcss.models.critical_css import (
    CriticalCSSRequest,
    CriticalCSSResult,
    DeferralInstructions,
    ExtractionStats,
)
from critcss.services.classifier import RuleClassifier
from critcss.services.oracle import PageRenderer, ViewportSpec
from critcss.services.rebuilder import rebuild, strip_embedded_base64
from critcss.services.renderer import PlaywrightRenderer
from critcss.services.stylesheet_loader import StylesheetLoader, looks_like_css, parse_stylesheet
from critcss.services.stylesheet_writer import serialize

logger = get_logger(__name__)


class ExtractionState(str, Enum):
    idle = "idle"
    loading = "loading"
    classifying = "classifying"
    rebuilding = "rebuilding"
    serializing = "serializing"
    done = "done"
    timed_out = "timed_out"
    failed = "failed"


TERMINAL_STATES = frozenset({ExtractionState.done, ExtractionState.timed_out, ExtractionState.failed})


class ExtractionJob:
    """Per-run state. Nothing here is shared between jobs."""

    def __init__(self, request: CriticalCSSRequest) -> None:
        self.request = request
        self.viewport = ViewportSpec(request.width, request.height)
        self.state = ExtractionState.idle
        self.history: List[ExtractionState] = [self.state]
        self.log = logger.bind(url=request.url, viewport=f"{request.width}x{request.height}")

    def transition(self, state: ExtractionState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Extraction already finished as {self.state.value}")
        self.log.debug("extraction_state_changed", previous=self.state.value, state=state.value)
        self.state = state
        self.history.append(state)


class CriticalCSSExtractor:
    """Extracts the above-the-fold subset of a stylesheet for a rendered page."""

    def __init__(self, renderer: Optional[PageRenderer] = None, loader: Optional[StylesheetLoader] = None) -> None:
        self._renderer = renderer or PlaywrightRenderer()
        self._loader = loader or StylesheetLoader()

    async def extract(self, request: CriticalCSSRequest, job: Optional[ExtractionJob] = None) -> CriticalCSSResult:
        """Run one job and return its result, or raise exactly one ``CriticalCSSError``.

        The whole pipeline races the request's timeout. When the deadline
        wins, the pipeline task is cancelled and no longer awaited: its page
        queries are cancelled, the browser closes in the background and any
        late outcome is discarded.
        """

        job = job or ExtractionJob(request)
        job.log.info("critical_css_extraction_started", strict=request.strict, timeout_ms=request.timeout)

        pipeline = asyncio.ensure_future(self._run(job))
        try:
            done, _ = await asyncio.wait({pipeline}, timeout=request.timeout / 1000)
        except asyncio.CancelledError:
            pipeline.cancel()
            raise

        if not done:
            pipeline.cancel()
            pipeline.add_done_callback(_discard_late_outcome)
            job.transition(ExtractionState.timed_out)
            job.log.warning("critical_css_extraction_timed_out", timeout_ms=request.timeout)
            raise ExtractionTimeoutError(request.timeout)

        try:
            result = pipeline.result()
        except Exception as exc:
            job.transition(ExtractionState.failed)
            job.log.warning(
                "critical_css_extraction_failed",
                error=str(exc),
                kind=getattr(exc, "kind", type(exc).__name__),
            )
            raise

        job.log.info(
            "critical_css_extraction_completed",
            rules_total=result.stats.rules_total,
            rules_retained=result.stats.rules_retained,
        )
        return result

    async def extract_profiles(self, request: CriticalCSSRequest, profiles: List[str]) -> Dict[str, CriticalCSSResult]:
        """Run one isolated job per named viewport profile, concurrently."""

        viewports = resolve_viewports(profiles)
        tasks = [
            asyncio.ensure_future(self.extract(request.model_copy(update=viewport)))
            for viewport in viewports.values()
        ]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
        return dict(zip(viewports, results))

    async def _run(self, job: ExtractionJob) -> CriticalCSSResult:
        request = job.request

        job.transition(ExtractionState.loading)
        text = await self._loader.load(request.css)
        parsed = parse_stylesheet(text)
        if parsed.diagnostics:
            first = parsed.diagnostics[0]
            if request.strict:
                raise ParseError(
                    f"Stylesheet has {len(parsed.diagnostics)} error(s); first: {first.message}",
                    first.line,
                    first.column,
                )
            job.log.info("stylesheet_errors_skipped", count=len(parsed.diagnostics), first=first.message)

        async with self._renderer.render(request.url, job.viewport) as oracle:
            job.transition(ExtractionState.classifying)
            classifier = RuleClassifier(oracle, strict=request.strict, force_include=request.force_include)
            decisions = await classifier.classify_all(parsed.stylesheet.rules)

        job.transition(ExtractionState.rebuilding)
        critical = rebuild(parsed.stylesheet, decisions)
        if request.max_embedded_base64_length is not None:
            critical = strip_embedded_base64(critical, request.max_embedded_base64_length)

        job.transition(ExtractionState.serializing)
        css_text = serialize(critical)

        stats = ExtractionStats(
            rules_total=parsed.stylesheet.count(),
            rules_retained=critical.count(),
            selectors_total=classifier.stats.selectors_total,
            selectors_retained=classifier.stats.selectors_retained,
            selectors_failed=classifier.stats.selectors_failed,
            diagnostics=len(parsed.diagnostics),
        )
        job.transition(ExtractionState.done)

        return CriticalCSSResult(
            critical_css=css_text,
            viewport=job.viewport.as_dict(),
            defer_instructions=defer_instructions(request.css),
            stats=stats,
        )


def _discard_late_outcome(task: asyncio.Future) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.debug("late_extraction_outcome_discarded", error=str(task.exception()))


def defer_instructions(css_source: str) -> Optional[DeferralInstructions]:
    """Snippet that loads the full stylesheet without blocking first paint."""

    if looks_like_css(css_source):
        return None
    return DeferralInstructions(
        description="Inline the critical CSS in <head> and swap the full stylesheet in once loaded.",
        snippet=(
            f"<link rel=\"preload\" href=\"{html.escape(css_source, quote=True)}\" as=\"style\" "
            "onload=\"this.onload=null;this.rel='stylesheet'\">"
        ),
    )


def resolve_viewports(profiles: List[str]) -> Dict[str, Dict[str, int]]:
    """Translate profile identifiers into width/height pairs."""

    mapping = settings.viewport_profiles

    resolved: Dict[str, Dict[str, int]] = {}
    for profile in profiles:
        key = profile.lower()
        if key in mapping:
            resolved[key] = dict(mapping[key])
        else:
            logger.warning("unknown_viewport_profile", profile=profile)

    if not resolved:
        resolved["desktop"] = dict(mapping["desktop"])

    return resolved


critical_css_extractor = CriticalCSSExtractor()
