from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest

from critcss.core.errors import RenderError, SelectorEvaluationError
from critcss.services.critical_css import CriticalCSSExtractor
from critcss.services.oracle import ViewportSpec

STATIC_DIR = Path(__file__).parent / "static"


class FakeOracle:
    """Deterministic oracle: each selector maps to the top offset of its first element.

    Selectors missing from ``layout`` match nothing on the page.
    """

    def __init__(
        self,
        layout: Dict[str, float],
        height: int,
        malformed: Iterable[str] = (),
        delay: float = 0.0,
    ) -> None:
        self.layout = layout
        self.height = height
        self.malformed = set(malformed)
        self.delay = delay
        self.queries: List[str] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self.cancelled = 0

    async def matches_visible(self, selector: str) -> bool:
        self.queries.append(selector)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            else:
                await asyncio.sleep(0)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.in_flight -= 1

        if selector in self.malformed:
            raise SelectorEvaluationError([selector], f"'{selector}' is not a valid selector")
        top = self.layout.get(selector)
        return top is not None and top < self.height


class FakeRenderer:
    """Hands out a fresh ``FakeOracle`` per render, sized to the job's viewport."""

    def __init__(
        self,
        layout: Dict[str, float],
        malformed: Iterable[str] = (),
        query_delay: float = 0.0,
        render_delay: float = 0.0,
        fail_with: Optional[Exception] = None,
    ) -> None:
        self.layout = layout
        self.malformed = tuple(malformed)
        self.query_delay = query_delay
        self.render_delay = render_delay
        self.fail_with = fail_with
        self.oracles: List[FakeOracle] = []
        self.rendered: List[tuple] = []
        self.closed = 0

    @asynccontextmanager
    async def render(self, url: str, viewport: ViewportSpec):
        self.rendered.append((url, viewport))
        if self.render_delay:
            await asyncio.sleep(self.render_delay)
        if self.fail_with is not None:
            raise self.fail_with
        oracle = FakeOracle(self.layout, viewport.height, self.malformed, self.query_delay)
        self.oracles.append(oracle)
        try:
            yield oracle
        finally:
            self.closed += 1


# Mirrors tests/static/page1.html: the top offset of each selector's first element.
PAGE1_LAYOUT = {
    "html": 0,
    "body": 0,
    "header": 0,
    "header h1": 0,
    "nav a": 37,
    ".intro": 60,
    ".hero": 100,
    ".hero img": 100,
    ".features": 400,
    ".feature": 400,
    ".cta": 700,
    "footer": 850,
}

PAGE1_RULE_COUNT = 15


@pytest.fixture
def static_dir() -> Path:
    return STATIC_DIR


@pytest.fixture
def page1_css_path() -> Path:
    return STATIC_DIR / "page1.css"


@pytest.fixture
def page1_url() -> str:
    return (STATIC_DIR / "page1.html").resolve().as_uri()


@pytest.fixture
def fake_renderer() -> FakeRenderer:
    return FakeRenderer(PAGE1_LAYOUT, malformed=["a:unknown-pseudo"])


@pytest.fixture
def extractor(fake_renderer) -> CriticalCSSExtractor:
    return CriticalCSSExtractor(renderer=fake_renderer)


def broken_renderer(message: str = "net::ERR_FILE_NOT_FOUND") -> FakeRenderer:
    return FakeRenderer({}, fail_with=RenderError(message))
