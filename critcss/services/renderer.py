"""Playwright-backed page rendering and visibility queries."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright

from critcss.core.config import settings
from critcss.core.errors import RenderError, SelectorEvaluationError
from critcss.core.logging import get_logger
from critcss.services.oracle import ViewportSpec

logger = get_logger(__name__)

# Elements without a layout box (display: none, <head> content) are judged by
# their nearest rendered ancestor, so rules that hide above-the-fold content
# stay critical.
VISIBILITY_SCRIPT = """
(selector) => {
  let nodes;
  try {
    nodes = document.querySelectorAll(selector);
  } catch (e) {
    return { error: String((e && e.message) || e) };
  }

  const fold = window.innerHeight;

  const layoutBox = (el) => {
    let node = el;
    while (node && node.nodeType === Node.ELEMENT_NODE) {
      if (node.getClientRects().length) {
        return node.getBoundingClientRect();
      }
      node = node.parentElement;
    }
    return null;
  };

  for (const el of nodes) {
    const rect = layoutBox(el);
    if (rect && rect.top < fold) {
      return { visible: true };
    }
  }
  return { visible: false };
}
"""


class PlaywrightPage:
    """``VisibilityOracle`` over one loaded Playwright page."""

    def __init__(self, page: Page) -> None:
        self._page = page

    async def matches_visible(self, selector: str) -> bool:
        try:
            outcome = await self._page.evaluate(VISIBILITY_SCRIPT, selector)
        except PlaywrightError as exc:
            raise RenderError(f"Page query failed for selector {selector!r}: {exc}") from exc

        if outcome.get("error"):
            raise SelectorEvaluationError([selector], outcome["error"])
        return bool(outcome.get("visible"))


class PlaywrightRenderer:
    """Launches headless Chromium for each job and loads the target page."""

    def __init__(
        self,
        user_agent: Optional[str] = None,
        wait_until: Optional[str] = None,
        navigation_timeout_ms: Optional[int] = None,
        settle_ms: Optional[int] = None,
    ) -> None:
        self.user_agent = user_agent or settings.playwright_user_agent
        self.wait_until = wait_until or settings.playwright_wait_until
        self.navigation_timeout_ms = navigation_timeout_ms or settings.playwright_navigation_timeout_ms
        self.settle_ms = settings.playwright_settle_ms if settle_ms is None else settle_ms

    @asynccontextmanager
    async def render(self, url: str, viewport: ViewportSpec) -> AsyncIterator[PlaywrightPage]:
        """Yield an oracle for ``url`` rendered at ``viewport``; the browser closes on exit."""

        try:
            async with async_playwright() as playwright:
                browser = await playwright.chromium.launch(headless=True)
                try:
                    context = await browser.new_context(viewport=viewport.as_dict(), user_agent=self.user_agent)
                    page = await context.new_page()
                    await self._navigate(page, url)
                    yield PlaywrightPage(page)
                finally:
                    await browser.close()
        except PlaywrightError as exc:
            logger.warning("page_render_failed", url=url, error=str(exc))
            raise RenderError(f"Could not render {url}: {exc}", {"url": url}) from exc

    async def _navigate(self, page: Page, url: str) -> None:
        response = await page.goto(url, wait_until=self.wait_until, timeout=self.navigation_timeout_ms)
        if response is not None and response.status >= 400:
            raise RenderError(f"Page {url} responded with HTTP {response.status}", {"url": url, "status": response.status})
        if self.settle_ms:
            await page.wait_for_timeout(self.settle_ms)
        logger.debug("page_rendered", url=url)
