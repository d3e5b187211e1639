"""Interfaces between the extraction pipeline and a rendered page."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncContextManager, Protocol


@dataclass(frozen=True)
class ViewportSpec:
    """The above-the-fold box visibility is judged against."""

    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Viewport dimensions must be positive, got {self.width}x{self.height}")

    def as_dict(self) -> dict:
        return {"width": self.width, "height": self.height}


class VisibilityOracle(Protocol):
    """Answers whether a selector matches an element above the fold."""

    async def matches_visible(self, selector: str) -> bool:
        """Return True if at least one element matching ``selector`` is above the fold.

        Raises ``SelectorEvaluationError`` if the selector cannot be evaluated
        and ``RenderError`` if the page itself is no longer usable.
        """
        ...


class PageRenderer(Protocol):
    """Renders one page per job and exposes it as a ``VisibilityOracle``."""

    def render(self, url: str, viewport: ViewportSpec) -> AsyncContextManager[VisibilityOracle]:
        ...
