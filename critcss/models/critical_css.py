"""Models for critical CSS extraction workflows."""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

from critcss.core.config import settings

from .job import JobStatus

PAGE_SCHEMES = {"http", "https", "file", "data", "about"}


class CriticalCSSRequest(BaseModel):
    """Options for a single extraction job."""

    url: str = Field(..., description="Page to render: http(s) or file URL, or a local path.")
    css: str = Field(..., description="Stylesheet path, http(s) URL or inline CSS text.")
    width: int = Field(default_factory=lambda: settings.default_viewport_width, gt=0)
    height: int = Field(default_factory=lambda: settings.default_viewport_height, gt=0)
    strict: bool = Field(default=False, description="Fail on malformed CSS instead of skipping it.")
    timeout: int = Field(
        default_factory=lambda: settings.default_timeout_ms,
        gt=0,
        description="Milliseconds before the job is aborted.",
    )
    force_include: List[str] = Field(
        default_factory=list,
        description="Selectors always kept. Entries written as /pattern/ are regular expressions.",
    )
    max_embedded_base64_length: Optional[int] = Field(
        default=None,
        ge=0,
        description="Drop declarations embedding base64 data URIs longer than this.",
    )

    @field_validator("url")
    @classmethod
    def normalize_url(cls, value: str) -> str:
        """Accept page URLs as-is and turn local paths into file URLs."""

        value = value.strip()
        if not value:
            raise ValueError("A page URL is required.")
        scheme = urlparse(value).scheme.lower()
        if scheme in PAGE_SCHEMES:
            return value
        # Single letter schemes are Windows drive letters.
        if len(scheme) > 1:
            raise ValueError(f"Unsupported URL scheme {scheme!r}.")
        return Path(value).expanduser().resolve().as_uri()


class DeferralInstructions(BaseModel):
    """Suggested snippet to load the full stylesheet without blocking render."""

    description: str
    snippet: str


class ExtractionStats(BaseModel):
    rules_total: int = 0
    rules_retained: int = 0
    selectors_total: int = 0
    selectors_retained: int = 0
    selectors_failed: int = 0
    diagnostics: int = 0


class CriticalCSSResult(BaseModel):
    """Result payload for completed CSS extraction jobs."""

    critical_css: str
    viewport: Dict[str, int] = Field(default_factory=dict)
    defer_instructions: Optional[DeferralInstructions] = None
    stats: ExtractionStats = Field(default_factory=ExtractionStats)


class CriticalCSSJobStatusResponse(BaseModel):
    """API response for CSS job status queries."""

    job_id: str
    status: JobStatus
    url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    result: Optional[CriticalCSSResult] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
