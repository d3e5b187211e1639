"""Command line entry point: print the critical CSS of a page to stdout."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError

from critcss.core.config import settings
from critcss.core.errors import CriticalCSSError, ExtractionTimeoutError
from critcss.core.logging import configure_logging, get_logger
from critcss.models.critical_css import CriticalCSSRequest
from critcss.services.critical_css import CriticalCSSExtractor

logger = get_logger(__name__)

EXIT_ERROR = 1
EXIT_TIMEOUT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="critcss",
        description="Extract the above-the-fold CSS of a page.",
    )
    parser.add_argument("url", help="Page URL or local HTML file")
    parser.add_argument("css", help="Stylesheet path or URL")
    parser.add_argument("--width", type=int, default=settings.default_viewport_width)
    parser.add_argument("--height", type=int, default=settings.default_viewport_height)
    parser.add_argument("--timeout", type=int, default=settings.default_timeout_ms, help="Timeout in ms")
    parser.add_argument("--strict", action="store_true", help="Fail on malformed CSS")
    parser.add_argument(
        "--force-include",
        action="append",
        default=[],
        metavar="SELECTOR",
        help="Selector to always keep; /pattern/ for a regex. Repeatable.",
    )
    parser.add_argument("--max-embedded-base64-length", type=int, default=None)
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging on stderr")
    return parser


def main(argv: Optional[List[str]] = None, extractor: Optional[CriticalCSSExtractor] = None) -> int:
    args = build_parser().parse_args(argv)
    level = logging.DEBUG if args.verbose else logging.WARNING
    configure_logging(level, stream=sys.stderr, log_format="console")

    try:
        request = CriticalCSSRequest(
            url=args.url,
            css=args.css,
            width=args.width,
            height=args.height,
            timeout=args.timeout,
            strict=args.strict,
            force_include=args.force_include,
            max_embedded_base64_length=args.max_embedded_base64_length,
        )
    except ValidationError as exc:
        print(f"critcss: invalid options: {exc}", file=sys.stderr)
        return EXIT_ERROR

    logger.debug("cli_extraction_requested", url=request.url, viewport=f"{request.width}x{request.height}")
    extractor = extractor or CriticalCSSExtractor()
    try:
        result = asyncio.run(extractor.extract(request))
    except ExtractionTimeoutError as exc:
        print(f"critcss: {exc.message}", file=sys.stderr)
        return EXIT_TIMEOUT
    except CriticalCSSError as exc:
        print(f"critcss: {exc}", file=sys.stderr)
        return EXIT_ERROR

    sys.stdout.write(result.critical_css)
    if result.critical_css:
        sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
