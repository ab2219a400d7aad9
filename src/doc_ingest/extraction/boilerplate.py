"""Running header / footer detection.

Repeated first or last lines across pages (book titles, "Confidential",
chapter names) pollute embeddings.  Detection is a plain frequency count
over exact strings; "Page 3" and "Page 4" are different lines and are
never merged.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

MIN_PAGES = 3
MIN_OCCURRENCES = 3
PAGE_SHARE = 0.4
MIN_LINE_LENGTH = 4
MAX_LINE_LENGTH = 199


@dataclass
class Boilerplate:
    """Lines classified as running headers and footers."""

    headers: list[str] = field(default_factory=list)
    footers: list[str] = field(default_factory=list)


def _boundary_lines(text: str) -> tuple[str, str] | None:
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    if not lines:
        return None
    return lines[0], lines[-1]


def _frequent(lines: Iterable[str], threshold: float) -> list[str]:
    counts = Counter(
        line for line in lines if MIN_LINE_LENGTH <= len(line) <= MAX_LINE_LENGTH
    )
    return [line for line, count in counts.items() if count >= threshold]


def detect_headers_footers(page_texts: list[str]) -> Boilerplate:
    """Find lines repeated at the top or bottom of many pages.

    A first line is a header, and a last line a footer, when it occurs on
    at least ``max(3, 0.4 * len(page_texts))`` pages and is 4 to 199
    characters long.  Documents with fewer than three pages have none.
    """
    if len(page_texts) < MIN_PAGES:
        return Boilerplate()

    first_lines: list[str] = []
    last_lines: list[str] = []
    for text in page_texts:
        boundary = _boundary_lines(text)
        if boundary is None:
            continue
        first_lines.append(boundary[0])
        last_lines.append(boundary[1])

    threshold = max(MIN_OCCURRENCES, len(page_texts) * PAGE_SHARE)
    result = Boilerplate(
        headers=_frequent(first_lines, threshold),
        footers=_frequent(last_lines, threshold),
    )
    if result.headers or result.footers:
        logger.info(
            "Detected %d header(s) and %d footer(s)", len(result.headers), len(result.footers)
        )
    return result


def remove_boilerplate(text: str, headers: Iterable[str], footers: Iterable[str]) -> str:
    """Strip detected headers from line starts and footers from line ends."""
    cleaned = text
    for header in headers:
        cleaned = re.sub(rf"^{re.escape(header)}\n?", "", cleaned, flags=re.MULTILINE)
    for footer in footers:
        cleaned = re.sub(rf"{re.escape(footer)}\n?$", "", cleaned, flags=re.MULTILINE)
    return cleaned.strip()
