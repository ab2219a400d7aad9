"""Page-level text heuristics and HTML rendering used by the extractors."""

from __future__ import annotations

import re
from html import escape

_MATH_PATTERNS = [
    re.compile(r"[∫∑∏√±×÷≠≤≥∞∂∇∈∉⊂⊃∪∩]"),
    re.compile(r"\^\d+"),
    re.compile(r"_\{\d+\}"),
    re.compile(r"\([a-z]\s*[+\-*/]\s*[a-z]\)", re.IGNORECASE),
    re.compile(r"=\s*\d+"),
    re.compile(r"\d+\.?\d*\s*[×x]\s*10\^\d+", re.IGNORECASE),
    re.compile(r"[a-z]\s*=\s*[a-z]", re.IGNORECASE),
    re.compile(r"\b(sin|cos|tan|log|ln|exp)\s*\(", re.IGNORECASE),
    re.compile(r"∆|δ|θ|π|σ|μ|λ|Σ|Π"),
]
_TABLE_ROW = re.compile(r"\s{3,}|\t")
_LIST_ITEM = re.compile(r"^\d+\.|^[•\-*]")
_LIST_MARKER = re.compile(r"^(?:\d+\.|[•\-*])\s*")

UNTITLED = "Untitled Document"


def count_words(text: str) -> int:
    return len(text.split())


def detect_equations(text: str) -> bool:
    """Return True when *text* looks like it contains mathematical notation."""
    return any(pattern.search(text) for pattern in _MATH_PATTERNS)


def detect_tables(text: str) -> bool:
    """More than three lines with tabs or wide spacing count as a table."""
    return sum(1 for line in text.split("\n") if "\t" in line or re.search(r"\s{3,}", line)) > 3


def extract_title(text: str) -> str:
    """First non-empty line when it is short enough to be a title."""
    for line in text.split("\n"):
        line = line.strip()
        if line:
            return line if len(line) < 100 else UNTITLED
    return UNTITLED


def reflow(text: str) -> str:
    """Join lines broken mid-paragraph and squeeze blank runs and spaces."""
    if not text:
        return ""
    formatted = re.sub(r"\n{3,}", "\n\n", text)
    formatted = re.sub(r"([^\n])\n([^\n])", r"\1 \2", formatted)
    formatted = re.sub(r" {2,}", " ", formatted)
    return formatted.strip()


def paragraphs_to_html(text: str) -> str:
    """Render blank-line separated paragraphs as ``<p>`` elements."""
    return "\n".join(f"<p>{escape(p.strip())}</p>" for p in re.split(r"\n\n+", text))


def _inline(text: str) -> str:
    formatted = escape(text)
    formatted = re.sub(r"(\d+\.?\d*)\s*[×x]\s*10\^(\d+)", r"\1 × 10<sup>\2</sup>", formatted,
                       flags=re.IGNORECASE)
    formatted = re.sub(r"\^(\d+)", r"<sup>\1</sup>", formatted)
    formatted = re.sub(r"_(\d+)", r"<sub>\1</sub>", formatted)
    return formatted


def _table_html(rows: list[str]) -> str:
    if not rows:
        return ""
    parts = ["<table>"]
    for index, row in enumerate(rows):
        tag = "th" if index == 0 else "td"
        cells = [cell.strip() for cell in _TABLE_ROW.split(row) if cell.strip()]
        parts.append("  <tr>" + "".join(f"<{tag}>{escape(c)}</{tag}>" for c in cells) + "</tr>")
    parts.append("</table>")
    return "\n".join(parts) + "\n"


def text_to_html(text: str) -> str:
    """Render extracted page text as light-weight semantic HTML.

    Lines with tabs or runs of 3+ spaces become table rows, short
    all-caps lines become ``<h2>``, numbered or bulleted lines become list
    items, and everything else becomes a paragraph.
    """
    html: list[str] = []
    in_list = False
    table_rows: list[str] = []

    def close_list() -> None:
        nonlocal in_list
        if in_list:
            html.append("</ul>\n")
            in_list = False

    def close_table() -> None:
        if table_rows:
            html.append(_table_html(table_rows))
            table_rows.clear()

    # Table rows are detected on the raw lines; reflowing would merge them.
    for raw in text.split("\n"):
        line = raw.strip()
        if not line:
            close_list()
            close_table()
            continue

        if len(_TABLE_ROW.split(line)) > 1:
            close_list()
            table_rows.append(line)
            continue
        close_table()

        line = reflow(line)
        if line == line.upper() and 3 < len(line) < 100 and any(c.isalpha() for c in line):
            close_list()
            html.append(f"<h2>{escape(line)}</h2>\n")
        elif _LIST_ITEM.match(line):
            if not in_list:
                html.append("<ul>\n")
                in_list = True
            html.append(f"<li>{_inline(_LIST_MARKER.sub('', line, count=1))}</li>\n")
        else:
            close_list()
            html.append(f"<p>{_inline(line)}</p>\n")

    close_list()
    close_table()
    return "".join(html)
