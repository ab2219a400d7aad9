"""Unicode clean-up for text that leaves the process.

Python strings hold code points, but text decoded from PDFs or JSON can
still carry UTF-16 surrogate code points (``"\\ud83d\\ude00"``).  Vector
stores and JSON encoders reject those, so every string sent for
embedding or stored in a payload goes through :func:`sanitize` first.
"""

from __future__ import annotations

_HIGH_SURROGATES = range(0xD800, 0xDC00)
_LOW_SURROGATES = range(0xDC00, 0xE000)
_KEPT_CONTROLS = {"\t", "\n", "\r"}


def sanitize(text: str | None) -> str:
    """Return *text* with surrogates repaired and control characters blanked.

    * a high surrogate directly followed by a low surrogate is joined into
      the code point the pair encodes;
    * any other surrogate is dropped;
    * ASCII control characters other than tab, LF and CR become one space.
    """
    if not text:
        return ""

    out: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        code = ord(ch)
        if code in _HIGH_SURROGATES:
            if i + 1 < n and ord(text[i + 1]) in _LOW_SURROGATES:
                low = ord(text[i + 1])
                out.append(chr(0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00)))
                i += 2
                continue
            i += 1
            continue
        if code in _LOW_SURROGATES:
            i += 1
            continue
        if code < 32 and ch not in _KEPT_CONTROLS:
            out.append(" ")
        else:
            out.append(ch)
        i += 1
    return "".join(out)


def truncate(text: str | None, limit: int) -> str:
    """Return at most *limit* code points of the sanitized *text*.

    Sanitizing first collapses surrogate pairs into single code points, so
    the cut can never land between the two halves of a pair.
    """
    if limit <= 0:
        return ""
    return sanitize(text)[:limit]
