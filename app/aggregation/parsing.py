"""
Request body parsing for newline-delimited URL lists.
"""

from __future__ import annotations

from app.aggregation.types import LINE_BREAK


def parse_request_lines(body: bytes | str) -> list[str]:
    """
    Split a request body into the URLs it lists, one per non-empty line.

    Only line separators are removed: `\\n`, plus one `\\r` directly before
    it. Lines are otherwise kept verbatim, so a line holding a single space
    is still a URL (and will fail to fetch). Bytes that are not valid UTF-8
    are carried through as surrogate escapes; the fetcher rejects such URLs.
    """

    if isinstance(body, bytes):
        text = body.decode("utf-8", errors="surrogateescape")
    else:
        text = body

    lines: list[str] = []
    for raw_line in text.split(LINE_BREAK):
        line = raw_line[:-1] if raw_line.endswith("\r") else raw_line
        if line:
            lines.append(line)
    return lines
