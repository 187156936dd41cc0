"""Heading-delimited section reconciliation.

A *section* is the run of lines owned by one heading: from the heading line
up to (not including) the next heading whose level is the same or higher,
or the end of the document. These functions replace or remove exactly that
run and leave every other line untouched. Heading positions come from the
document store's heading index; the text itself is never re-parsed for
structure.

All functions are pure ``text -> text`` transforms so callers can commit the
result through a single atomic write.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from incident_sync.core.models import HeadingInfo

_BLANK_RUN = re.compile(r"\n{3,}")
_LEADING_HASHES = re.compile(r"^#+\s*")


def header_text(section_header: str) -> str:
    """Heading text of a configured header: ``"## Incidents"`` -> ``"Incidents"``."""
    return _LEADING_HASHES.sub("", section_header.strip()).strip()


def find_section(headings: Sequence[HeadingInfo], section_header: str) -> HeadingInfo | None:
    target = header_text(section_header)
    for heading in headings:
        if heading.heading.strip() == target:
            return heading
    return None


def section_bounds(headings: Sequence[HeadingInfo], heading: HeadingInfo, line_count: int) -> tuple[int, int]:
    """Half-open ``[start, end)`` line range owned by ``heading``."""
    start = min(heading.line, line_count)
    end = line_count
    for other in sorted(headings, key=lambda h: h.line):
        if other.line > heading.line and other.level <= heading.level:
            end = min(other.line, line_count)
            break
    return start, end


def _locate(text: str, headings: Sequence[HeadingInfo], section_header: str):
    lines = text.split("\n")
    heading = find_section(headings, section_header)
    # A stale index can point past the end of the current text
    if heading is None or heading.line >= len(lines):
        return lines, None
    return lines, section_bounds(headings, heading, len(lines))


def replace_section(text: str, headings: Sequence[HeadingInfo], section_header: str, body: str) -> str:
    """Swap the section's lines for ``body``, or append ``body`` when absent.

    ``body`` includes its own heading line. A blank line separates the body
    from non-empty neighbouring content on either side.
    """
    lines, bounds = _locate(text, headings, section_header)
    body = body.rstrip("\n")
    if bounds is None:
        if not text:
            return body
        return text + "\n\n" + body

    start, end = bounds
    before = lines[:start]
    after = lines[end:]

    out = ""
    if before:
        out = "\n".join(before) + "\n"
        if before[-1].strip():
            out += "\n"
    out += body
    if any(line.strip() for line in after):
        out += "\n\n" + "\n".join(after)
    return out


def remove_section(text: str, headings: Sequence[HeadingInfo], section_header: str) -> str:
    """Drop the section entirely; text is returned unchanged when it is absent."""
    lines, bounds = _locate(text, headings, section_header)
    if bounds is None:
        return text
    start, end = bounds
    content = "\n".join(lines[:start] + lines[end:])
    return _BLANK_RUN.sub("\n\n", content).rstrip()


def reconcile_section(text: str, headings: Sequence[HeadingInfo], section_header: str, body: str) -> str:
    """Replace the section with ``body``; an empty ``body`` removes it."""
    if not body.strip():
        return remove_section(text, headings, section_header)
    return replace_section(text, headings, section_header, body)
