"""Pagination cursor parsed from the ``Content-Range`` response header."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Mapping

from .model import PaginationHeaderError

HEADER_CONTENT_RANGE = "Content-Range"


@dataclass(frozen=True, slots=True)
class Cursor:
    last_item: int      # index of the last item in this page
    total_items: int

    def has_next(self) -> bool:
        return self.total_items - 1 > self.last_item

    @property
    def next_offset(self) -> int:
        # The API resumes *after* the given index, so the last returned
        # index is sent as-is.
        return self.last_item


def _strip_unit(value: str) -> str:
    """Drop a leading range unit, e.g. ``items 0-99/250`` -> ``0-99/250``."""
    unit, sep, rest = value.partition(" ")
    if sep and unit.isalpha():
        return rest.strip()
    return value


def parse_content_range(value: str | None) -> Cursor:
    """Parse ``<first>-<last>/<total>`` into a :class:`Cursor`."""
    if value is None:
        raise PaginationHeaderError(f"response has no {HEADER_CONTENT_RANGE} header")

    content_range = _strip_unit(value.strip())
    full = content_range.split("/")
    if len(full) != 2:
        raise PaginationHeaderError(f"malformed {HEADER_CONTENT_RANGE} header: {value!r}")
    bounds = full[0].split("-")
    if len(bounds) != 2:
        raise PaginationHeaderError(f"malformed {HEADER_CONTENT_RANGE} header: {value!r}")

    # Digits only: int() would also take signs, underscores and spaces.
    if not all(s.isascii() and s.isdigit() for s in (bounds[0], bounds[1], full[1])):
        raise PaginationHeaderError(f"malformed {HEADER_CONTENT_RANGE} header: {value!r}")
    last_item = int(bounds[1])
    total_items = int(full[1])

    return Cursor(last_item=last_item, total_items=total_items)


def parse_cursor(headers: Mapping[str, str]) -> Cursor:
    """Resolve the cursor from case-insensitive response headers."""
    return parse_content_range(headers.get(HEADER_CONTENT_RANGE))
