"""Fixed-size pages over a filtered entry sequence."""

import math
from typing import Sequence

from logpulse.models import LogEntry, Page

DEFAULT_PAGE_SIZE = 50


def total_pages(item_count: int, page_size: int = DEFAULT_PAGE_SIZE) -> int:
    """ceil(count / size), but never less than 1 so an empty table still shows "Page 1 of 1"."""
    return max(1, math.ceil(item_count / page_size))


def paginate(entries: Sequence[LogEntry], page: int, page_size: int = DEFAULT_PAGE_SIZE) -> Page:
    """Return the 1-based `page` of `entries`. Pages past the end are empty."""
    if page < 1:
        raise ValueError(f"page must be at least 1, got {page}")
    if page_size < 1:
        raise ValueError(f"page_size must be at least 1, got {page_size}")

    start = (page - 1) * page_size
    return Page(
        items=list(entries[start:start + page_size]),
        page=page,
        page_size=page_size,
        total_items=len(entries),
        total_pages=total_pages(len(entries), page_size),
    )
