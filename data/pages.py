# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Joining paged API responses into a single ordered list.

The remote service returns long collections one fixed-size page at a time.
:func:`conjoin` asks for page 1, learns the declared total and page size
from it, and then fetches exactly as many further pages as the requested
count needs, strictly in order.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNBOUNDED = -1
"""Sentinel ``desired_count`` meaning "every record the remote declares"."""


class PageConsistencyError(Exception):
    """The remote returned fewer distinct records than it declared."""


@dataclass
class Page(Generic[T]):
    """One page of a remote collection."""

    items: list[T] = field(default_factory=list)
    total: int = 0
    items_per_page: int = 0
    page: int = 1


def _last_page(total: int, items_per_page: int) -> int:
    return math.ceil(total / items_per_page) if items_per_page > 0 else 1


def conjoin(
    desired_count: int,
    fetch_page: Callable[[int], Page[T]],
    key: Callable[[T], Hashable] | None = None,
) -> list[T]:
    """Fetch and concatenate pages until *desired_count* records are held.

    Args:
        desired_count: Number of records wanted, or :data:`UNBOUNDED`.
        fetch_page: Callback returning the 1-based page it is asked for.
        key: Optional identity function.  Records whose key was already seen
            are dropped, and further pages are fetched to make up the count.

    Returns:
        Exactly ``min(desired_count, total)`` records (``total`` for
        :data:`UNBOUNDED`) in remote order.

    Raises:
        ValueError: If *desired_count* is negative and not UNBOUNDED.
        PageConsistencyError: If the pages run out before the count is met.
    """
    if desired_count < 0 and desired_count != UNBOUNDED:
        raise ValueError(f"desired_count must be >= 0 or UNBOUNDED, got {desired_count}")
    if desired_count == 0:
        return []

    first = fetch_page(1)
    if desired_count == UNBOUNDED:
        effective = first.total
    else:
        effective = min(desired_count, first.total)
    if effective <= 0:
        return []

    items_per_page = first.items_per_page or len(first.items)
    last_page = _last_page(first.total, items_per_page)

    records: list[T] = []
    seen: set[Hashable] = set()

    def absorb(page: Page[T]) -> None:
        for item in page.items:
            if key is not None:
                item_key = key(item)
                if item_key in seen:
                    logger.warning("Dropping duplicate record %r on page %d",
                                   item_key, page.page)
                    continue
                seen.add(item_key)
            records.append(item)

    absorb(first)
    page_number = 1
    while len(records) < effective:
        page_number += 1
        if page_number > last_page:
            raise PageConsistencyError(
                f"Expected {effective} records but the remote only "
                f"returned {len(records)} across {last_page} pages"
            )
        absorb(fetch_page(page_number))

    return records[:effective]


def fetch_page_range(
    fetch_page: Callable[[int], Page[T]],
    first: int,
    last: int,
) -> list[T]:
    """Fetch pages *first*..*last* (inclusive) in order and concatenate."""
    records: list[T] = []
    for page_number in range(first, last + 1):
        records.extend(fetch_page(page_number).items)
    return records
