"""
Count-then-fetch page assembly.

Every search runs a count with the same predicate as the fetch, then fetches
the requested page only when the count says there is something to fetch.
The outcome separates "nothing matched" from "a store failed".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Generic, List, Optional, TypeVar

from phenobase.errors import StoreFailure
from phenobase.models import Page

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

NO_RESULTS_MESSAGE = "No results"


class Outcome(Enum):
    """How a search ended."""
    SUCCESS = "success"
    NO_RESULTS = "no_results"
    STORE_FAILURE = "store_failure"
    NOT_FOUND = "not_found"


@dataclass
class PageResult(Generic[T]):
    """One page of a search plus the information needed to page further."""
    items: List[T]
    page_size: int
    page: int
    total_count: int
    outcome: Outcome
    messages: List[str] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        if self.page_size == 0:
            return 0
        return -(-self.total_count // self.page_size)

    @property
    def has_more(self) -> bool:
        return (self.page + 1) * self.page_size < self.total_count

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @classmethod
    def success(cls, page: Page, items: List[T], total_count: int) -> "PageResult[T]":
        return cls(list(items), page.size, page.number, total_count, Outcome.SUCCESS)

    @classmethod
    def no_results(
        cls, page: Page, total_count: int = 0, messages: Optional[List[str]] = None
    ) -> "PageResult[T]":
        return cls(
            [], page.size, page.number, total_count, Outcome.NO_RESULTS,
            list(messages) if messages else [NO_RESULTS_MESSAGE],
        )

    @classmethod
    def not_found(cls, page: Page, messages: List[str]) -> "PageResult[T]":
        return cls([], page.size, page.number, 0, Outcome.NOT_FOUND, list(messages))

    @classmethod
    def failure(cls, page: Page, message: str, total_count: int = 0) -> "PageResult[T]":
        return cls([], page.size, page.number, total_count, Outcome.STORE_FAILURE, [message])

    def map(self, func: Callable[[T], "U"]) -> "PageResult[U]":
        """A copy of this result with every item transformed."""
        return PageResult(
            [func(item) for item in self.items],
            self.page_size, self.page, self.total_count, self.outcome, list(self.messages),
        )


def assemble(
    page: Page,
    count: Callable[[], Optional[int]],
    fetch: Callable[[], Optional[List[T]]],
) -> PageResult[T]:
    """
    Run ``count`` then, when useful, ``fetch`` and build the page result.

    - count fails or answers nothing -> STORE_FAILURE
    - count == 0 -> NO_RESULTS, fetch not called
    - page size 0 -> SUCCESS with the total only, fetch not called
    - page beyond the last row -> NO_RESULTS, fetch not called
    - fetch fails, answers nothing, or returns no row although the page is
      in range -> STORE_FAILURE
    """
    try:
        total = count()
    except StoreFailure as e:
        logger.error(f"Count failed: {e}")
        return PageResult.failure(page, str(e))
    if total is None:
        logger.error("Count returned no value")
        return PageResult.failure(page, "Count returned no value")

    if total == 0:
        return PageResult.no_results(page)
    if page.size == 0:
        return PageResult.success(page, [], total)
    if page.offset >= total:
        return PageResult.no_results(
            page, total, [f"Page {page.number} is out of range ({total} results)"]
        )

    try:
        items = fetch()
    except StoreFailure as e:
        logger.error(f"Fetch failed: {e}")
        return PageResult.failure(page, str(e), total)
    if not items:
        logger.error(f"Fetch returned no rows although count is {total}")
        return PageResult.failure(
            page, f"Store returned no rows for page {page.number} although {total} match", total
        )
    return PageResult.success(page, items, total)
