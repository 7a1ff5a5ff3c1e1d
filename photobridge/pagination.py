from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional

import structlog

from photobridge.errors import CredentialAcquisitionError, FetchError, ValidationError

log = structlog.stdlib.get_logger()


@dataclass
class Page:
    """
    One listing response. Page-numbered APIs set total_pages,
    token APIs set next_cursor (None on the last page).
    """
    items: List[Any] = field(default_factory=list)
    total_pages: Optional[int] = None
    next_cursor: Optional[str] = None


# fetch_page(page_number, cursor) -> Page
FetchPage = Callable[[int, Optional[str]], Page]


class PaginatedFetcher:
    """
    Walks a paginated listing one page at a time and returns every item.
    """

    def __init__(self, fetch_page: FetchPage, what: str = "listing"):
        self.fetch_page = fetch_page
        self.what = what

    def fetch_all(self) -> list:
        """
        Request page 1, then the following pages strictly in order until
        total_pages is reached or no cursor is returned. Items are
        concatenated in arrival order. Any failure discards what was read.
        """
        items = []
        page_number = 1
        cursor = None

        while True:
            try:
                page = self.fetch_page(page_number, cursor)
            except (FetchError, CredentialAcquisitionError, ValidationError):
                raise
            except Exception as e:
                raise FetchError(f"Failed to fetch {self.what} page {page_number}: {e}") from e

            items.extend(page.items)
            log.debug("page_fetched", what=self.what, page=page_number, items=len(page.items))

            if page.total_pages is not None:
                if page_number >= page.total_pages:
                    break
            elif not page.next_cursor:
                break

            cursor = page.next_cursor
            page_number += 1

        return items


def fetch_all_over(subqueries: Iterable, make_fetch_page: Callable[[Any], FetchPage], what: str = "listing") -> list:
    """
    Run one full listing per sub-query, one after another, and concatenate.
    No sub-queries means no requests and an empty result.
    """
    items = []
    for subquery in subqueries:
        fetcher = PaginatedFetcher(make_fetch_page(subquery), what=f"{what} ({subquery})")
        items.extend(fetcher.fetch_all())
    return items
