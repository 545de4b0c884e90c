"""Page-token pagination shared by every remote listing.

A listing is driven one page at a time: each request carries the
continuation token of the previous reply, and the listing ends when the
token comes back empty or the caller's stop predicate fires.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TypeVar

from .models import Page

T = TypeVar("T")

FetchPage = Callable[[str], Awaitable[Page[T]]]
StopPredicate = Callable[[Page[T]], bool]


async def paginate(
    fetch_page: FetchPage[T],
    stop: StopPredicate[T] | None = None,
) -> AsyncIterator[Page[T]]:
    """Yield pages until the token runs out or stop(page) is true.

    Pages are requested lazily: a consumer that stops iterating stops the
    listing, and no further page is fetched. Errors from fetch_page
    propagate immediately.

    Args:
        fetch_page: Coroutine function taking a page token ("" for the
            first page) and returning a Page.
        stop: Optional predicate evaluated on each page after it is
            yielded. When true, no further page is requested.

    Yields:
        Each fetched Page, in request order.
    """
    page_token = ""
    while True:
        page = await fetch_page(page_token)
        yield page
        if stop is not None and stop(page):
            return
        if not page.next_page_token:
            return
        page_token = page.next_page_token


async def collect_items(pages: AsyncIterator[Page[T]]) -> list[T]:
    """Drain a paginator into a flat list of items."""
    items: list[T] = []
    async for page in pages:
        items.extend(page.items)
    return items
