"""Materialize paged API collections."""
import logging
from dataclasses import dataclass, field
from typing import Callable, Generic, TypeVar

from .exceptions import StructuralMismatch

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class PagedResult(Generic[T]):
    items: list[T] = field(default_factory=list)
    page: int = 0
    size: int = 0
    total_count: int = 0

    @classmethod
    def from_json(
        cls,
        data: dict,
        items_key: str,
        total_key: str,
        item_factory: Callable[[dict], T] | None = None,
    ) -> "PagedResult[T]":
        """
        Build a page from an API payload.

        The collection and total fields are named per resource, e.g.
        ``ratingItems``/``totalRatings`` or ``viewedItems``/``vhSize``.
        """
        try:
            raw_items = data.get(items_key) or []
            page = int(data["page"])
            size = int(data["size"])
            total = int(data[total_key])
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise StructuralMismatch(f"Unexpected page payload (missing {e})") from e
        items = [item_factory(item) for item in raw_items] if item_factory else list(raw_items)
        return cls(items=items, page=page, size=size, total_count=total)


class PaginatedCollector(Generic[T]):
    """
    Fetch every page of a collection in order.

    ``fetch_page(page)`` returns a ``PagedResult``; the next page number and
    the page count come from what the server reports, so pages must be
    fetched one after another.
    """

    def __init__(
        self,
        fetch_page: Callable[[int], PagedResult[T]],
        on_page: Callable[[PagedResult[T]], None] | None = None,
    ):
        self.fetch_page = fetch_page
        self.on_page = on_page
        self.fetches = 0

    def collect(self) -> list[T]:
        items: list[T] = []
        page = 0
        pages = 1

        while page < pages:
            result = self.fetch_page(page)
            self.fetches += 1
            items.extend(result.items)
            if self.on_page:
                self.on_page(result)

            if result.size <= 0:
                logger.warning(f"Page {result.page} reported size {result.size}, stopping")
                break
            page = result.page + 1
            pages = result.total_count // result.size + 1
            logger.debug(f"  Page {result.page}: {len(result.items)} items ({page}/{pages})")

        return items


def collect_pages(
    fetch_page: Callable[[int], PagedResult[T]],
    on_page: Callable[[PagedResult[T]], None] | None = None,
) -> list[T]:
    return PaginatedCollector(fetch_page, on_page).collect()
