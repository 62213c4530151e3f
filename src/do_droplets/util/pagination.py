from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generator, Generic, List, Mapping, Optional, Protocol, Sequence, Set, TypeVar
from urllib.parse import parse_qs, urlparse

from ..logging import get_logger
from .errors import PaginationError, PaginationLimitError

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

LOG = get_logger(__name__)

DEFAULT_PER_PAGE = 200
DEFAULT_MAX_PAGES = 1000


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE


@dataclass(frozen=True)
class PageInfo:
    next_request: Optional[PageRequest] = None
    total: Optional[int] = None

    @property
    def has_next(self) -> bool:
        return self.next_request is not None


@dataclass(frozen=True)
class Page(Generic[T]):
    items: Sequence[T]
    info: PageInfo


class PageFetcher(Protocol[T_co]):
    """
    Returns one page of a listing for the given request.
    Each call issues exactly one provider request and raises on failure.
    """

    def __call__(self, request: PageRequest) -> Page[T_co]:
        ...


def _int_param(query: Mapping[str, List[str]], name: str) -> Optional[int]:
    values = query.get(name)
    if not values:
        return None
    try:
        return int(values[0])
    except (TypeError, ValueError):
        return None


def page_info_from_links(links: Optional[Mapping[str, Any]], current: PageRequest, total: Optional[int] = None) -> PageInfo:
    """
    Read pagination metadata from a provider "links" object:
      {"pages": {"next": "https://.../v2/droplets?page=2&per_page=200", "last": ...}}
    A missing "next" link means the current page is the last one.
    """
    pages = (links or {}).get("pages") or {}
    next_url = pages.get("next") if isinstance(pages, Mapping) else None
    if not next_url:
        return PageInfo(next_request=None, total=total)

    query = parse_qs(urlparse(str(next_url)).query)
    page = _int_param(query, "page")
    if page is None or page < 1:
        raise PaginationError(f"Next page link has no usable page number: {next_url}")
    per_page = _int_param(query, "per_page") or current.per_page
    return PageInfo(next_request=PageRequest(page=page, per_page=per_page), total=total)


def response_page(response: Mapping[str, Any], key: str, request: PageRequest) -> Page[Any]:
    """
    Build a Page from a provider list response, e.g. {"droplets": [...], "links": {...}, "meta": {"total": 3}}.
    """
    items = response.get(key) or []
    meta = response.get("meta") or {}
    total = meta.get("total") if isinstance(meta, Mapping) else None
    return Page(items=list(items), info=page_info_from_links(response.get("links"), request, total))


def paginate(
    fetch: PageFetcher[T],
    *,
    per_page: int = DEFAULT_PER_PAGE,
    max_pages: int = DEFAULT_MAX_PAGES,
    max_items: Optional[int] = None,
) -> Generator[T, None, None]:
    """
    Generic paginator yielding items from fetch(PageRequest), page by page.
    The next request is taken from the page metadata; iteration stops when a
    page reports no successor. Fetch errors propagate unchanged.

    Raises PaginationLimitError when more than max_pages pages (or more than
    max_items items) would be needed, and PaginationError when the metadata
    points back at a page that was already fetched.
    """
    if per_page < 1:
        raise ValueError("per_page must be >= 1")
    if max_pages < 1:
        raise ValueError("max_pages must be >= 1")

    request: Optional[PageRequest] = PageRequest(page=1, per_page=per_page)
    fetched: Set[int] = set()
    count = 0
    while request is not None:
        if len(fetched) >= max_pages:
            raise PaginationLimitError(f"Listing exceeded {max_pages} pages; provider keeps reporting a next page")
        page = fetch(request)
        fetched.add(request.page)
        count += len(page.items)
        LOG.debug(
            "Fetched page",
            extra={"page": request.page, "per_page": request.per_page, "items": len(page.items)},
        )
        if max_items is not None and count > max_items:
            raise PaginationLimitError(f"Listing exceeded {max_items} items")
        yield from page.items

        request = page.info.next_request
        if request is not None and request.page in fetched:
            raise PaginationError(f"Provider pointed back at already fetched page {request.page}")


def collect(
    fetch: PageFetcher[T],
    *,
    per_page: int = DEFAULT_PER_PAGE,
    max_pages: int = DEFAULT_MAX_PAGES,
    max_items: Optional[int] = None,
) -> List[T]:
    """
    Drive fetch to exhaustion and return every item in page order.
    All-or-nothing: any error discards the items gathered so far.
    """
    return list(paginate(fetch, per_page=per_page, max_pages=max_pages, max_items=max_items))
