"""Drains a cursor-paginated search endpoint into one ordered sequence."""

from __future__ import annotations

import logging
from typing import Any, Callable, Hashable, List, Mapping, Optional, Set, TypeVar

from src.shared.batch.errors import PlatformQueryError

logger = logging.getLogger(__name__)

T = TypeVar("T")

PageFetcher = Callable[[str, Optional[str]], Mapping[str, Any]]


def collect_search_results(
    query: str,
    fetch_page: PageFetcher,
    *,
    key: Optional[Callable[[Any], Hashable]] = None,
) -> List[Any]:
    """Return every result of ``query`` across all pages, in page order.

    ``fetch_page(query, page_token)`` must return a mapping with ``results``
    and optionally ``nextPageToken`` and ``error``. A response carrying an
    error aborts the whole search; partial results are never returned.

    Args:
        query: Query forwarded to every page request
        fetch_page: Page request function
        key: Optional identity function; later duplicates are dropped

    Raises:
        PlatformQueryError: If a page reports an error or a page token repeats
    """
    results: List[Any] = []
    seen_keys: Set[Hashable] = set()
    seen_tokens: Set[str] = set()
    page_token: Optional[str] = None
    pages = 0

    while True:
        response = fetch_page(query, page_token)
        pages += 1
        error = response.get("error")
        if error is not None:
            raise PlatformQueryError(f"Search query failed on page {pages}: {error}", payload=error)

        for item in response.get("results") or []:
            if key is not None:
                identity = key(item)
                if identity in seen_keys:
                    continue
                seen_keys.add(identity)
            results.append(item)

        page_token = response.get("nextPageToken") or None
        if not page_token:
            break
        if page_token in seen_tokens:
            raise PlatformQueryError(f"Search returned page token {page_token!r} twice")
        seen_tokens.add(page_token)

    logger.debug("Search returned %d results over %d pages", len(results), pages)
    return results
