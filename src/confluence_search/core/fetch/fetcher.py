"""Incremental, deduplicating retrieval of search result pages."""

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from loguru import logger

from confluence_search.errors import NetworkError
from confluence_search.models.result import Result, ResultSet
from confluence_search.protocols import SearchApiProtocol


class FetchState(StrEnum):
    IDLE = "idle"
    FETCHING = "fetching"
    EXHAUSTED = "exhausted"
    ERROR = "error"


@dataclass(frozen=True)
class PageReport:
    """Outcome of one ``fetch_next_page`` call."""

    returned: int = 0
    added: int = 0
    skipped: bool = False
    stale: bool = False


def parse_search_page(data: dict[str, Any], base_url: str) -> tuple[list[Result], int | None]:
    """Extract results and the server-reported total from a search response.

    Raises:
        NetworkError: If the response does not have the expected shape.
    """
    items = data.get("results")
    if items is None:
        items = data.get("items")
    if not isinstance(items, list):
        msg = f"Malformed search response, keys: {sorted(data)!r}"
        raise NetworkError(msg)
    total = data.get("totalSize", data.get("totalCount"))
    try:
        results = [Result.from_api(item, base_url) for item in items]
    except (KeyError, TypeError, AttributeError) as e:
        msg = f"Malformed search result item: {e!r}"
        raise NetworkError(msg) from e
    return results, total if isinstance(total, int) else None


class PaginatedResultFetcher:
    """Drive paginated search requests for one query at a time.

    At most one request is in flight, and none is issued once the server has
    reported no more results. Each ``reset`` starts a new generation; responses
    belonging to an older generation are dropped on arrival.
    """

    def __init__(
        self,
        api: SearchApiProtocol,
        *,
        base_url: str,
        page_size: int,
        retries: int = 0,
    ) -> None:
        self._api = api
        self.base_url = base_url
        self.page_size = page_size
        self.retries = max(0, retries)

        self.results = ResultSet()
        self.state = FetchState.IDLE
        self.offset = 0
        self.total: int | None = None
        self.generation = 0
        self.cql: str | None = None
        self.last_error: NetworkError | None = None

    @property
    def exhausted(self) -> bool:
        return self.state is FetchState.EXHAUSTED

    def reset(self, cql: str | None) -> None:
        """Discard accumulated results and start over with a new query."""
        self.generation += 1
        self.cql = cql
        self.results = ResultSet()
        self.offset = 0
        self.total = None
        self.last_error = None
        self.state = FetchState.IDLE
        logger.debug("Fetcher reset (generation {})", self.generation)

    async def _request(self, cql: str, offset: int) -> tuple[list[Result], int | None]:
        attempt = 0
        while True:
            try:
                data = await self._api.search(cql, limit=self.page_size, offset=offset)
                return parse_search_page(data, self.base_url)
            except NetworkError as e:
                if attempt >= self.retries:
                    raise
                attempt += 1
                logger.info("Retrying page at offset {} after error: {}", offset, e)

    async def fetch_next_page(self) -> PageReport:
        """Fetch and merge the next page.

        Raises:
            NetworkError: If the request fails. Offset and results are unchanged.
        """
        if self.cql is None or self.state in (FetchState.FETCHING, FetchState.EXHAUSTED):
            return PageReport(skipped=True)

        self.state = FetchState.FETCHING
        generation, cql, offset = self.generation, self.cql, self.offset
        logger.debug("Fetching page at offset {} (generation {})", offset, generation)

        try:
            items, total = await self._request(cql, offset)
        except NetworkError as e:
            if generation != self.generation:
                logger.debug("Dropping failure from stale generation {}: {}", generation, e)
                return PageReport(stale=True)
            self.state = FetchState.ERROR
            self.last_error = e
            logger.warning("Page fetch at offset {} failed: {}", offset, e)
            raise
        except asyncio.CancelledError:
            if generation == self.generation:
                self.state = FetchState.IDLE
            raise

        if generation != self.generation:
            logger.debug("Discarding {} results from stale generation {}", len(items), generation)
            return PageReport(returned=len(items), stale=True)

        added = sum(1 for r in items if self.results.add(r))
        if self.total is None:
            self.total = total
        self.offset += len(items)
        self.last_error = None

        if not items or (self.total is not None and self.offset >= self.total):
            self.state = FetchState.EXHAUSTED
        else:
            self.state = FetchState.IDLE

        if added < len(items):
            logger.debug("Skipped {} duplicate results", len(items) - added)
        logger.debug(
            "Fetched {} results ({} new). Offset {} of {}",
            len(items),
            added,
            self.offset,
            self.total if self.total is not None else "?",
        )
        return PageReport(returned=len(items), added=added)

    async def fetch_all(self, *, max_pages: int | None = None) -> int:
        """Fetch pages until exhausted or ``max_pages`` requests were made.

        Returns:
            Number of page requests issued.
        """
        pages = 0
        while not self.exhausted and (max_pages is None or pages < max_pages):
            report = await self.fetch_next_page()
            if report.skipped or report.stale:
                break
            pages += 1
        return pages
