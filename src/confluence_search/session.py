"""Session-scoped controller tying the search pipeline together."""

from datetime import date

from loguru import logger

from confluence_search.core.cache.summary_cache import ContentSummaryCache
from confluence_search.core.display.filter_sort import derive_display_list
from confluence_search.core.fetch.fetcher import PageReport, PaginatedResultFetcher
from confluence_search.core.query.builder import build_cql, filter_clauses, validate_search_text
from confluence_search.core.tree.builder import build_forest, collect_collapsed_ids, iter_nodes
from confluence_search.errors import NetworkError
from confluence_search.models.cache import CacheKey
from confluence_search.models.result import Creator, Result, Space
from confluence_search.models.state import FilterState, SortColumn, SortState
from confluence_search.models.tree import TreeNode
from confluence_search.protocols import SearchApiProtocol


class SearchSession:
    """Owns the result set (through the fetcher), filters, sort and collapse state.

    Filter changes that narrow the remote query reset the fetcher; free-text
    filtering and sorting only re-derive the display list.
    """

    def __init__(
        self,
        api: SearchApiProtocol,
        *,
        base_url: str,
        page_size: int,
        retries: int = 0,
    ) -> None:
        self.base_url = base_url
        self.fetcher = PaginatedResultFetcher(
            api, base_url=base_url, page_size=page_size, retries=retries
        )
        self.search_text = ""
        self.filters = FilterState()
        self.sort = SortState()
        self.collapsed_ids: set[str] = set()
        self.last_error: str | None = None

    @property
    def results(self) -> list[Result]:
        return list(self.fetcher.results)

    def _reset_fetch(self) -> None:
        cql = build_cql(self.search_text, self.filters) if self.search_text else None
        self.fetcher.reset(cql)
        self.sort = SortState()
        self.last_error = None

    def start_search(self, text: str) -> None:
        """Validate new search text and reset the fetch.

        Raises:
            ValidationError: If the text is rejected; the session is unchanged.
        """
        self.search_text = validate_search_text(text)
        logger.info("Starting new search for: {!r}", self.search_text)
        self._reset_fetch()

    def update_filters(self, **changes: str) -> bool:
        """Apply filter changes.

        Returns:
            True if a remote-narrowing filter changed and the fetch was reset.
        """
        updated = self.filters.with_changes(**changes)
        today = date.today()
        refetch = filter_clauses(updated, today=today) != filter_clauses(self.filters, today=today)
        self.filters = updated
        if refetch:
            logger.debug("Remote filters changed: {}", updated.remote_key())
            self._reset_fetch()
        return refetch

    def toggle_sort(self, column: SortColumn) -> SortState:
        self.sort = self.sort.toggled(column)
        logger.debug("Sorting by {} {}", self.sort.column, self.sort.order)
        return self.sort

    async def load_more(self) -> PageReport | None:
        """Fetch the next page; failures are recorded, not raised.

        Returns:
            The page report, or None if the fetch failed.
        """
        try:
            report = await self.fetcher.fetch_next_page()
        except NetworkError as e:
            self.last_error = str(e)
            logger.error("Failed to fetch results: {}", e)
            return None
        self.last_error = None
        return report

    async def load_pages(self, max_pages: int | None = None) -> int:
        """Fetch up to ``max_pages`` pages, stopping at the first failure."""
        pages = 0
        while not self.fetcher.exhausted and (max_pages is None or pages < max_pages):
            report = await self.load_more()
            if report is None or report.skipped or report.stale:
                break
            pages += 1
        return pages

    def display_list(self) -> list[Result]:
        return derive_display_list(self.fetcher.results, self.filters, self.sort)

    def forest(self) -> list[TreeNode]:
        """Rebuild the tree, keeping collapse state by id."""
        return build_forest(self.display_list(), collapsed_ids=self.collapsed_ids)

    def capture_collapsed(self, forest: list[TreeNode]) -> None:
        """Take collapse state from a forest the presentation has been mutating."""
        self.collapsed_ids = collect_collapsed_ids(forest)

    def toggle_collapsed(self, node_id: str) -> bool:
        """Flip one node; returns the new collapsed flag."""
        if node_id in self.collapsed_ids:
            self.collapsed_ids.discard(node_id)
            return False
        self.collapsed_ids.add(node_id)
        return True

    def set_all_expanded(self, expanded: bool) -> None:
        if expanded:
            self.collapsed_ids.clear()
        else:
            self.collapsed_ids = {n.id for n, _d in iter_nodes(self.forest()) if n.children}

    def available_spaces(self) -> list[Space]:
        return self.fetcher.results.spaces()

    def available_contributors(self) -> list[Creator]:
        return self.fetcher.results.contributors()

    def cache_key(self, content_id: str) -> CacheKey:
        return CacheKey(content_id, self.base_url)

    def cache_status(self, content_id: str, cache: ContentSummaryCache) -> bool:
        return cache.is_cached(self.cache_key(content_id))

    async def preload_cached_summaries(self, cache: ContentSummaryCache) -> set[str]:
        """Look up stored summaries for the current results without computing any.

        Returns:
            Ids of results with a cached summary.
        """
        cached: set[str] = set()
        for result in list(self.fetcher.results):
            if await cache.peek(self.cache_key(result.id)) is not None:
                cached.add(result.id)
        return cached
