"""Confluence search client: paginated search, result trees and cached AI summaries."""

from confluence_search.api import ConfluenceApi
from confluence_search.core.cache.summary_cache import ContentSummaryCache
from confluence_search.core.fetch.fetcher import PaginatedResultFetcher
from confluence_search.protocols import (
    AiAdapterProtocol,
    ContentApiProtocol,
    SearchApiProtocol,
)
from confluence_search.session import SearchSession

__all__ = [
    "AiAdapterProtocol",
    "ConfluenceApi",
    "ContentApiProtocol",
    "ContentSummaryCache",
    "PaginatedResultFetcher",
    "SearchApiProtocol",
    "SearchSession",
]
