"""MCP server exposing Confluence search, summary and Q&A tools."""

import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from confluence_search.api import ConfluenceApi
from confluence_search.config import CONFLUENCE_TOKEN_FILES, Settings, load_settings, read_first_token
from confluence_search.core.ai.adapter import OpenAIChatAdapter
from confluence_search.core.ai.service import SummaryService
from confluence_search.core.cache.conversation_store import ConversationStore
from confluence_search.core.cache.summary_cache import ContentSummaryCache
from confluence_search.core.database.store import (
    SqliteConversationStore,
    SqliteSummaryStore,
    open_cache_db,
)
from confluence_search.core.tree.markdown import render_forest_as_markdown
from confluence_search.errors import NetworkError, StoreError, ValidationError
from confluence_search.models.result import Result
from confluence_search.session import SearchSession


def _serialize_result(r: Result, *, detailed: bool) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "id": r.id,
        "title": r.title,
        "type": r.type_label,
        "url": r.url,
        "space": r.space.name if r.space else None,
        "modified": r.modified_at.isoformat() if r.modified_at else None,
    }
    if detailed:
        entry["contributor"] = r.creator.display_name if r.creator else None
        entry["created"] = r.created_at.isoformat() if r.created_at else None
        entry["breadcrumbs"] = " > ".join(a.title for a in r.ancestors)
    return entry


async def _load_result(api: ConfluenceApi, content_id: str) -> Result:
    data = await api.get_content(content_id)
    return Result.from_api(data, api.base_url)


# --- Core functions (testable without MCP context) ---


async def confluence_search_tool(
    api: ConfluenceApi,
    *,
    query: str,
    space: str = "",
    contributor: str = "",
    date_range: str = "any",
    content_type: str = "",
    page_size: int = 25,
    pages: int = 1,
    retries: int = 0,
    cache: ContentSummaryCache | None = None,
    output_format: str = "json",
) -> dict[str, Any]:
    """Search Confluence and return results with their ancestor tree.

    Args:
        query: Search text.
        space: Space key filter.
        contributor: Creator key filter.
        date_range: "any", or a window like "1d", "1w", "1m", "1y".
        content_type: "page", "blogpost", "attachment" or "comment".
        page_size: Results per request (1-100).
        pages: Pages to fetch (1-10).
        retries: Immediate retries of a failed page request.
        output_format: "json" (flat list) or "markdown" (tree).
    """
    session = SearchSession(
        api,
        base_url=api.base_url,
        page_size=max(1, min(page_size, 100)),
        retries=max(0, retries),
    )
    try:
        session.update_filters(
            space_key=space,
            contributor_key=contributor,
            date_range=date_range,
            type_filter=content_type,
        )
        session.start_search(query)
    except ValidationError as e:
        return {"error": str(e), "results": [], "count": 0, "total": 0}

    await session.load_pages(max(1, min(pages, 10)))
    if session.last_error and not session.results:
        return {"error": session.last_error, "results": [], "count": 0, "total": 0}

    cached_ids = await session.preload_cached_summaries(cache) if cache is not None else set()
    display = session.display_list()
    output: dict[str, Any] = {
        "count": len(display),
        "total": session.fetcher.total,
        "has_more": not session.fetcher.exhausted,
    }
    if output_format == "markdown":
        output["markdown"] = render_forest_as_markdown(session.forest(), cached_ids=cached_ids)
    else:
        output["results"] = [
            {**_serialize_result(r, detailed=True), "summary_cached": r.id in cached_ids}
            for r in display
        ]
    return output


async def confluence_summarize_tool(
    api: ConfluenceApi,
    service: SummaryService,
    *,
    content_id: str,
    regenerate: bool = False,
) -> dict[str, Any]:
    """Summarise one content item, reusing the cached summary unless told otherwise."""
    try:
        result = await _load_result(api, content_id)
        if regenerate:
            entry = await service.regenerate(result)
        else:
            entry = await service.summarize(result)
    except NetworkError as e:
        return {"error": str(e)}
    return {
        **_serialize_result(result, detailed=False),
        "summary": entry.summary_text,
        "cached_at": entry.stored_at,
    }


async def confluence_ask_tool(
    api: ConfluenceApi,
    service: SummaryService,
    *,
    content_id: str,
    question: str,
) -> dict[str, Any]:
    """Ask a follow-up question about a content item's summary."""
    try:
        result = await _load_result(api, content_id)
        answer = await service.ask(result, question)
    except (NetworkError, ValidationError) as e:
        return {"error": str(e)}
    history = await service.conversation(result)
    return {
        "id": result.id,
        "title": result.title,
        "answer": answer,
        "turns": len(history) // 2,
    }


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    settings: Settings
    api: ConfluenceApi | None
    cache: ContentSummaryCache
    service: SummaryService | None
    conn: sqlite3.Connection | None


def _build_context(settings: Settings, conn: sqlite3.Connection | None) -> ServerContext:
    if conn is None:
        cache, conversations = ContentSummaryCache(None), ConversationStore(None)
    else:
        cache = ContentSummaryCache(SqliteSummaryStore(conn))
        conversations = ConversationStore(SqliteConversationStore(conn))

    api: ConfluenceApi | None = None
    if settings.base_url:
        try:
            api = ConfluenceApi(settings.base_url, token=read_first_token(CONFLUENCE_TOKEN_FILES))
        except ValidationError as e:
            logger.error("Invalid base URL: {}", e)

    service: SummaryService | None = None
    if api is not None and settings.summaries_enabled:
        service = SummaryService(
            api,
            OpenAIChatAdapter(api_key=settings.openai_api_key, api_url=settings.api_endpoint),
            cache,
            conversations,
            origin=api.base_url,
            model=settings.model,
            custom_prompt=settings.custom_user_prompt,
        )
    return ServerContext(settings=settings, api=api, cache=cache, service=service, conn=conn)


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Open the cache database on startup, close on shutdown."""
    settings = load_settings()
    try:
        conn: sqlite3.Connection | None = open_cache_db(settings.data_dir)
    except StoreError as e:
        logger.warning("Summary cache unavailable, using memory only: {}", e)
        conn = None
    try:
        yield _build_context(settings, conn)
    finally:
        if conn is not None:
            conn.close()


mcp_server = FastMCP(
    "confluence-search",
    instructions="""\
Confluence search results are pages, blog posts, attachments and comments.
Each result carries its ancestor chain, so related results group into trees.

1. Search with confluence_search_tool. Use output_format="markdown" to see
   results grouped under their ancestor pages.
2. Call confluence_summarize_tool on interesting result ids. Summaries are
   cached, so repeated calls are cheap.
3. Use confluence_ask_tool for follow-up questions about one item.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


_NO_BASE_URL = {"error": "No Confluence base URL configured (set CONFLUENCE_BASE_URL)."}
_NO_SUMMARIES = {"error": "Summaries are disabled or the OpenAI API key is not set."}


# --- MCP Tool Wrappers ---


@mcp_server.tool(name="confluence_search_tool")
async def search_tool(
    ctx: Context,
    query: str,
    space: str = "",
    contributor: str = "",
    date_range: str = "any",
    content_type: str = "",
    pages: int = 1,
    output_format: str = "json",
) -> dict[str, Any]:
    """Search Confluence content.

    Results include each item's space, type, last modification and ancestor
    breadcrumbs. summary_cached tells whether a summary is already stored.

    Args:
        query: Search text (letters, digits, spaces and -_.@"' only).
        space: Space key filter.
        contributor: Creator key filter.
        date_range: "any", "1d", "1w", "1m" or "1y".
        content_type: "page", "blogpost", "attachment" or "comment".
        pages: Pages to fetch (1-10).
        output_format: "json" or "markdown" (results grouped as a tree).
    """
    sc = _ctx(ctx)
    if sc.api is None:
        return dict(_NO_BASE_URL)
    return await confluence_search_tool(
        sc.api,
        query=query,
        space=space,
        contributor=contributor,
        date_range=date_range,
        content_type=content_type,
        page_size=sc.settings.results_per_request,
        pages=pages,
        retries=sc.settings.fetch_retries,
        cache=sc.cache,
        output_format=output_format,
    )


@mcp_server.tool(name="confluence_summarize_tool")
async def summarize_tool(ctx: Context, content_id: str, regenerate: bool = False) -> dict[str, Any]:
    """Summarise a Confluence content item as HTML.

    Args:
        content_id: Content id from a search result.
        regenerate: Discard the cached summary and its conversation first.
    """
    sc = _ctx(ctx)
    if sc.api is None:
        return dict(_NO_BASE_URL)
    if sc.service is None:
        return dict(_NO_SUMMARIES)
    return await confluence_summarize_tool(
        sc.api, sc.service, content_id=content_id, regenerate=regenerate
    )


@mcp_server.tool(name="confluence_ask_tool")
async def ask_tool(ctx: Context, content_id: str, question: str) -> dict[str, Any]:
    """Ask a follow-up question about a content item.

    The item is summarised first if needed; earlier questions are kept as
    conversation history.

    Args:
        content_id: Content id from a search result.
        question: The question.
    """
    sc = _ctx(ctx)
    if sc.api is None:
        return dict(_NO_BASE_URL)
    if sc.service is None:
        return dict(_NO_SUMMARIES)
    return await confluence_ask_tool(sc.api, sc.service, content_id=content_id, question=question)


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from confluence_search.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")
