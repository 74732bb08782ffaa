"""CLI for confluence-search (search, summaries, Q&A, MCP server)."""

import asyncio
import json
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from typing import Annotated, Any, TypeVar

import typer
from loguru import logger

from confluence_search.api import ConfluenceApi
from confluence_search.config import CONFLUENCE_TOKEN_FILES, Settings, load_settings, read_first_token
from confluence_search.core.ai.adapter import OpenAIChatAdapter
from confluence_search.core.ai.sanitize import html_to_text
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
from confluence_search.logging_config import configure_logging
from confluence_search.models.result import Result
from confluence_search.models.state import SortColumn, SortOrder, SortState
from confluence_search.session import SearchSession

app = typer.Typer(help="Confluence search: browse results as a tree and summarise them with AI.")

T = TypeVar("T")

BaseUrlOption = Annotated[str | None, typer.Option("--base-url", "-u", help="Confluence URL")]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def _run(coro_fn: Callable[[], Awaitable[T]]) -> T:
    """Run a coroutine, turning user-facing errors into exit code 1."""

    async def runner() -> T:
        return await coro_fn()

    try:
        return asyncio.run(runner())
    except (ValidationError, NetworkError) as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e


def _make_api(settings: Settings, base_url: str | None) -> ConfluenceApi:
    raw = base_url or settings.base_url
    if not raw:
        logger.error("No base URL. Pass --base-url or set CONFLUENCE_BASE_URL.")
        raise typer.Exit(1)
    try:
        return ConfluenceApi(raw, token=read_first_token(CONFLUENCE_TOKEN_FILES))
    except ValidationError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e


@contextmanager
def _open_stores(settings: Settings) -> Iterator[tuple[ContentSummaryCache, ConversationStore]]:
    """Open the persistent caches, falling back to memory-only on failure."""
    try:
        conn = open_cache_db(settings.data_dir)
    except StoreError as e:
        logger.warning("Summary cache unavailable, using memory only: {}", e)
        yield ContentSummaryCache(None), ConversationStore(None)
        return
    try:
        yield (
            ContentSummaryCache(SqliteSummaryStore(conn)),
            ConversationStore(SqliteConversationStore(conn)),
        )
    finally:
        conn.close()


@contextmanager
def _open_service(
    settings: Settings, base_url: str | None
) -> Iterator[tuple[ConfluenceApi, SummaryService]]:
    if not settings.summaries_enabled:
        logger.error("Summaries are disabled or the OpenAI API key is not set.")
        raise typer.Exit(1)
    api = _make_api(settings, base_url)
    with _open_stores(settings) as (cache, conversations):
        yield api, SummaryService(
            api,
            OpenAIChatAdapter(api_key=settings.openai_api_key, api_url=settings.api_endpoint),
            cache,
            conversations,
            origin=api.base_url,
            model=settings.model,
            custom_prompt=settings.custom_user_prompt,
        )


async def _load_result(api: ConfluenceApi, content_id: str) -> Result:
    data = await api.get_content(content_id)
    return Result.from_api(data, api.base_url)


def _result_to_dict(r: Result, cached: bool) -> dict[str, Any]:
    return {
        "id": r.id,
        "title": r.title,
        "type": r.type,
        "url": r.url,
        "space": r.space.name if r.space else None,
        "contributor": r.creator.display_name if r.creator else None,
        "created": r.created_at.isoformat() if r.created_at else None,
        "modified": r.modified_at.isoformat() if r.modified_at else None,
        "ancestors": [a.title for a in r.ancestors],
        "summary_cached": cached,
    }


@app.command()
def search(
    query: str = typer.Argument(..., help="Search text"),
    space: Annotated[str, typer.Option("--space", "-s", help="Space key")] = "",
    contributor: Annotated[str, typer.Option("--contributor", "-c", help="Creator key")] = "",
    date: Annotated[str, typer.Option("--date", help="Modified within: 1d, 1w, 1m, 1y")] = "any",
    content_type: Annotated[
        str, typer.Option("--type", "-t", help="page, blogpost, attachment or comment")
    ] = "",
    text_filter: Annotated[str, typer.Option("--filter", "-f", help="Filter titles locally")] = "",
    sort: Annotated[SortColumn | None, typer.Option("--sort", help="Sort column")] = None,
    order: Annotated[SortOrder, typer.Option("--order", help="Sort order")] = SortOrder.ASC,
    pages: int = typer.Option(1, "--pages", "-p", help="Pages to fetch (0 = all)"),
    view: Annotated[str, typer.Option("--view", help="tree or table")] = "tree",
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    base_url: BaseUrlOption = None,
) -> None:
    """Search Confluence and show results as a tree or table."""
    settings = load_settings()
    api = _make_api(settings, base_url)
    session = SearchSession(
        api,
        base_url=api.base_url,
        page_size=settings.results_per_request,
        retries=settings.fetch_retries,
    )

    async def run() -> set[str]:
        session.update_filters(
            space_key=space, contributor_key=contributor, date_range=date, type_filter=content_type
        )
        session.start_search(query)
        session.update_filters(text=text_filter)
        if sort is not None:
            session.sort = SortState(column=sort, order=order)
        await session.load_pages(pages or None)
        with _open_stores(settings) as (cache, _conversations):
            return await session.preload_cached_summaries(cache)

    cached_ids = _run(run)
    if session.last_error and not session.results:
        raise typer.Exit(1)

    display = session.display_list()
    total = session.fetcher.total
    if output_json:
        data = {
            "results": [_result_to_dict(r, r.id in cached_ids) for r in display],
            "count": len(display),
            "loaded": len(session.results),
            "total": total,
            "has_more": not session.fetcher.exhausted,
        }
        typer.echo(json.dumps(data, indent=2))
        return

    typer.echo(
        f"Showing {len(display)} of {len(session.results)} loaded results "
        f"(server total {total if total is not None else '?'}):\n"
    )
    if view == "table":
        for r in display:
            marker = " ✅" if r.id in cached_ids else ""
            modified = f"{r.modified_at:%Y-%m-%d %H:%M}" if r.modified_at else "N/A"
            typer.echo(f"  {r.icon} {r.title[:80]}{marker}")
            typer.echo(
                f"    {r.space.name if r.space else '-'}  "
                f"{r.creator.display_name if r.creator else 'Unknown'}  {modified}  id={r.id}"
            )
    else:
        typer.echo(render_forest_as_markdown(session.forest(), cached_ids=cached_ids))


@app.command()
def summarize(
    content_id: str = typer.Argument(..., help="Content ID"),
    base_url: BaseUrlOption = None,
    raw_html: bool = typer.Option(False, "--html", help="Print the summary HTML"),
) -> None:
    """Summarise a content item (cached per content id and site)."""
    settings = load_settings()
    with _open_service(settings, base_url) as (api, service):

        async def run() -> str:
            entry = await service.summarize(await _load_result(api, content_id))
            return entry.summary_text

        summary = _run(run)
    typer.echo(summary if raw_html else html_to_text(summary))


@app.command()
def ask(
    content_id: str = typer.Argument(..., help="Content ID"),
    question: str = typer.Argument(..., help="Follow-up question"),
    base_url: BaseUrlOption = None,
) -> None:
    """Ask a follow-up question about a summarised content item."""
    settings = load_settings()
    with _open_service(settings, base_url) as (api, service):

        async def run() -> str:
            return await service.ask(await _load_result(api, content_id), question)

        answer = _run(run)
    typer.echo(html_to_text(answer))


@app.command()
def regenerate(
    content_id: str = typer.Argument(..., help="Content ID"),
    base_url: BaseUrlOption = None,
) -> None:
    """Replace a cached summary and reset its conversation."""
    settings = load_settings()
    with _open_service(settings, base_url) as (api, service):

        async def run() -> str:
            entry = await service.regenerate(await _load_result(api, content_id))
            return entry.summary_text

        summary = _run(run)
    typer.echo(html_to_text(summary))


@app.command(name="clear-conversation")
def clear_conversation(
    content_id: str = typer.Argument(..., help="Content ID"),
    base_url: BaseUrlOption = None,
) -> None:
    """Discard follow-up questions for a content item, keeping its summary."""
    settings = load_settings()
    with _open_service(settings, base_url) as (api, service):

        async def run() -> None:
            await service.clear_conversation(await _load_result(api, content_id))

        try:
            _run(run)
        except KeyError:
            typer.echo(f"No summary stored for '{content_id}'.")
            raise typer.Exit(1) from None
    typer.echo("Conversation cleared.")


@app.command(name="clear-cache")
def clear_cache() -> None:
    """Delete all stored summaries and conversations."""
    settings = load_settings()
    with _open_stores(settings) as (cache, conversations):

        async def run() -> None:
            await cache.clear_all()
            await conversations.clear_all()

        _run(run)
    typer.echo("All summaries and conversations cleared.")


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from confluence_search.mcp.server import run_mcp_server

    run_mcp_server()
