"""Tests for MCP tool core functions."""

import asyncio
import sqlite3

from confluence_search.config import Settings
from confluence_search.core.ai.service import SummaryService
from confluence_search.core.cache.conversation_store import ConversationStore
from confluence_search.core.cache.summary_cache import ContentSummaryCache
from confluence_search.errors import NetworkError
from confluence_search.mcp.server import (
    _build_context,
    confluence_ask_tool,
    confluence_search_tool,
    confluence_summarize_tool,
)
from tests.unit.fakes import (
    BASE_URL,
    SAMPLE_ITEMS,
    FakeAiAdapter,
    FakeConfluenceApi,
    FakeSummaryStore,
    make_entry,
    make_item,
    make_page,
)


def _service(api: FakeConfluenceApi, ai: FakeAiAdapter) -> SummaryService:
    return SummaryService(
        api,
        ai,
        ContentSummaryCache(None),
        ConversationStore(None),
        origin=BASE_URL,
        model="gpt-4o",
    )


def test_search_returns_results_with_metadata() -> None:
    api = FakeConfluenceApi([make_page(SAMPLE_ITEMS, total=4)])
    store = FakeSummaryStore()
    store.entries[make_entry("20").key] = make_entry("20")

    result = asyncio.run(
        confluence_search_tool(api, query="deploy", cache=ContentSummaryCache(store))
    )

    assert "error" not in result
    assert result["count"] == 4
    assert result["total"] == 4
    assert result["has_more"] is False
    first = result["results"][0]
    assert first["id"] == "10"
    assert first["breadcrumbs"] == "Engineering > Operations"
    assert first["type"] == "Page"
    cached = {r["id"] for r in result["results"] if r["summary_cached"]}
    assert cached == {"20"}


def test_search_markdown_groups_results_as_tree() -> None:
    api = FakeConfluenceApi([make_page(SAMPLE_ITEMS, total=4)])
    result = asyncio.run(confluence_search_tool(api, query="deploy", output_format="markdown"))
    assert result["markdown"].startswith(f"- [Engineering]({BASE_URL}/pages/1)")
    assert "results" not in result


def test_search_clamps_paging_arguments() -> None:
    api = FakeConfluenceApi([make_page([make_item(str(i)) for i in range(3)], total=300)] * 20)
    result = asyncio.run(confluence_search_tool(api, query="x", page_size=500, pages=50))
    assert len(api.calls) == 10
    assert api.calls[0][1] == 100
    assert result["has_more"] is True


def test_search_reports_invalid_query() -> None:
    api = FakeConfluenceApi()
    result = asyncio.run(confluence_search_tool(api, query="   "))
    assert "error" in result
    assert result["results"] == []
    assert api.calls == []


def test_search_reports_network_failure() -> None:
    api = FakeConfluenceApi([NetworkError("offline")])
    result = asyncio.run(confluence_search_tool(api, query="deploy"))
    assert result["error"] == "offline"


def test_search_retries_failed_page() -> None:
    api = FakeConfluenceApi([NetworkError("blip"), make_page(SAMPLE_ITEMS, total=4)])
    result = asyncio.run(confluence_search_tool(api, query="deploy", retries=1))
    assert "error" not in result
    assert result["count"] == 4
    assert len(api.calls) == 2


def test_summarize_returns_summary_and_reuses_cache() -> None:
    api = FakeConfluenceApi(items=[make_item("10", "Deploy guide")], bodies={"10": "<p>b</p>"})
    ai = FakeAiAdapter(["<p>first</p>", "<p>second</p>"])
    service = _service(api, ai)

    async def run() -> None:
        first = await confluence_summarize_tool(api, service, content_id="10")
        assert first["summary"] == "<p>first</p>"
        assert first["title"] == "Deploy guide"
        again = await confluence_summarize_tool(api, service, content_id="10")
        assert again["summary"] == "<p>first</p>"
        fresh = await confluence_summarize_tool(api, service, content_id="10", regenerate=True)
        assert fresh["summary"] == "<p>second</p>"

    asyncio.run(run())
    assert len(ai.requests) == 2


def test_summarize_unknown_content_reports_error() -> None:
    api = FakeConfluenceApi()
    result = asyncio.run(
        confluence_summarize_tool(api, _service(api, FakeAiAdapter()), content_id="404")
    )
    assert "error" in result


def test_ask_counts_turns() -> None:
    api = FakeConfluenceApi(items=[make_item("10")])
    service = _service(api, FakeAiAdapter(["<p>s</p>", "<p>a1</p>", "<p>a2</p>"]))

    async def run() -> None:
        await confluence_ask_tool(api, service, content_id="10", question="one?")
        second = await confluence_ask_tool(api, service, content_id="10", question="two?")
        assert second["answer"] == "<p>a2</p>"
        assert second["turns"] == 2

    asyncio.run(run())


def test_ask_rejects_empty_question() -> None:
    api = FakeConfluenceApi(items=[make_item("10")])
    result = asyncio.run(
        confluence_ask_tool(api, _service(api, FakeAiAdapter()), content_id="10", question=" ")
    )
    assert result == {"error": "Please enter a question."}


def test_context_without_base_url_has_no_api() -> None:
    ctx = _build_context(Settings(), None)
    assert ctx.api is None
    assert ctx.service is None
    assert not ctx.cache.persistent


def test_context_with_settings_builds_service(cache_db: sqlite3.Connection) -> None:
    ctx = _build_context(Settings(base_url=f"{BASE_URL}/wiki", openai_api_key="sk"), cache_db)
    assert ctx.api is not None
    assert ctx.api.base_url == BASE_URL
    assert ctx.service is not None
    assert ctx.cache.persistent
