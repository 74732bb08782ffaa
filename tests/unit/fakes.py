"""Fake implementations for testing the search client."""

import asyncio
from collections.abc import Sequence
from typing import Any

from confluence_search.errors import NetworkError, StoreError
from confluence_search.models.cache import CacheEntry, CacheKey, ConversationEntry, Message

BASE_URL = "https://wiki.example.com"


def make_item(
    content_id: str,
    title: str = "",
    *,
    type_: str = "page",
    space: str | None = "DEV",
    creator: str | None = "alice",
    modified: str | None = "2024-05-01T10:00:00.000Z",
    created: str | None = "2024-01-01T09:00:00.000Z",
    ancestors: Sequence[tuple[str, str]] = (),
) -> dict[str, Any]:
    """Build a search API item in the shape the server returns."""
    item: dict[str, Any] = {
        "id": content_id,
        "title": title or f"Title {content_id}",
        "type": type_,
        "_links": {"webui": f"/pages/viewpage.action?pageId={content_id}"},
        "ancestors": [
            {"id": aid, "title": atitle, "_links": {"webui": f"/pages/{aid}"}}
            for aid, atitle in ancestors
        ],
        "history": {"createdDate": created},
        "version": {"when": modified},
    }
    if space:
        item["space"] = {"key": space, "name": f"{space} Space", "_links": {"webui": f"/display/{space}"}}
    if creator:
        item["history"]["createdBy"] = {"username": creator, "displayName": creator.title()}
    return item


# A small result set: two pages under a shared ancestor chain, one page that
# is itself an ancestor of another result, and a blog post with no ancestors.
SAMPLE_ITEMS = [
    make_item(
        "10",
        "Deploy guide",
        ancestors=[("1", "Engineering"), ("2", "Operations")],
        modified="2024-05-03T10:00:00.000Z",
    ),
    make_item(
        "11",
        "Rollback steps",
        creator="bob",
        ancestors=[("1", "Engineering"), ("2", "Operations")],
        modified="2024-05-01T10:00:00.000Z",
    ),
    make_item("2", "Operations", ancestors=[("1", "Engineering")], modified=None),
    make_item(
        "20",
        "Release notes",
        type_="blogpost",
        space="NEWS",
        creator="carol",
        modified="2024-05-02T10:00:00.000Z",
    ),
]


def make_page(items: list[dict[str, Any]], total: int | None = None) -> dict[str, Any]:
    page: dict[str, Any] = {"results": items}
    if total is not None:
        page["totalSize"] = total
    return page


class FakeSearchApi:
    """In-memory fake for the search endpoint.

    Pages are served in order; an Exception in the queue is raised instead.
    ``gate``, when set, blocks every request until the test releases it.
    """

    def __init__(self, pages: list[dict[str, Any] | Exception] | None = None) -> None:
        self.pages: list[dict[str, Any] | Exception] = list(pages or [])
        self.calls: list[tuple[str, int, int]] = []
        self.gate: asyncio.Event | None = None

    async def search(self, cql: str, *, limit: int, offset: int) -> dict[str, Any]:
        self.calls.append((cql, limit, offset))
        if self.gate is not None:
            await self.gate.wait()
        if not self.pages:
            return make_page([])
        page = self.pages.pop(0)
        if isinstance(page, Exception):
            raise page
        return page


class FakeContentApi:
    """In-memory fake for body and content lookups."""

    def __init__(self, bodies: dict[str, str] | None = None) -> None:
        self.bodies = dict(bodies or {})
        self.items: dict[str, dict[str, Any]] = {}
        self.body_calls: list[str] = []
        self.base_url = BASE_URL

    async def get_content_body(self, content_id: str) -> str:
        self.body_calls.append(content_id)
        return self.bodies.get(content_id, "(No content)")

    async def get_content(self, content_id: str) -> dict[str, Any]:
        if content_id not in self.items:
            msg = f"Request to 'content/{content_id}' failed: 404"
            raise NetworkError(msg)
        return self.items[content_id]


class FakeAiAdapter:
    """Records requests and answers with canned text."""

    def __init__(self, answers: list[str | Exception] | None = None) -> None:
        self.answers: list[str | Exception] = list(answers or [])
        self.requests: list[tuple[str, str, str]] = []
        self.chats: list[list[Message]] = []
        self.gate: asyncio.Event | None = None

    async def _next(self) -> str:
        if self.gate is not None:
            await self.gate.wait()
        if not self.answers:
            return "<p>answer</p>"
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer

    async def request(self, *, system_prompt: str, user_prompt: str, model: str) -> str:
        self.requests.append((system_prompt, user_prompt, model))
        return await self._next()

    async def chat(self, messages: Sequence[Message], *, model: str) -> str:
        self.chats.append(list(messages))
        return await self._next()


class FakeSummaryStore:
    """Dict-backed summary store; ``fail`` makes every call raise StoreError."""

    def __init__(self) -> None:
        self.entries: dict[CacheKey, CacheEntry] = {}
        self.fail = False
        self.gets = 0

    def _check(self) -> None:
        if self.fail:
            msg = "store offline"
            raise StoreError(msg)

    async def get(self, key: CacheKey) -> CacheEntry | None:
        self.gets += 1
        self._check()
        return self.entries.get(key)

    async def put(self, entry: CacheEntry) -> None:
        self._check()
        self.entries[entry.key] = entry

    async def delete(self, key: CacheKey) -> None:
        self._check()
        self.entries.pop(key, None)

    async def clear(self) -> None:
        self._check()
        self.entries.clear()


class FakeConversationStore:
    """Dict-backed conversation store; ``fail`` makes every call raise StoreError."""

    def __init__(self) -> None:
        self.entries: dict[CacheKey, ConversationEntry] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            msg = "store offline"
            raise StoreError(msg)

    async def get(self, key: CacheKey) -> ConversationEntry | None:
        self._check()
        return self.entries.get(key)

    async def put(self, entry: ConversationEntry) -> None:
        self._check()
        self.entries[entry.key] = entry

    async def clear(self) -> None:
        self._check()
        self.entries.clear()


def make_entry(content_id: str, summary: str = "<p>summary</p>", origin: str = BASE_URL) -> CacheEntry:
    return CacheEntry(
        content_id=content_id,
        origin=origin,
        title=f"Title {content_id}",
        summary_text=summary,
        source_body_snapshot="<p>body</p>",
        stored_at=1,
    )


class FakeConfluenceApi(FakeSearchApi):
    """Search plus content lookups, standing in for ConfluenceApi."""

    def __init__(
        self,
        pages: list[dict[str, Any] | Exception] | None = None,
        *,
        items: list[dict[str, Any]] | None = None,
        bodies: dict[str, str] | None = None,
    ) -> None:
        super().__init__(pages)
        self.base_url = BASE_URL
        self.content = FakeContentApi(bodies)
        for item in items or ():
            self.content.items[str(item["id"])] = item

    async def get_content(self, content_id: str) -> dict[str, Any]:
        return await self.content.get_content(content_id)

    async def get_content_body(self, content_id: str) -> str:
        return await self.content.get_content_body(content_id)
