"""Protocols for dependency injection across the search client."""

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from confluence_search.models.cache import CacheEntry, CacheKey, ConversationEntry, Message


@runtime_checkable
class SearchApiProtocol(Protocol):
    """Protocol for clients of the paginated content search endpoint."""

    async def search(self, cql: str, *, limit: int, offset: int) -> dict[str, Any]:
        """Fetch one page of results as the raw JSON response."""
        ...


@runtime_checkable
class ContentApiProtocol(Protocol):
    """Protocol for clients that fetch a content item's body."""

    async def get_content_body(self, content_id: str) -> str:
        """Return the raw storage-format markup of a content item."""
        ...


@runtime_checkable
class AiAdapterProtocol(Protocol):
    """Protocol for the chat-completion adapter."""

    async def request(self, *, system_prompt: str, user_prompt: str, model: str) -> str:
        """Single-turn request, returns the assistant text."""
        ...

    async def chat(self, messages: Sequence[Message], *, model: str) -> str:
        """Multi-turn request, returns the assistant text."""
        ...


@runtime_checkable
class SummaryStoreProtocol(Protocol):
    """Persistent keyed store for summaries."""

    async def get(self, key: CacheKey) -> CacheEntry | None: ...

    async def put(self, entry: CacheEntry) -> None: ...

    async def delete(self, key: CacheKey) -> None: ...

    async def clear(self) -> None: ...


@runtime_checkable
class ConversationStoreProtocol(Protocol):
    """Persistent keyed store for conversations."""

    async def get(self, key: CacheKey) -> ConversationEntry | None: ...

    async def put(self, entry: ConversationEntry) -> None: ...

    async def clear(self) -> None: ...
