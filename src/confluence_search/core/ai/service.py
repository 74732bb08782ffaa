"""Summaries and follow-up Q&A for search results."""

import time

from loguru import logger

from confluence_search.core.ai.prompts import SUMMARY_SYSTEM_PROMPT, build_seed, build_user_prompt
from confluence_search.core.ai.sanitize import sanitize_body
from confluence_search.core.cache.conversation_store import ConversationStore, visible_messages
from confluence_search.core.cache.summary_cache import ContentSummaryCache
from confluence_search.errors import ValidationError
from confluence_search.models.cache import CacheEntry, CacheKey, Message
from confluence_search.models.result import Result
from confluence_search.protocols import AiAdapterProtocol, ContentApiProtocol


class SummaryService:
    """Glue between the content API, the AI adapter and the two caches.

    Nothing is written to the cache or the conversation until the AI call
    that produced it has succeeded.
    """

    def __init__(
        self,
        api: ContentApiProtocol,
        ai: AiAdapterProtocol,
        cache: ContentSummaryCache,
        conversations: ConversationStore,
        *,
        origin: str,
        model: str,
        custom_prompt: str = "",
    ) -> None:
        self._api = api
        self._ai = ai
        self.cache = cache
        self.conversations = conversations
        self.origin = origin
        self.model = model
        self.custom_prompt = custom_prompt
        self._bodies: dict[str, str] = {}

    def key_for(self, result: Result) -> CacheKey:
        return CacheKey(result.id, self.origin)

    async def _body(self, content_id: str) -> str:
        body = self._bodies.get(content_id)
        if body is None:
            body = sanitize_body(await self._api.get_content_body(content_id))
            self._bodies[content_id] = body
            logger.debug("Fetched body for {}", content_id)
        return body

    async def _compute(self, result: Result) -> CacheEntry:
        body = await self._body(result.id)
        user_prompt = build_user_prompt(result, body, custom_prompt=self.custom_prompt)
        logger.info("Requesting new summary for {} ({!r})", result.id, result.title)
        summary = await self._ai.request(
            system_prompt=SUMMARY_SYSTEM_PROMPT, user_prompt=user_prompt, model=self.model
        )
        return CacheEntry(
            content_id=result.id,
            origin=self.origin,
            title=result.title,
            summary_text=summary,
            source_body_snapshot=body,
            stored_at=int(time.time() * 1000),
        )

    def _seed(self, result: Result, entry: CacheEntry) -> list[Message]:
        user_prompt = build_user_prompt(
            result, entry.source_body_snapshot, custom_prompt=self.custom_prompt
        )
        return build_seed(user_prompt, entry.summary_text)

    async def summarize(self, result: Result) -> CacheEntry:
        """Return the summary for a result, computing it on a cache miss."""
        key = self.key_for(result)
        entry = await self.cache.get_or_create(key, lambda: self._compute(result))
        await self.conversations.get_or_init(key, self._seed(result, entry))
        return entry

    async def conversation(self, result: Result) -> list[Message]:
        """The user-visible part of the follow-up conversation."""
        messages = await self.conversations.get(self.key_for(result))
        return visible_messages(messages) if messages else []

    async def ask(self, result: Result, question: str) -> str:
        """Ask a follow-up question about a result.

        Raises:
            ValidationError: If the question is empty.
            NetworkError: If the AI call fails; the conversation is unchanged.
        """
        question = question.strip()
        if not question:
            msg = "Please enter a question."
            raise ValidationError(msg)

        key = self.key_for(result)
        entry = await self.summarize(result)
        messages = await self.conversations.get_or_init(key, self._seed(result, entry))
        answer = await self._ai.chat([*messages, Message(role="user", content=question)], model=self.model)

        await self.conversations.append(key, Message(role="user", content=question))
        await self.conversations.append(key, Message(role="assistant", content=answer))
        return answer

    async def regenerate(self, result: Result) -> CacheEntry:
        """Replace the summary with a fresh one and restart the conversation."""
        key = self.key_for(result)
        self._bodies.pop(result.id, None)
        entry = await self.cache.regenerate(key, lambda: self._compute(result))
        await self.conversations.replace(key, self._seed(result, entry))
        return entry

    async def clear_conversation(self, result: Result) -> list[Message]:
        """Reset the conversation to its seed.

        Raises:
            KeyError: If the result has no cached summary.
        """
        key = self.key_for(result)
        entry = await self.cache.peek(key)
        if entry is None:
            msg = f"No summary for {result.id!r}"
            raise KeyError(msg)
        return await self.conversations.reset(key, self._seed(result, entry))

    async def clear_all(self) -> None:
        """Drop every summary and conversation."""
        self._bodies.clear()
        await self.cache.clear_all()
        await self.conversations.clear_all()
