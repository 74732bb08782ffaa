"""Per-content follow-up conversations, persisted as whole sequences."""

import time
from collections.abc import Sequence

from loguru import logger

from confluence_search.errors import StoreError
from confluence_search.models.cache import CacheKey, ConversationEntry, Message
from confluence_search.protocols import ConversationStoreProtocol

# System prompt, user context prompt and the seed summary.
SEED_LENGTH = 3


def visible_messages(messages: Sequence[Message]) -> list[Message]:
    """The part of a conversation shown to the user (everything after the seed)."""
    return list(messages[SEED_LENGTH:])


def _check_seed(seed: Sequence[Message]) -> tuple[Message, ...]:
    if len(seed) != SEED_LENGTH:
        msg = f"Conversation seed must have {SEED_LENGTH} messages, got {len(seed)}"
        raise ValueError(msg)
    return tuple(seed)


class ConversationStore:
    """Append-only message sequences keyed by (content id, origin)."""

    def __init__(self, store: ConversationStoreProtocol | None) -> None:
        self._store = store
        self._memory: dict[CacheKey, tuple[Message, ...]] = {}

    @property
    def persistent(self) -> bool:
        return self._store is not None

    async def _load(self, key: CacheKey) -> tuple[Message, ...] | None:
        if key in self._memory:
            return self._memory[key]
        if self._store is None:
            return None
        try:
            entry = await self._store.get(key)
        except StoreError as e:
            logger.warning("Conversation store read failed, using memory only: {}", e)
            self._store = None
            return None
        if entry is None:
            return None
        self._memory[key] = entry.messages
        return entry.messages

    async def _save(self, key: CacheKey, messages: tuple[Message, ...]) -> None:
        if self._store is not None:
            entry = ConversationEntry(
                content_id=key.content_id,
                origin=key.origin,
                messages=messages,
                stored_at=int(time.time() * 1000),
            )
            try:
                await self._store.put(entry)
            except StoreError as e:
                logger.warning("Conversation store write failed, using memory only: {}", e)
                self._store = None
        self._memory[key] = messages

    async def get(self, key: CacheKey) -> list[Message] | None:
        """Return the stored sequence, or None."""
        messages = await self._load(key)
        return list(messages) if messages is not None else None

    async def get_or_init(self, key: CacheKey, seed_messages: Sequence[Message]) -> list[Message]:
        """Return the stored sequence, persisting ``seed_messages`` if there is none."""
        messages = await self._load(key)
        if messages is None:
            messages = _check_seed(seed_messages)
            await self._save(key, messages)
        return list(messages)

    async def append(self, key: CacheKey, message: Message) -> list[Message]:
        """Append one message and persist the full sequence.

        Raises:
            KeyError: If the conversation was never initialised.
        """
        messages = await self._load(key)
        if messages is None:
            msg = f"No conversation for {key!r}"
            raise KeyError(msg)
        updated = (*messages, message)
        await self._save(key, updated)
        return list(updated)

    async def reset(self, key: CacheKey, seed_messages: Sequence[Message]) -> list[Message]:
        """Discard history and start again from the seed (user-initiated clear)."""
        seed = _check_seed(seed_messages)
        await self._save(key, seed)
        logger.debug("Conversation {} reset", key)
        return list(seed)

    async def replace(self, key: CacheKey, seed_messages: Sequence[Message]) -> list[Message]:
        """Replace the conversation after a regenerated summary."""
        seed = _check_seed(seed_messages)
        await self._save(key, seed)
        logger.debug("Conversation {} replaced after regeneration", key)
        return list(seed)

    async def clear_all(self) -> None:
        self._memory.clear()
        if self._store is None:
            return
        try:
            await self._store.clear()
        except StoreError as e:
            logger.warning("Conversation store clear failed, using memory only: {}", e)
            self._store = None
