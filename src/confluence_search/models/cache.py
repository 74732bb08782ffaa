"""Records held by the summary cache and the conversation store."""

from dataclasses import dataclass
from typing import NamedTuple


class CacheKey(NamedTuple):
    """Composite key: the same content id under two origins is two entries."""

    content_id: str
    origin: str


@dataclass(frozen=True)
class Message:
    """One chat turn."""

    role: str
    content: str


@dataclass(frozen=True)
class CacheEntry:
    """A stored AI summary."""

    content_id: str
    origin: str
    title: str
    summary_text: str
    source_body_snapshot: str
    stored_at: int

    @property
    def key(self) -> CacheKey:
        return CacheKey(self.content_id, self.origin)


@dataclass(frozen=True)
class ConversationEntry:
    """A stored follow-up conversation. The first three messages are the seed."""

    content_id: str
    origin: str
    messages: tuple[Message, ...]
    stored_at: int

    @property
    def key(self) -> CacheKey:
        return CacheKey(self.content_id, self.origin)
