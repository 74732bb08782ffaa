"""Domain models for search results."""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from confluence_search.urls import build_url

TYPE_ICONS = {"page": "📘", "blogpost": "📝", "attachment": "📎", "comment": "💬"}
TYPE_LABELS = {"page": "Page", "blogpost": "Blog Post", "attachment": "Attachment", "comment": "Comment"}
CONTENT_TYPES = frozenset(TYPE_LABELS)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp from the API, or None if absent/invalid."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class Space:
    """The space a result lives in."""

    key: str
    name: str
    url: str = "#"


@dataclass(frozen=True)
class Creator:
    """The user who created a result."""

    key: str
    display_name: str


@dataclass(frozen=True)
class Ancestor:
    """One entry of a result's ancestor chain (root first)."""

    id: str
    title: str
    url: str = "#"


@dataclass(frozen=True)
class Result:
    """A single content item returned by the search API."""

    id: str
    title: str
    type: str
    url: str = "#"
    space: Space | None = None
    creator: Creator | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None
    ancestors: tuple[Ancestor, ...] = ()

    @property
    def type_label(self) -> str:
        return TYPE_LABELS.get(self.type, self.type)

    @property
    def icon(self) -> str:
        return TYPE_ICONS.get(self.type, "📄")

    @classmethod
    def from_api(cls, item: dict[str, Any], base_url: str) -> "Result":
        """Build a Result from a content/search API item."""
        space = None
        raw_space = item.get("space")
        if raw_space and raw_space.get("key"):
            space = Space(
                key=raw_space["key"],
                name=raw_space.get("name") or raw_space["key"],
                url=build_url(base_url, (raw_space.get("_links") or {}).get("webui")),
            )

        history = item.get("history") or {}
        creator = None
        created_by = history.get("createdBy") or {}
        creator_key = (
            created_by.get("username") or created_by.get("userKey") or created_by.get("accountId")
        )
        if creator_key:
            creator = Creator(
                key=creator_key,
                display_name=created_by.get("displayName") or creator_key,
            )

        ancestors = tuple(
            Ancestor(
                id=str(a["id"]),
                title=a.get("title") or "",
                url=build_url(base_url, (a.get("_links") or {}).get("webui")),
            )
            for a in item.get("ancestors") or ()
            if a.get("id") is not None
        )

        return cls(
            id=str(item["id"]),
            title=item.get("title") or "",
            type=item.get("type") or "page",
            url=build_url(base_url, (item.get("_links") or {}).get("webui")),
            space=space,
            creator=creator,
            created_at=parse_timestamp(history.get("createdDate")),
            modified_at=parse_timestamp((item.get("version") or {}).get("when")),
            ancestors=ancestors,
        )


class ResultSet:
    """Accumulated, deduplicated results for the active query, in fetch order."""

    def __init__(self) -> None:
        self._by_id: dict[str, Result] = {}

    def add(self, result: Result) -> bool:
        """Add a result. Returns False (and keeps the first copy) for a known id."""
        if result.id in self._by_id:
            return False
        self._by_id[result.id] = result
        return True

    def get(self, result_id: str) -> Result | None:
        return self._by_id.get(result_id)

    def clear(self) -> None:
        self._by_id.clear()

    def __contains__(self, result_id: object) -> bool:
        return result_id in self._by_id

    def __iter__(self) -> Iterator[Result]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    def spaces(self) -> list[Space]:
        """Distinct spaces seen so far, sorted by name."""
        seen: dict[str, Space] = {}
        for r in self._by_id.values():
            if r.space and r.space.key not in seen:
                seen[r.space.key] = r.space
        return sorted(seen.values(), key=lambda s: s.name.casefold())

    def contributors(self) -> list[Creator]:
        """Distinct creators seen so far, sorted by display name."""
        seen: dict[str, Creator] = {}
        for r in self._by_id.values():
            if r.creator and r.creator.key not in seen:
                seen[r.creator.key] = r.creator
        return sorted(seen.values(), key=lambda c: c.display_name.casefold())
