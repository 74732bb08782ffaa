"""SQLite-backed persistent stores for summaries and conversations."""

import json
import sqlite3
from pathlib import Path

from loguru import logger

from confluence_search.core.database.schema import migrate_schema
from confluence_search.errors import StoreError
from confluence_search.models.cache import CacheEntry, CacheKey, ConversationEntry, Message


def open_cache_db(data_dir: Path) -> sqlite3.Connection:
    """Open (creating if needed) the cache database under ``data_dir``.

    Raises:
        StoreError: If the directory or database cannot be opened.
    """
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(data_dir / "cache.db"))
        migrate_schema(conn)
    except (OSError, sqlite3.Error) as e:
        msg = f"Cannot open cache database in {data_dir}: {e}"
        raise StoreError(msg) from e
    logger.debug("Opened cache database in {}", data_dir)
    return conn


class SqliteSummaryStore:
    """Summary records keyed by (content_id, origin)."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    async def get(self, key: CacheKey) -> CacheEntry | None:
        try:
            row = self._conn.execute(
                "SELECT title, summary_text, source_body, stored_at FROM summaries "
                "WHERE content_id = ? AND origin = ?",
                (key.content_id, key.origin),
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        if row is None:
            return None
        return CacheEntry(
            content_id=key.content_id,
            origin=key.origin,
            title=row[0],
            summary_text=row[1],
            source_body_snapshot=row[2],
            stored_at=row[3],
        )

    async def put(self, entry: CacheEntry) -> None:
        try:
            self._conn.execute(
                """INSERT OR REPLACE INTO summaries
                   (content_id, origin, title, summary_text, source_body, stored_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    entry.content_id,
                    entry.origin,
                    entry.title,
                    entry.summary_text,
                    entry.source_body_snapshot,
                    entry.stored_at,
                ),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    async def delete(self, key: CacheKey) -> None:
        try:
            self._conn.execute(
                "DELETE FROM summaries WHERE content_id = ? AND origin = ?",
                (key.content_id, key.origin),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    async def clear(self) -> None:
        try:
            self._conn.execute("DELETE FROM summaries")
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e


class SqliteConversationStore:
    """Conversation records keyed by (content_id, origin); messages stored as JSON."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    async def get(self, key: CacheKey) -> ConversationEntry | None:
        try:
            row = self._conn.execute(
                "SELECT messages, stored_at FROM conversations WHERE content_id = ? AND origin = ?",
                (key.content_id, key.origin),
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        if row is None:
            return None
        try:
            raw_messages = json.loads(row[0])
            messages = tuple(Message(role=m["role"], content=m["content"]) for m in raw_messages)
        except (ValueError, KeyError, TypeError) as e:
            msg = f"Corrupt conversation record for {key!r}: {e}"
            raise StoreError(msg) from e
        return ConversationEntry(
            content_id=key.content_id, origin=key.origin, messages=messages, stored_at=row[1]
        )

    async def put(self, entry: ConversationEntry) -> None:
        payload = json.dumps([{"role": m.role, "content": m.content} for m in entry.messages])
        try:
            self._conn.execute(
                """INSERT OR REPLACE INTO conversations (content_id, origin, messages, stored_at)
                   VALUES (?, ?, ?, ?)""",
                (entry.content_id, entry.origin, payload, entry.stored_at),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    async def clear(self) -> None:
        try:
            self._conn.execute("DELETE FROM conversations")
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
