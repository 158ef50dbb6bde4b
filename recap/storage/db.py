"""
SQLite storage for recap options, subscribers, sent messages and chat history.

Layout:
- One database file under the data directory
- WAL mode so the scheduler's worker threads can read concurrently
- One short-lived connection per operation
- Timestamps stored as UTC ISO strings so they sort lexically
"""

import sqlite3
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Generator

from dateutil.parser import parse as parse_date

from recap.errors import StoreError
from recap.models import ChatMessage, RecapOptions, SendMode, SentMessageRecord, Subscriber


def _utc_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


class SQLiteRecapStore:
    """SQLite-backed implementation of the recap store."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        """Create the four recap tables on first open."""
        with self._connection() as conn:
            conn.executescript("""
                PRAGMA journal_mode=WAL;

                CREATE TABLE IF NOT EXISTS recap_options (
                    chat_id INTEGER PRIMARY KEY,
                    enabled INTEGER NOT NULL DEFAULT 0,
                    send_mode INTEGER NOT NULL DEFAULT 0,
                    rates_per_day INTEGER NOT NULL DEFAULT 4,
                    pin_enabled INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS recap_subscribers (
                    chat_id INTEGER NOT NULL,
                    user_id INTEGER NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (chat_id, user_id)
                );

                CREATE TABLE IF NOT EXISTS sent_messages (
                    chat_id INTEGER NOT NULL,
                    message_id INTEGER NOT NULL,
                    text TEXT DEFAULT '',
                    is_pinned INTEGER NOT NULL DEFAULT 0,
                    sent_at TEXT NOT NULL,
                    PRIMARY KEY (chat_id, message_id)
                );
                CREATE INDEX IF NOT EXISTS idx_sent_messages_pinned
                    ON sent_messages(chat_id, is_pinned, sent_at DESC);

                -- Recorded group history, the input to summarization
                CREATE TABLE IF NOT EXISTS chat_messages (
                    chat_id INTEGER NOT NULL,
                    message_id INTEGER NOT NULL,
                    chat_title TEXT DEFAULT '',
                    user_id INTEGER DEFAULT 0,
                    display_name TEXT DEFAULT 'Unknown',
                    text TEXT DEFAULT '',
                    sent_at TEXT NOT NULL,
                    reply_to_message_id INTEGER,
                    PRIMARY KEY (chat_id, message_id)
                );
                CREATE INDEX IF NOT EXISTS idx_chat_messages_sent
                    ON chat_messages(chat_id, sent_at);
            """)

    @contextmanager
    def _connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Yield a connection that commits on success and maps sqlite errors to StoreError."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # Options

    def find_options(self, chat_id: int) -> RecapOptions | None:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM recap_options WHERE chat_id = ?", (chat_id,)
            ).fetchone()
        if row is None:
            return None
        return RecapOptions(
            chat_id=row["chat_id"],
            enabled=bool(row["enabled"]),
            send_mode=SendMode(row["send_mode"]),
            rates_per_day=row["rates_per_day"],
            pin_enabled=bool(row["pin_enabled"]),
        )

    def is_recap_enabled(self, chat_id: int) -> bool:
        options = self.find_options(chat_id)
        return options is not None and options.enabled

    def upsert_options(self, options: RecapOptions) -> None:
        with self._connection() as conn:
            conn.execute("""
                INSERT INTO recap_options (chat_id, enabled, send_mode, rates_per_day, pin_enabled)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(chat_id) DO UPDATE SET
                    enabled = excluded.enabled,
                    send_mode = excluded.send_mode,
                    rates_per_day = excluded.rates_per_day,
                    pin_enabled = excluded.pin_enabled,
                    updated_at = CURRENT_TIMESTAMP
            """, (
                options.chat_id,
                int(options.enabled),
                int(options.send_mode),
                options.rates_per_day,
                int(options.pin_enabled),
            ))

    def set_enabled(self, chat_id: int, enabled: bool) -> RecapOptions:
        """Toggle recaps for a chat, creating default options if needed."""
        options = self.find_options(chat_id) or RecapOptions(chat_id=chat_id)
        options = options.model_copy(update={"enabled": enabled})
        self.upsert_options(options)
        return options

    def enabled_chat_ids(self) -> list[int]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT chat_id FROM recap_options WHERE enabled = 1 ORDER BY chat_id"
            ).fetchall()
        return [row["chat_id"] for row in rows]

    # Subscribers

    def find_subscribers(self, chat_id: int) -> list[Subscriber]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT chat_id, user_id FROM recap_subscribers WHERE chat_id = ? ORDER BY created_at, user_id",
                (chat_id,),
            ).fetchall()
        return [Subscriber(chat_id=row["chat_id"], user_id=row["user_id"]) for row in rows]

    def subscribe(self, chat_id: int, user_id: int) -> bool:
        """Returns True if the subscription is new."""
        with self._connection() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO recap_subscribers (chat_id, user_id) VALUES (?, ?)",
                (chat_id, user_id),
            )
        return cursor.rowcount > 0

    def unsubscribe(self, chat_id: int, user_id: int) -> bool:
        """Returns True if a subscription was removed."""
        with self._connection() as conn:
            cursor = conn.execute(
                "DELETE FROM recap_subscribers WHERE chat_id = ? AND user_id = ?",
                (chat_id, user_id),
            )
        return cursor.rowcount > 0

    # Sent messages

    def save_sent_message(self, record: SentMessageRecord) -> None:
        sent_at = record.sent_at or datetime.now(UTC)
        with self._connection() as conn:
            conn.execute("""
                INSERT INTO sent_messages (chat_id, message_id, text, is_pinned, sent_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(chat_id, message_id) DO UPDATE SET
                    text = excluded.text,
                    is_pinned = excluded.is_pinned
            """, (record.chat_id, record.message_id, record.text, int(record.is_pinned), _utc_iso(sent_at)))

    def find_last_pinned_message(self, chat_id: int) -> SentMessageRecord | None:
        with self._connection() as conn:
            row = conn.execute("""
                SELECT * FROM sent_messages
                WHERE chat_id = ? AND is_pinned = 1
                ORDER BY sent_at DESC, message_id DESC
                LIMIT 1
            """, (chat_id,)).fetchone()
        if row is None:
            return None
        return SentMessageRecord(
            chat_id=row["chat_id"],
            message_id=row["message_id"],
            text=row["text"],
            is_pinned=bool(row["is_pinned"]),
            sent_at=parse_date(row["sent_at"]),
        )

    def update_pinned(self, chat_id: int, message_id: int, pinned: bool) -> None:
        with self._connection() as conn:
            conn.execute(
                "UPDATE sent_messages SET is_pinned = ? WHERE chat_id = ? AND message_id = ?",
                (int(pinned), chat_id, message_id),
            )

    def count_pinned(self, chat_id: int) -> int:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM sent_messages WHERE chat_id = ? AND is_pinned = 1",
                (chat_id,),
            ).fetchone()
        return row["n"]

    def last_sent_at(self) -> datetime | None:
        """When the bot last sent anything, across all chats."""
        with self._connection() as conn:
            row = conn.execute("SELECT MAX(sent_at) AS sent_at FROM sent_messages").fetchone()
        return parse_date(row["sent_at"]) if row["sent_at"] else None

    # Chat history

    def save_chat_message(self, message: ChatMessage) -> bool:
        """Record a group message. Returns True if it was new."""
        with self._connection() as conn:
            cursor = conn.execute("""
                INSERT OR IGNORE INTO chat_messages (
                    chat_id, message_id, chat_title, user_id, display_name,
                    text, sent_at, reply_to_message_id
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                message.chat_id,
                message.message_id,
                message.chat_title,
                message.user_id,
                message.display_name,
                message.text,
                _utc_iso(message.sent_at),
                message.reply_to_message_id,
            ))
        return cursor.rowcount > 0

    def find_messages_since(self, chat_id: int, since: datetime) -> list[ChatMessage]:
        """Messages sent at or after ``since``, oldest first."""
        with self._connection() as conn:
            rows = conn.execute("""
                SELECT * FROM chat_messages
                WHERE chat_id = ? AND sent_at >= ?
                ORDER BY sent_at, message_id
            """, (chat_id, _utc_iso(since))).fetchall()
        return [self._row_to_message(row) for row in rows]

    def _row_to_message(self, row: sqlite3.Row) -> ChatMessage:
        return ChatMessage(
            message_id=row["message_id"],
            chat_id=row["chat_id"],
            chat_title=row["chat_title"] or "",
            user_id=row["user_id"] or 0,
            display_name=row["display_name"] or "Unknown",
            text=row["text"] or "",
            sent_at=parse_date(row["sent_at"]),
            reply_to_message_id=row["reply_to_message_id"],
        )
