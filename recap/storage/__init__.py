"""Storage layer: the store protocol and its SQLite implementation."""

from datetime import datetime
from typing import Protocol

from recap.models import ChatMessage, RecapOptions, SentMessageRecord, Subscriber

from .db import SQLiteRecapStore


class RecapStore(Protocol):
    """Options, subscribers, sent messages and recorded history."""

    def is_recap_enabled(self, chat_id: int) -> bool: ...

    def find_options(self, chat_id: int) -> RecapOptions | None: ...

    def upsert_options(self, options: RecapOptions) -> None: ...

    def set_enabled(self, chat_id: int, enabled: bool) -> RecapOptions: ...

    def enabled_chat_ids(self) -> list[int]: ...

    def find_subscribers(self, chat_id: int) -> list[Subscriber]: ...

    def subscribe(self, chat_id: int, user_id: int) -> bool: ...

    def unsubscribe(self, chat_id: int, user_id: int) -> bool: ...

    def save_sent_message(self, record: SentMessageRecord) -> None: ...

    def find_last_pinned_message(self, chat_id: int) -> SentMessageRecord | None: ...

    def update_pinned(self, chat_id: int, message_id: int, pinned: bool) -> None: ...

    def save_chat_message(self, message: ChatMessage) -> bool: ...

    def find_messages_since(self, chat_id: int, since: datetime) -> list[ChatMessage]: ...


__all__ = ["RecapStore", "SQLiteRecapStore"]
