"""Chat platform interface and the Telegram implementation."""

from typing import Protocol

from recap.models import ChatInfo, MemberStatus, SentMessage

from .client import TelegramBotClient
from .ratelimit import SendLimiter


class ChatPlatform(Protocol):
    """Operations the pipeline performs against the chat platform."""

    def send_message(self, chat_id: int, text: str, disable_preview: bool = False) -> SentMessage: ...

    def edit_message(self, chat_id: int, message_id: int, text: str) -> None: ...

    def delete_message(self, chat_id: int, message_id: int) -> None: ...

    def pin_message(self, chat_id: int, message_id: int) -> None: ...

    def unpin_message(self, chat_id: int, message_id: int) -> None: ...

    def get_chat(self, chat_id: int) -> ChatInfo: ...

    def get_chat_member(self, chat_id: int, user_id: int) -> MemberStatus: ...


__all__ = ["ChatPlatform", "SendLimiter", "TelegramBotClient"]
