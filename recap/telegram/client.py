"""Telegram Bot API client over httpx."""

from typing import Any

import httpx

from recap.errors import ChatPlatformError, TransientNetworkError
from recap.logging_config import get_logger
from recap.models import ChatInfo, ChatType, MemberStatus, SentMessage

logger = get_logger("telegram")

DEFAULT_API_URL = "https://api.telegram.org"


class TelegramBotClient:
    """Implements the chat platform operations the recap pipeline needs."""

    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        self._token = token
        self.api_url = api_url.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout)

    def _call(self, method: str, payload: dict[str, Any]) -> Any:
        url = f"{self.api_url}/bot{self._token}/{method}"
        try:
            response = self.client.post(url, json=payload)
        except httpx.TransportError as e:
            # The URL embeds the token, so never surface the raw request.
            raise TransientNetworkError(f"Telegram {method} request failed: {type(e).__name__}") from None

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientNetworkError(f"Telegram {method} returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise ChatPlatformError(
                f"Telegram {method} returned non-JSON (HTTP {response.status_code})"
            ) from e

        if not body.get("ok"):
            description = body.get("description", "unknown error")
            raise ChatPlatformError(f"Telegram {method} failed ({body.get('error_code')}): {description}")
        return body.get("result")

    def send_message(self, chat_id: int, text: str, disable_preview: bool = False) -> SentMessage:
        result = self._call("sendMessage", {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "HTML",
            "link_preview_options": {"is_disabled": disable_preview},
        })
        return SentMessage(chat_id=chat_id, message_id=result["message_id"], text=text)

    def edit_message(self, chat_id: int, message_id: int, text: str) -> None:
        self._call("editMessageText", {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
            "parse_mode": "HTML",
        })

    def delete_message(self, chat_id: int, message_id: int) -> None:
        self._call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})

    def pin_message(self, chat_id: int, message_id: int) -> None:
        self._call("pinChatMessage", {
            "chat_id": chat_id,
            "message_id": message_id,
            "disable_notification": True,
        })

    def unpin_message(self, chat_id: int, message_id: int) -> None:
        self._call("unpinChatMessage", {"chat_id": chat_id, "message_id": message_id})

    def get_chat(self, chat_id: int) -> ChatInfo:
        result = self._call("getChat", {"chat_id": chat_id})
        try:
            chat_type = ChatType(result.get("type", ChatType.SUPERGROUP.value))
        except ValueError as e:
            raise ChatPlatformError(f"Unknown chat type for {chat_id}: {result.get('type')}") from e
        return ChatInfo(id=result["id"], type=chat_type, title=result.get("title", ""))

    def get_chat_member(self, chat_id: int, user_id: int) -> MemberStatus:
        result = self._call("getChatMember", {"chat_id": chat_id, "user_id": user_id})
        try:
            return MemberStatus(result["status"])
        except (KeyError, ValueError) as e:
            raise ChatPlatformError(f"Unknown member status for {user_id} in {chat_id}") from e
