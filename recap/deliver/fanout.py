"""
Fan-out delivery of recap batches to the group and private subscribers.

Every outbound send goes through one shared send limiter. Transient platform
failures are retried with a fixed delay; a failure that survives the retries
is logged for that target and never stops delivery to the others.
"""

import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import TypeVar

from recap.errors import (
    ChatPlatformError,
    MembershipRevoked,
    PinLookupFailure,
    StoreError,
    TransientNetworkError,
)
from recap.logging_config import get_logger
from recap.models import (
    ALLOWED_MEMBER_STATUSES,
    ChatInfo,
    DeliveryBatch,
    DeliveryTarget,
    GroupBroadcast,
    PrivateSubscriber,
    RecapOptions,
    SendMode,
    SentMessage,
    SentMessageRecord,
    Subscriber,
)
from recap.retry import attempt
from recap.storage import RecapStore
from recap.telegram import ChatPlatform, SendLimiter

from .messages import compose_private_message, compose_recap_message, removal_notice

logger = get_logger("deliver")

PLATFORM_ERRORS = (ChatPlatformError, TransientNetworkError)

T = TypeVar("T")


class FanOutDelivery:
    """Resolves delivery targets and sends each batch to every one of them."""

    def __init__(
        self,
        platform: ChatPlatform,
        store: RecapStore,
        limiter: SendLimiter,
        unsubscribe_attempts: int = 5,
        unsubscribe_delay: float = 60.0,
        platform_attempts: int = 3,
        platform_retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.platform = platform
        self.store = store
        self.limiter = limiter
        self.unsubscribe_attempts = unsubscribe_attempts
        self.unsubscribe_delay = unsubscribe_delay
        self.platform_attempts = platform_attempts
        self.platform_retry_delay = platform_retry_delay
        self.sleep = sleep

    def _call_platform(self, description: str, fn: Callable[[], T]) -> T:
        return attempt(
            fn,
            attempts=self.platform_attempts,
            delay=self.platform_retry_delay,
            description=description,
            retry_on=(TransientNetworkError,),
            sleep=self.sleep,
        )

    def _send(self, chat_id: int, text: str) -> SentMessage:
        def limited_send() -> SentMessage:
            self.limiter.acquire()
            return self.platform.send_message(chat_id, text)

        return self._call_platform(f"send to {chat_id}", limited_send)

    def resolve_targets(
        self,
        chat: ChatInfo,
        options: RecapOptions | None,
        subscribers: Sequence[Subscriber],
    ) -> list[DeliveryTarget]:
        """Group target (when public) plus every subscriber still in the chat.

        Subscribers who left are unsubscribed and notified; a subscriber whose
        membership cannot be looked up is only skipped for this run.
        """
        targets: list[DeliveryTarget] = []
        if options is None or options.send_mode == SendMode.PUBLICLY:
            targets.append(GroupBroadcast(chat_id=chat.id))

        seen: set[int] = set()
        for subscriber in subscribers:
            if subscriber.user_id in seen:
                continue
            seen.add(subscriber.user_id)

            try:
                status = self._call_platform(
                    f"membership of user {subscriber.user_id} in chat {chat.id}",
                    lambda: self.platform.get_chat_member(chat.id, subscriber.user_id),
                )
            except PLATFORM_ERRORS as e:
                logger.warning(
                    f"Membership lookup failed for user {subscriber.user_id} in chat {chat.id}, "
                    f"skipping this run: {e}"
                )
                continue

            if status not in ALLOWED_MEMBER_STATUSES:
                self._revoke(chat, MembershipRevoked(chat.id, subscriber.user_id, status.value))
                continue

            targets.append(PrivateSubscriber(user_id=subscriber.user_id))

        return targets

    def _revoke(self, chat: ChatInfo, revoked: MembershipRevoked) -> None:
        logger.info(f"Auto-unsubscribing: {revoked}")
        try:
            attempt(
                lambda: self.store.unsubscribe(revoked.chat_id, revoked.user_id),
                attempts=self.unsubscribe_attempts,
                delay=self.unsubscribe_delay,
                description=f"unsubscribe user {revoked.user_id} from chat {revoked.chat_id}",
                retry_on=(StoreError,),
                sleep=self.sleep,
            )
        except StoreError as e:
            logger.error(f"Could not unsubscribe user {revoked.user_id} from chat {revoked.chat_id}: {e}")
            return

        try:
            self._send(revoked.user_id, removal_notice(chat.title))
        except PLATFORM_ERRORS as e:
            logger.warning(f"Removal notice to user {revoked.user_id} failed: {e}")

    def deliver(
        self,
        chat: ChatInfo,
        options: RecapOptions | None,
        subscribers: Sequence[Subscriber],
        batches: Sequence[DeliveryBatch],
        model_name: str = "unknown",
    ) -> list[SentMessage]:
        targets = self.resolve_targets(chat, options, subscribers)
        return self.send_batches(chat, options, targets, batches, model_name)

    def send_batches(
        self,
        chat: ChatInfo,
        options: RecapOptions | None,
        targets: Sequence[DeliveryTarget],
        batches: Sequence[DeliveryBatch],
        model_name: str = "unknown",
    ) -> list[SentMessage]:
        """Send every batch to every target, pinning the first group message if enabled."""
        sent: list[SentMessage] = []
        total = len(batches)
        pin_enabled = options is not None and options.pin_enabled

        for index, batch in enumerate(batches):
            content = compose_recap_message(batch, chat.type, model_name, index + 1, total)
            for target in targets:
                is_group = isinstance(target, GroupBroadcast)
                text = content if is_group else compose_private_message(chat.title, content)
                logger.info(f"Sending recap for chat {chat.id} to {target.kind} {target.destination}")

                try:
                    message = self._send(target.destination, text)
                except PLATFORM_ERRORS as e:
                    logger.error(f"Failed to send recap for chat {chat.id} to {target.destination}: {e}")
                    continue

                sent.append(message)
                if is_group and index == 0 and pin_enabled:
                    self._pin(chat.id, message)
                else:
                    self._record(message, pinned=False)

        return sent

    def _pin(self, chat_id: int, message: SentMessage) -> None:
        """Unpin the previous recap, pin ``message`` and keep the store in step."""
        try:
            last = self.store.find_last_pinned_message(chat_id)
        except StoreError as e:
            failure = PinLookupFailure(f"cannot find last pinned message for chat {chat_id}: {e}")
            logger.warning(f"{failure}, skipping pin")
            self._record(message, pinned=False)
            return

        if last is not None:
            try:
                self._call_platform(
                    f"unpin message {last.message_id} in chat {chat_id}",
                    lambda: self.platform.unpin_message(chat_id, last.message_id),
                )
            except PLATFORM_ERRORS as e:
                # Already unpinned by an admin, most likely.
                logger.warning(f"Failed to unpin message {last.message_id} in chat {chat_id}: {e}")
            try:
                self.store.update_pinned(chat_id, last.message_id, False)
            except StoreError as e:
                logger.error(f"Failed to mark message {last.message_id} unpinned in chat {chat_id}: {e}")
                self._record(message, pinned=False)
                return

        try:
            self._call_platform(
                f"pin message {message.message_id} in chat {chat_id}",
                lambda: self.platform.pin_message(chat_id, message.message_id),
            )
        except PLATFORM_ERRORS as e:
            logger.error(f"Failed to pin message {message.message_id} in chat {chat_id}: {e}")
            self._record(message, pinned=False)
            return

        self._record(message, pinned=True)

    def _record(self, message: SentMessage, pinned: bool) -> None:
        try:
            self.store.save_sent_message(
                SentMessageRecord(
                    chat_id=message.chat_id,
                    message_id=message.message_id,
                    text=message.text,
                    is_pinned=pinned,
                    sent_at=datetime.now(UTC),
                )
            )
        except StoreError as e:
            logger.error(f"Failed to record sent message {message.message_id} in chat {message.chat_id}: {e}")
