"""
One recap run for one chat: window, summarize, publish, deliver.

Expected conditions (too little history, empty summaries) end the run with
a skipped outcome; failures end it with ``RunOutcome.FAILED`` and the
reason in ``errors``. Neither raises, so the scheduler can always move on.
"""

import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta

from recap.analyze import Summarizer, build_page_html, build_page_title, split_into_batches
from recap.deliver import FanOutDelivery
from recap.errors import (
    ChatPlatformError,
    EmptySummarization,
    InsufficientHistory,
    PublishingError,
    StoreError,
    TransientNetworkError,
)
from recap.llm import LLMError
from recap.logging_config import get_logger
from recap.models import (
    DEFAULT_WINDOW_HOURS,
    DeliveryBatch,
    HistoryWindow,
    RecapOptions,
    RecapRunResult,
    RunOutcome,
    Subscriber,
)
from recap.publish import TelegraphPublisher
from recap.retry import attempt
from recap.storage import RecapStore
from recap.telegram import ChatPlatform

logger = get_logger("pipeline")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RecapPipeline:
    """Runs the summarize, publish and deliver stages for a chat."""

    def __init__(
        self,
        store: RecapStore,
        platform: ChatPlatform,
        summarizer: Summarizer,
        publisher: TelegraphPublisher,
        delivery: FanOutDelivery,
        message_length_limit: int = 4096,
        platform_attempts: int = 3,
        platform_retry_delay: float = 1.0,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.platform = platform
        self.summarizer = summarizer
        self.publisher = publisher
        self.delivery = delivery
        self.message_length_limit = message_length_limit
        self.platform_attempts = platform_attempts
        self.platform_retry_delay = platform_retry_delay
        self.clock = clock
        self.sleep = sleep

    def build_window(self, chat_id: int, hours: int) -> HistoryWindow:
        until = self.clock()
        since = until - timedelta(hours=hours)
        messages = self.store.find_messages_since(chat_id, since)
        return HistoryWindow(
            chat_id=chat_id,
            hours=hours,
            since=since,
            until=until,
            messages=tuple(message for message in messages if message.sent_at <= until),
        )

    def run(
        self,
        chat_id: int,
        options: RecapOptions | None = None,
        subscribers: Sequence[Subscriber] = (),
    ) -> RecapRunResult:
        start_time = time.time()
        hours = options.window_hours if options else DEFAULT_WINDOW_HOURS

        def finish(outcome: RunOutcome, **fields) -> RecapRunResult:
            result = RecapRunResult(
                chat_id=chat_id,
                outcome=outcome,
                duration_seconds=time.time() - start_time,
                **fields,
            )
            logger.info(
                f"Recap for chat {chat_id} finished: {outcome.value} "
                f"(log_id={result.log_id}, {result.duration_seconds:.1f}s)"
            )
            return result

        try:
            chat = attempt(
                lambda: self.platform.get_chat(chat_id),
                attempts=self.platform_attempts,
                delay=self.platform_retry_delay,
                description=f"get chat {chat_id}",
                retry_on=(TransientNetworkError,),
                sleep=self.sleep,
            )
            window = self.build_window(chat_id, hours)
        except (ChatPlatformError, TransientNetworkError, StoreError) as e:
            logger.error(f"Cannot prepare recap for chat {chat_id}: {e}")
            return finish(RunOutcome.FAILED, errors=[str(e)])

        try:
            summary = self.summarizer.summarize(chat_id, window, chat.type)
        except InsufficientHistory as e:
            logger.info(f"Skipping recap: {e}")
            return finish(RunOutcome.SKIPPED_INSUFFICIENT_HISTORY)
        except EmptySummarization as e:
            logger.warning(f"Skipping recap: {e}")
            return finish(RunOutcome.SKIPPED_EMPTY_SUMMARY)
        except LLMError as e:
            logger.error(f"Summarization failed for chat {chat_id}: {e}")
            return finish(RunOutcome.FAILED, errors=[str(e)])

        log_id = summary.log_id
        summary = summary.model_copy(
            update={"condensed": self.summarizer.condense(chat_id, window, summary.topics)}
        )
        model_name = str(self.summarizer.model_name)
        title = build_page_title(chat.title or window.chat_title, hours)
        generated_at = self.clock()

        errors: list[str] = []
        batches: list[DeliveryBatch] = []
        topic_batches = split_into_batches(summary.topics, self.message_length_limit)
        for number, topics in enumerate(topic_batches, start=1):
            html = build_page_html(topics, hours, generated_at, model_name)
            try:
                pages = self.publisher.publish(title, html)
            except PublishingError as e:
                logger.error(
                    f"Publishing batch {number}/{len(topic_batches)} for chat {chat_id} failed "
                    f"(log_id={log_id}): {e}"
                )
                errors.append(f"batch {number}: {e}")
                continue
            batches.append(DeliveryBatch(pages=pages, page_title=title, condensed=summary.condensed))

        if not batches:
            return finish(RunOutcome.FAILED, log_id=log_id, condensed=summary.condensed, errors=errors)

        targets = self.delivery.resolve_targets(chat, options, subscribers)
        sent = self.delivery.send_batches(chat, options, targets, batches, model_name)

        return finish(
            RunOutcome.DELIVERED,
            log_id=log_id,
            condensed=summary.condensed,
            page_urls=[url for batch in batches for url in batch.pages.urls],
            targets=targets,
            sent_messages=sent,
            errors=errors,
        )
