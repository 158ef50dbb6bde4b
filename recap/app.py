"""Wiring: builds the store, clients, pipeline and scheduler from settings."""

from recap.analyze import Summarizer
from recap.config import ChatsConfig, Settings
from recap.deliver import FanOutDelivery
from recap.llm import create_client
from recap.logging_config import get_logger
from recap.pipeline import RecapPipeline
from recap.publish import Paginator, TelegraphAPI, TelegraphPublisher, Throttle
from recap.scheduler import RecapScheduler
from recap.storage import SQLiteRecapStore
from recap.telegram import SendLimiter, TelegramBotClient

logger = get_logger("app")


def build_store(settings: Settings) -> SQLiteRecapStore:
    return SQLiteRecapStore(settings.db_path)


def seed_options(settings: Settings, store: SQLiteRecapStore) -> int:
    """Load chats.yaml (if present) into the store. Returns the number of chats seeded."""
    chats = ChatsConfig(settings.config_dir / "chats.yaml")
    for options in chats.options.values():
        store.upsert_options(options)
    if chats.options:
        logger.info(f"Seeded options for {len(chats.options)} chats from chats.yaml")
    return len(chats.options)


def build_pipeline(settings: Settings, store: SQLiteRecapStore | None = None) -> RecapPipeline:
    """Assemble a recap pipeline from settings."""
    store = store or build_store(settings)

    llm_client = create_client(
        provider=settings.llm_provider,
        api_key=settings.llm_api_key,
        model=settings.llm_model,
        max_retries=settings.llm_retries,
        timeout=settings.llm_timeout_seconds,
    )
    summarizer = Summarizer(
        client=llm_client,
        min_messages=settings.min_history_messages,
        fallback_chars=settings.condensed_fallback_chars,
        max_history_chars=settings.max_history_chars,
        language=settings.summary_language,
    )

    publisher = TelegraphPublisher(
        api=TelegraphAPI(
            access_token=settings.telegraph_access_token,
            api_url=settings.telegraph_api_url,
            author_name=settings.telegraph_author_name,
            timeout=settings.telegraph_timeout_seconds,
        ),
        paginator=Paginator(settings.page_size_limit, settings.page_safety_buffer),
        attempts=settings.publish_attempts,
        retry_delay=settings.publish_retry_delay_seconds,
        throttle=Throttle(settings.page_create_interval_seconds),
    )

    platform = TelegramBotClient(
        token=settings.telegram_bot_token,
        api_url=settings.telegram_api_url,
        timeout=settings.telegram_timeout_seconds,
    )
    delivery = FanOutDelivery(
        platform=platform,
        store=store,
        limiter=SendLimiter(settings.send_rate_per_second, max_wait=settings.send_max_wait_seconds),
        unsubscribe_attempts=settings.unsubscribe_attempts,
        unsubscribe_delay=settings.unsubscribe_retry_delay_seconds,
        platform_attempts=settings.platform_attempts,
        platform_retry_delay=settings.platform_retry_delay_seconds,
    )

    return RecapPipeline(
        store=store,
        platform=platform,
        summarizer=summarizer,
        publisher=publisher,
        delivery=delivery,
        message_length_limit=settings.message_length_limit,
        platform_attempts=settings.platform_attempts,
        platform_retry_delay=settings.platform_retry_delay_seconds,
    )


def build_scheduler(settings: Settings, store: SQLiteRecapStore | None = None) -> RecapScheduler:
    store = store or build_store(settings)
    return RecapScheduler(
        store=store,
        pipeline=build_pipeline(settings, store),
        max_workers=settings.max_concurrent_runs,
        read_attempts=settings.store_read_attempts,
        read_delay=settings.store_retry_delay_seconds,
    )
