"""In-process scheduling of periodic recaps.

Each chat with recaps enabled has exactly one pending capsule: an
APScheduler date job keyed by the chat id. When it fires, the scheduler
checks the chat's options, runs the recap on APScheduler's worker pool and
always queues the next capsule.

The job scheduler is started paused on construction, so capsules can be
queued and inspected before ``start()`` lets anything fire.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, TypeVar

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from recap.errors import StoreError
from recap.logging_config import get_logger
from recap.models import (
    DEFAULT_WINDOW_HOURS,
    RecapOptions,
    RecapRunResult,
    RunOutcome,
    SendMode,
    Subscriber,
)
from recap.retry import attempt

if TYPE_CHECKING:
    from recap.pipeline import RecapPipeline
    from recap.storage import RecapStore

logger = get_logger("scheduler")

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Capsule:
    """A pending recap firing."""

    chat_id: int
    fire_at: datetime


def build_job_scheduler(max_workers: int = 20) -> BackgroundScheduler:
    """APScheduler instance that runs each capsule on a pool of ``max_workers`` threads."""
    return BackgroundScheduler(
        timezone="UTC",
        executors={"default": ThreadPoolExecutor(max_workers)},
        # A late capsule still fires; skipping it would stop the chat's recaps for good.
        job_defaults={"coalesce": True, "misfire_grace_time": None},
    )


class RecapScheduler:
    """Schedules recap firings per chat and dispatches them to the pipeline."""

    def __init__(
        self,
        store: RecapStore,
        pipeline: RecapPipeline,
        jobs: BackgroundScheduler | None = None,
        max_workers: int = 20,
        read_attempts: int = 10,
        read_delay: float = 0.5,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.pipeline = pipeline
        self.jobs = jobs if jobs is not None else build_job_scheduler(max_workers)
        self.read_attempts = read_attempts
        self.read_delay = read_delay
        self.clock = clock
        self.sleep = sleep
        if not self.jobs.running:
            self.jobs.start(paused=True)

    def _read(self, description: str, fn: Callable[[], T]) -> T:
        return attempt(
            fn,
            attempts=self.read_attempts,
            delay=self.read_delay,
            description=description,
            retry_on=(StoreError,),
            sleep=self.sleep,
        )

    def schedule(self, chat_id: int, options: RecapOptions | None = None) -> datetime:
        """Queue the next firing one interval from now, replacing any pending one."""
        if options is None:
            try:
                options = self._read(f"read recap options for chat {chat_id}", lambda: self.store.find_options(chat_id))
            except StoreError as e:
                logger.warning(f"Cannot read options for chat {chat_id}, using default interval: {e}")
        hours = options.window_hours if options else DEFAULT_WINDOW_HOURS
        fire_at = self.clock() + timedelta(hours=hours)
        self.jobs.add_job(
            self.on_fire,
            trigger=DateTrigger(run_date=fire_at, timezone="UTC"),
            args=[chat_id],
            id=str(chat_id),
            name=f"recap {chat_id}",
            replace_existing=True,
        )
        logger.debug(f"Scheduled recap for chat {chat_id} at {fire_at.isoformat()}")
        return fire_at

    def unschedule(self, chat_id: int) -> bool:
        try:
            self.jobs.remove_job(str(chat_id))
        except JobLookupError:
            return False
        return True

    def pending(self) -> list[Capsule]:
        """Pending capsules, soonest first."""
        return [Capsule(int(job.id), job.next_run_time) for job in self.jobs.get_jobs()]

    def on_fire(self, chat_id: int) -> RecapRunResult:
        """Handle a due capsule. The next capsule is queued no matter what happens."""
        seen: dict[str, RecapOptions] = {}
        try:
            return self._fire(chat_id, seen)
        finally:
            self.schedule(chat_id, seen.get("options"))

    def _fire(self, chat_id: int, seen: dict[str, RecapOptions]) -> RecapRunResult:
        try:
            enabled = self._read(f"read recap enabled for chat {chat_id}", lambda: self.store.is_recap_enabled(chat_id))
            options = self._read(f"read recap options for chat {chat_id}", lambda: self.store.find_options(chat_id))
            if options is not None:
                seen["options"] = options
            if not enabled:
                logger.info(f"Recap disabled for chat {chat_id}, skipping")
                return RecapRunResult(chat_id=chat_id, outcome=RunOutcome.SKIPPED_DISABLED)
            subscribers = self._read(
                f"read subscribers for chat {chat_id}", lambda: self.store.find_subscribers(chat_id)
            )
        except StoreError as e:
            logger.error(f"Aborting recap firing for chat {chat_id}: {e}")
            return RecapRunResult(chat_id=chat_id, outcome=RunOutcome.FAILED, errors=[str(e)])

        if options and options.send_mode == SendMode.ONLY_PRIVATE_SUBSCRIPTIONS and not subscribers:
            logger.info(f"Chat {chat_id} sends to private subscribers only and has none, skipping")
            return RecapRunResult(chat_id=chat_id, outcome=RunOutcome.SKIPPED_NO_SUBSCRIBERS)

        logger.info(f"Running recap for chat {chat_id} ({len(subscribers)} subscribers)")
        return self._run(chat_id, options, subscribers)

    def _run(self, chat_id: int, options: RecapOptions | None, subscribers: Sequence[Subscriber]) -> RecapRunResult:
        try:
            return self.pipeline.run(chat_id, options, subscribers)
        except Exception as e:
            logger.exception(f"Recap run crashed for chat {chat_id}")
            return RecapRunResult(chat_id=chat_id, outcome=RunOutcome.FAILED, errors=[str(e)])

    def trigger(self, chat_id: int) -> RecapRunResult:
        """Run a recap for the chat right now, on the calling thread."""
        options = self._read(f"read recap options for chat {chat_id}", lambda: self.store.find_options(chat_id))
        subscribers = self._read(f"read subscribers for chat {chat_id}", lambda: self.store.find_subscribers(chat_id))
        return self._run(chat_id, options, subscribers)

    def bootstrap(self) -> list[int]:
        """Queue a capsule for every chat that has recaps enabled."""
        chat_ids = self._read("list enabled chats", self.store.enabled_chat_ids)
        for chat_id in chat_ids:
            self.schedule(chat_id)
        logger.info(f"Queued recaps for {len(chat_ids)} chats")
        return chat_ids

    def start(self) -> None:
        """Let due capsules fire."""
        self.jobs.resume()

    def shutdown(self, wait: bool = True) -> None:
        if self.jobs.running:
            self.jobs.shutdown(wait=wait)
