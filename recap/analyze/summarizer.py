"""Chat history summarization via provider-agnostic LLM client."""

from __future__ import annotations

import re
from collections.abc import Sequence
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationError

from recap.config import get_settings
from recap.errors import EmptySummarization, InsufficientHistory
from recap.llm import LLMClient, create_client
from recap.logging_config import get_logger
from recap.models import ChatType, HistoryWindow, SummarizationResult

from .formatting import Topic, format_history, render_topic
from .prompts import (
    CHAT_SUMMARY_SYSTEM,
    CHAT_SUMMARY_USER,
    CONDENSED_SUMMARY_SYSTEM,
    CONDENSED_SUMMARY_USER,
)

logger = get_logger("summarizer")

_MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\([^)]*\)")


class ChatSummaryResponse(BaseModel):
    """Structured response schema for chat history summaries."""

    topics: list[Topic] = Field(description="1-20 discussion topics")


class CondensedSummaryResponse(BaseModel):
    """Structured response schema for the one-line highlight."""

    summary: str = Field(..., description="One sentence with 1-2 emoji")


def plain_text(markdown: str) -> str:
    """Strip the topic markdown dialect down to a single plain line."""
    text = _MARKDOWN_LINK.sub(r"\1", markdown)
    text = re.sub(r"^#+\s*", "", text, flags=re.MULTILINE)
    text = text.replace("**", "")
    return " ".join(text.split())


def fallback_condensed(topics: Sequence[str], hours: int, max_chars: int = 50) -> str:
    """Condensed text used when the model gives us nothing."""
    if topics:
        first = plain_text(topics[0])
        if len(first) > max_chars:
            return first[:max_chars] + "..."
        if first:
            return first
    return f"Chat recap for the past {hours} hours"


class Summarizer:
    """Turns a history window into topic summaries and a condensed highlight."""

    def __init__(
        self,
        client: LLMClient | None = None,
        min_messages: int = 6,
        fallback_chars: int = 50,
        max_history_chars: int = 30000,
        language: str = "English",
    ):
        if client is None:
            settings = get_settings()
            client = create_client(
                provider=settings.llm_provider,
                api_key=settings.llm_api_key,
                model=settings.llm_model,
                max_retries=settings.llm_retries,
                timeout=settings.llm_timeout_seconds,
            )

        self.client = client
        self.min_messages = min_messages
        self.fallback_chars = fallback_chars
        self.max_history_chars = max_history_chars
        self.language = language

    @property
    def model_name(self) -> str:
        return getattr(self.client, "model", "unknown")

    def summarize(
        self,
        chat_id: int,
        window: HistoryWindow,
        chat_type: ChatType = ChatType.SUPERGROUP,
    ) -> SummarizationResult:
        """Summarize a window into topics.

        Raises:
            InsufficientHistory: the window is below the message floor.
            EmptySummarization: every topic came back blank.
            LLMError: the model call failed after retries.
        """
        if len(window) < self.min_messages:
            raise InsufficientHistory(chat_id, len(window), self.min_messages)

        log_id = uuid4()
        logger.info(
            f"Summarizing {len(window)} messages for chat {chat_id} "
            f"(last {window.hours}h, log_id={log_id})"
        )

        prompt = CHAT_SUMMARY_USER.format(
            language=self.language,
            chat_history=format_history(window.messages, self.max_history_chars),
        )
        response = self.client.generate(
            prompt=prompt,
            system=CHAT_SUMMARY_SYSTEM,
            response_schema=ChatSummaryResponse,
        )
        logger.debug(f"Summary generated ({response.tokens_used} tokens)")

        raw_topics = response.parsed.get("topics")
        if raw_topics is None:
            raw_topics = response.parsed.get("items", [])

        topics: list[str] = []
        for raw in raw_topics or []:
            try:
                topic = Topic.model_validate(raw)
            except ValidationError as exc:
                logger.warning(f"Dropping malformed topic for chat {chat_id}: {exc}")
                continue
            rendered = render_topic(topic, chat_id, chat_type)
            if rendered.strip():
                topics.append(rendered)

        if not topics:
            raise EmptySummarization(f"summarization for chat {chat_id} is empty (log_id={log_id})")

        return SummarizationResult(log_id=log_id, topics=tuple(topics))

    def condense(
        self,
        chat_id: int,
        window: HistoryWindow,
        topics: Sequence[str] = (),
    ) -> str:
        """One-line highlight of the window. Never raises."""
        summary = ""
        try:
            response = self.client.generate(
                prompt=CONDENSED_SUMMARY_USER.format(
                    chat_history=format_history(window.messages, self.max_history_chars),
                ),
                system=CONDENSED_SUMMARY_SYSTEM.format(language=self.language),
                response_schema=CondensedSummaryResponse,
            )
            summary = " ".join(str(response.parsed.get("summary") or "").split())
        except Exception as exc:
            logger.warning(f"Condensed summary failed for chat {chat_id}, using fallback: {exc}")

        if summary:
            return summary

        logger.info(f"Condensed summary empty for chat {chat_id}, using fallback")
        return fallback_condensed(topics, window.hours, self.fallback_chars)
