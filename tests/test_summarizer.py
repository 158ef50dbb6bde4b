"""Tests for chat summarization."""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from recap.analyze.summarizer import (
    ChatSummaryResponse,
    CondensedSummaryResponse,
    Summarizer,
    fallback_condensed,
)
from recap.errors import EmptySummarization, InsufficientHistory
from recap.llm import LLMError
from recap.llm.base import LLMResponse
from recap.models import ChatType, HistoryWindow

from conftest import CHAT_ID, NOW, make_messages


def _window(count: int, hours: int = 6) -> HistoryWindow:
    return HistoryWindow(
        chat_id=CHAT_ID,
        hours=hours,
        since=NOW - timedelta(hours=hours),
        until=NOW,
        messages=tuple(make_messages(count)),
    )


def _response(parsed: dict) -> LLMResponse:
    return LLMResponse(parsed=parsed, raw_text="{}", input_tokens=100, output_tokens=50)


TOPICS = {
    "topics": [
        {
            "topicName": "Release planning",
            "sinceId": 100,
            "participants": ["Alice", "Bob"],
            "discussion": [{"point": "Ship on Friday", "keyIds": [101, 102]}],
            "conclusion": "Friday it is",
        }
    ]
}


class TestSummarize:
    """Tests for Summarizer.summarize."""

    def test_insufficient_history(self) -> None:
        """Five messages are below the floor and never reach the model."""
        client = Mock()

        with pytest.raises(InsufficientHistory) as exc_info:
            Summarizer(client=client).summarize(CHAT_ID, _window(5))

        assert exc_info.value.count == 5
        client.generate.assert_not_called()

    def test_six_messages_are_enough(self) -> None:
        """Six messages is the minimum that gets summarized."""
        client = Mock()
        client.generate.return_value = _response(TOPICS)

        result = Summarizer(client=client).summarize(CHAT_ID, _window(6))

        assert len(result.topics) == 1
        assert client.generate.call_args.kwargs["response_schema"] is ChatSummaryResponse

    def test_renders_topic_with_message_links(self) -> None:
        """Supergroup topics link back to the messages they cite."""
        client = Mock()
        client.generate.return_value = _response(TOPICS)

        result = Summarizer(client=client).summarize(CHAT_ID, _window(8), ChatType.SUPERGROUP)

        topic = result.topics[0]
        assert "## [Release planning](https://t.me/c/1234567890/100)" in topic
        assert "**Participants**: Alice, Bob" in topic
        assert "- Ship on Friday [1](https://t.me/c/1234567890/101)" in topic
        assert "**Conclusion**: Friday it is" in topic

    def test_basic_group_has_no_links(self) -> None:
        """Basic groups cannot link to messages."""
        client = Mock()
        client.generate.return_value = _response(TOPICS)

        result = Summarizer(client=client).summarize(CHAT_ID, _window(8), ChatType.GROUP)

        assert "t.me" not in result.topics[0]
        assert "## Release planning" in result.topics[0]

    def test_blank_topics_are_discarded(self) -> None:
        """Whitespace-only topics are dropped, the rest kept."""
        client = Mock()
        client.generate.return_value = _response(
            {"topics": [{"topicName": "   ", "discussion": [{"point": " "}]}, TOPICS["topics"][0]]}
        )

        result = Summarizer(client=client).summarize(CHAT_ID, _window(8))

        assert len(result.topics) == 1

    def test_all_blank_raises_empty(self) -> None:
        """Nothing left after discarding blanks is an empty summarization."""
        client = Mock()
        client.generate.return_value = _response({"topics": [{"topicName": ""}, {"conclusion": "  "}]})

        with pytest.raises(EmptySummarization):
            Summarizer(client=client).summarize(CHAT_ID, _window(8))

    def test_llm_error_propagates(self) -> None:
        """Model failures are left to the caller."""
        client = Mock()
        client.generate.side_effect = LLMError("quota")

        with pytest.raises(LLMError):
            Summarizer(client=client).summarize(CHAT_ID, _window(8))


class TestCondense:
    """Tests for Summarizer.condense."""

    def test_returns_model_summary(self) -> None:
        """The model's one-liner is used when present."""
        client = Mock()
        client.generate.return_value = _response({"summary": "  Release day 🚀  "})

        summary = Summarizer(client=client).condense(CHAT_ID, _window(8), ["## Topic"])

        assert summary == "Release day 🚀"
        assert client.generate.call_args.kwargs["response_schema"] is CondensedSummaryResponse

    def test_failure_falls_back_to_first_topic(self) -> None:
        """A failing model yields the first topic truncated to 50 chars."""
        client = Mock()
        client.generate.side_effect = Exception("API Error")
        topic = "## " + "a" * 80

        summary = Summarizer(client=client).condense(CHAT_ID, _window(8), [topic, "## second"])

        assert summary == "a" * 50 + "..."

    def test_empty_summary_without_topics_uses_placeholder(self) -> None:
        """No summary and no topics yields the templated placeholder."""
        client = Mock()
        client.generate.return_value = _response({"summary": ""})

        summary = Summarizer(client=client).condense(CHAT_ID, _window(8, hours=12), [])

        assert summary == "Chat recap for the past 12 hours"

    def test_fallback_keeps_short_topic(self) -> None:
        """Topics within the limit are used whole, without markup."""
        assert fallback_condensed(["## [Short](https://t.me/c/1/2)"], 6) == "Short"
