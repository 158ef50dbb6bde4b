"""
Rendering helpers: chat history to prompt text, topics to page HTML.
"""

import html
import re
from collections.abc import Iterable, Sequence
from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field

from recap.models import ChatMessage, ChatType

_BOLD = re.compile(r"\*\*(.+?)\*\*")
_ITALIC = re.compile(r"(?<![\w])_(.+?)_(?![\w])")
_LINK = re.compile(r"\[([^\]]+)\]\((https?://[^)\s]+)\)")


class TopicPoint(BaseModel):
    """A key point raised during a topic."""

    point: str = Field(default="")
    key_ids: list[int] = Field(
        default_factory=list,
        validation_alias=AliasChoices("keyIds", "key_ids"),
    )


class Topic(BaseModel):
    """One discussion topic as returned by the model."""

    topic_name: str = Field(default="", validation_alias=AliasChoices("topicName", "topic_name"))
    since_id: int | None = Field(default=None, validation_alias=AliasChoices("sinceId", "since_id"))
    participants: list[str] = Field(default_factory=list)
    discussion: list[TopicPoint] = Field(default_factory=list)
    conclusion: str = Field(default="")


def format_history(messages: Sequence[ChatMessage], max_chars: int = 30000) -> str:
    """Serialize messages into prompt lines, keeping the most recent ones within budget."""
    lines: list[str] = []
    for message in messages:
        text = " ".join(message.text.split())
        if not text:
            continue
        reply = f" (reply to {message.reply_to_message_id})" if message.reply_to_message_id else ""
        lines.append(f"{message.message_id}: [{message.display_name}]{reply} {text}")

    total = 0
    kept: list[str] = []
    for line in reversed(lines):
        total += len(line) + 1
        if total > max_chars:
            break
        kept.append(line)
    kept.reverse()
    return "\n".join(kept)


def message_link(chat_id: int, message_id: int, chat_type: ChatType) -> str | None:
    """Build a t.me link to a message; only supergroups support them."""
    if chat_type != ChatType.SUPERGROUP:
        return None
    internal_id = str(chat_id)
    if internal_id.startswith("-100"):
        internal_id = internal_id[4:]
    else:
        internal_id = internal_id.lstrip("-")
    return f"https://t.me/c/{internal_id}/{message_id}"


def render_topic(topic: Topic, chat_id: int, chat_type: ChatType) -> str:
    """Render a topic as lightweight markdown (paragraphs separated by blank lines)."""
    blocks: list[str] = []
    title = topic.topic_name.strip()
    if title:
        since = message_link(chat_id, topic.since_id, chat_type) if topic.since_id else None
        blocks.append(f"## [{title}]({since})" if since else f"## {title}")

    participants = [name.strip() for name in topic.participants if name.strip()]
    if participants:
        blocks.append(f"**Participants**: {', '.join(participants)}")

    points: list[str] = []
    for item in topic.discussion:
        point = item.point.strip()
        if not point:
            continue
        refs = []
        for index, key_id in enumerate(item.key_ids, start=1):
            link = message_link(chat_id, key_id, chat_type)
            if link:
                refs.append(f"[{index}]({link})")
        points.append(f"- {point}" + (f" {' '.join(refs)}" if refs else ""))
    if points:
        blocks.append("\n".join(points))

    conclusion = topic.conclusion.strip()
    if conclusion:
        blocks.append(f"**Conclusion**: {conclusion}")

    return "\n\n".join(blocks)


def inline_markup(text: str) -> str:
    """Escape text and convert **bold**, _italic_ and [label](url)."""
    escaped = html.escape(text, quote=False)
    escaped = _LINK.sub(lambda m: f'<a href="{html.escape(html.unescape(m.group(2)))}">{m.group(1)}</a>', escaped)
    escaped = _BOLD.sub(r"<b>\1</b>", escaped)
    return _ITALIC.sub(r"<i>\1</i>", escaped)


def markdown_to_html(text: str) -> str:
    """Convert the topic markdown dialect into Telegraph-friendly HTML blocks."""
    parts: list[str] = []
    for block in text.split("\n\n"):
        block = block.strip()
        if not block:
            continue
        if block.startswith("#"):
            parts.append(f"<h3>{inline_markup(block.lstrip('#').strip())}</h3>")
            continue

        lines = [line.strip() for line in block.splitlines() if line.strip()]
        if lines and all(line.startswith(("- ", "* ")) for line in lines):
            items = "".join(f"<li>{inline_markup(line[2:].strip())}</li>" for line in lines)
            parts.append(f"<ul>{items}</ul>")
            continue

        parts.append("<p>" + "<br>".join(inline_markup(line) for line in lines) + "</p>")
    return "".join(parts)


def split_into_batches(texts: Iterable[str], limit: int) -> list[list[str]]:
    """Group texts so each batch joined with blank lines stays within ``limit`` characters.

    A text longer than the limit on its own gets a batch to itself.
    """
    batches: list[list[str]] = []
    current: list[str] = []
    current_len = 0
    for text in texts:
        added = len(text) + (2 if current else 0)
        if current and current_len + added > limit:
            batches.append(current)
            current, current_len = [], 0
            added = len(text)
        current.append(text)
        current_len += added
    if current:
        batches.append(current)
    return batches


def build_page_title(chat_title: str, hours: int) -> str:
    """Title for a recap page."""
    name = chat_title.strip() or "Group"
    return f"[{name}] Auto {hours}-hour recap"


def build_page_html(
    topics: Sequence[str],
    hours: int,
    generated_at: datetime,
    model_name: str,
) -> str:
    """Assemble the full recap document for one batch of topics."""
    timestamp = generated_at.strftime("%Y/%m/%d %H:%M:%S")
    header = (
        f"<p><em>Time range: the {hours} hours before {timestamp}</em></p><hr>"
    )
    body = "".join(markdown_to_html(topic) for topic in topics)
    footer = f"<hr><p><em>Generated by {html.escape(model_name)}</em></p>"
    return header + body + footer
