"""
Core data models for the recap pipeline.

Using Pydantic for validation and serialization.
"""

from datetime import datetime
from enum import Enum, IntEnum
from typing import Annotated, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

RATES_TO_HOURS: dict[int, int] = {
    4: 6,
    3: 8,
    2: 12,
}
DEFAULT_WINDOW_HOURS = 6


def hours_for_rates(rates_per_day: int | None) -> int:
    """Map recaps-per-day to the history horizon in hours."""
    if rates_per_day is None:
        return DEFAULT_WINDOW_HOURS
    return RATES_TO_HOURS.get(rates_per_day, DEFAULT_WINDOW_HOURS)


class SendMode(IntEnum):
    """Where auto recaps go."""

    PUBLICLY = 0
    ONLY_PRIVATE_SUBSCRIPTIONS = 1


class ChatType(str, Enum):
    """Telegram chat types."""

    PRIVATE = "private"
    GROUP = "group"
    SUPERGROUP = "supergroup"
    CHANNEL = "channel"


class MemberStatus(str, Enum):
    """Telegram chat member statuses."""

    CREATOR = "creator"
    ADMINISTRATOR = "administrator"
    MEMBER = "member"
    RESTRICTED = "restricted"
    LEFT = "left"
    KICKED = "kicked"


ALLOWED_MEMBER_STATUSES = frozenset(
    {
        MemberStatus.CREATOR,
        MemberStatus.ADMINISTRATOR,
        MemberStatus.MEMBER,
        MemberStatus.RESTRICTED,
    }
)


class RecapOptions(BaseModel):
    """Per-chat recap configuration."""

    chat_id: int = Field(..., description="Group chat id")
    enabled: bool = Field(default=False, description="Whether auto recap is on")
    send_mode: SendMode = Field(default=SendMode.PUBLICLY, description="Delivery mode")
    rates_per_day: int = Field(default=4, description="Recaps per day (2, 3 or 4)")
    pin_enabled: bool = Field(default=False, description="Pin the group recap message")

    @property
    def window_hours(self) -> int:
        return hours_for_rates(self.rates_per_day)


class Subscriber(BaseModel):
    """A private-delivery opt-in."""

    model_config = ConfigDict(frozen=True)

    chat_id: int
    user_id: int


class ChatMessage(BaseModel):
    """A single recorded chat message."""

    model_config = ConfigDict(frozen=True)

    message_id: int
    chat_id: int
    chat_title: str = ""
    user_id: int = 0
    display_name: str = Field(default="Unknown")
    text: str = ""
    sent_at: datetime
    reply_to_message_id: int | None = None


class HistoryWindow(BaseModel):
    """Read-only snapshot of the messages in a recap horizon."""

    model_config = ConfigDict(frozen=True)

    chat_id: int
    hours: int
    since: datetime
    until: datetime
    messages: tuple[ChatMessage, ...] = ()

    @property
    def chat_title(self) -> str:
        if not self.messages:
            return ""
        return self.messages[-1].chat_title

    def __len__(self) -> int:
        return len(self.messages)


class SummarizationResult(BaseModel):
    """Output of one summarization run."""

    model_config = ConfigDict(frozen=True)

    log_id: UUID = Field(default_factory=uuid4, description="Correlation id")
    topics: tuple[str, ...] = Field(default=(), description="Non-empty topic summaries")
    condensed: str = Field(default="", description="One-line highlight")


class PageSeries(BaseModel):
    """Published page URLs for one document."""

    model_config = ConfigDict(frozen=True)

    urls: tuple[str, ...]

    @field_validator("urls")
    @classmethod
    def _not_empty(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("a page series needs at least one URL")
        return value

    @property
    def canonical_url(self) -> str:
        return self.urls[0]

    def __len__(self) -> int:
        return len(self.urls)


class SentMessageRecord(BaseModel):
    """Persisted record of a message the bot sent."""

    chat_id: int
    message_id: int
    text: str = ""
    is_pinned: bool = False
    sent_at: datetime | None = None


# The pinned record is a sent-message record with is_pinned=True.
PinnedMessageRecord = SentMessageRecord


class ChatInfo(BaseModel):
    """Chat metadata returned by the platform."""

    id: int
    type: ChatType = ChatType.SUPERGROUP
    title: str = ""


class SentMessage(BaseModel):
    """A message accepted by the platform."""

    chat_id: int
    message_id: int
    text: str = ""


class GroupBroadcast(BaseModel):
    """Deliver to the group chat itself."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["group"] = "group"
    chat_id: int

    @property
    def destination(self) -> int:
        return self.chat_id


class PrivateSubscriber(BaseModel):
    """Deliver to a subscriber's private chat."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["private"] = "private"
    user_id: int

    @property
    def destination(self) -> int:
        return self.user_id


DeliveryTarget = Annotated[GroupBroadcast | PrivateSubscriber, Field(discriminator="kind")]


class DeliveryBatch(BaseModel):
    """One pre-split unit of content sent to every target."""

    pages: PageSeries
    page_title: str
    condensed: str


class RunOutcome(str, Enum):
    """How a scheduled firing ended."""

    DELIVERED = "delivered"
    SKIPPED_DISABLED = "skipped_disabled"
    SKIPPED_NO_SUBSCRIBERS = "skipped_no_subscribers"
    SKIPPED_INSUFFICIENT_HISTORY = "skipped_insufficient_history"
    SKIPPED_EMPTY_SUMMARY = "skipped_empty_summary"
    FAILED = "failed"


class RecapRunResult(BaseModel):
    """Result of one pipeline run for a chat."""

    chat_id: int
    outcome: RunOutcome
    log_id: UUID | None = None
    condensed: str = Field(default="", description="One-line highlight sent with the recap")
    page_urls: list[str] = Field(default_factory=list)
    targets: list[DeliveryTarget] = Field(default_factory=list)
    sent_messages: list[SentMessage] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    duration_seconds: float = 0.0
