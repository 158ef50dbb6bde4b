"""Recap settings from the environment and per-chat seeds from chats.yaml."""

from pathlib import Path
from typing import Literal, Self

import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from recap.llm import PROVIDER_DEFAULTS
from recap.models import RecapOptions, SendMode

# Per-user env file, overridden by a project .env
XDG_CONFIG_PATH = Path.home() / ".config" / "recap"


class Settings(BaseSettings):
    """Every tunable of the recap service."""

    model_config = SettingsConfigDict(
        env_file=[
            XDG_CONFIG_PATH / "config.env",
            ".env",
        ],
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM
    llm_provider: Literal["gemini", "openai", "anthropic"] = Field(
        default="openai",
        description="Which LLM backend summarizes chats",
    )
    llm_api_key: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("LLM_API_KEY", "OPENAI_API_KEY"),
        description="Key for the selected LLM backend",
    )
    llm_model: str | None = Field(default=None, description="Model name for configured LLM provider")
    llm_timeout_seconds: float = Field(default=120.0, gt=0, description="Wall-clock limit per LLM call")
    llm_retries: int = Field(default=2, ge=0, description="Extra attempts for transient LLM failures")

    # Telegram
    telegram_bot_token: str = Field(..., min_length=1, description="Telegram bot token")
    telegram_api_url: str = Field(default="https://api.telegram.org", description="Bot API base URL")
    telegram_timeout_seconds: float = Field(default=30.0, gt=0)
    platform_attempts: int = Field(default=3, ge=1, description="Attempts for transient chat platform failures")
    platform_retry_delay_seconds: float = Field(default=1.0, ge=0)

    # Telegraph
    telegraph_access_token: str = Field(default="", description="Telegraph account access token")
    telegraph_api_url: str = Field(default="https://api.telegra.ph/", description="Telegraph API base URL")
    telegraph_author_name: str = Field(default="Chat Recap", description="Author shown on pages")
    telegraph_timeout_seconds: float = Field(default=30.0, gt=0)

    # Publishing limits
    page_size_limit: int = Field(default=60 * 1024, description="Working budget per page in bytes")
    page_safety_buffer: int = Field(default=2 * 1024, description="Headroom for serialization overhead")
    page_create_interval_seconds: float = Field(default=2.0, ge=0, description="Throttle between page calls")
    publish_attempts: int = Field(default=3, ge=1)
    publish_retry_delay_seconds: float = Field(default=1.0, ge=0)

    # Scheduling
    store_read_attempts: int = Field(default=10, ge=1, description="Attempts for options/subscriber reads")
    store_retry_delay_seconds: float = Field(default=0.5, ge=0)
    max_concurrent_runs: int = Field(default=20, ge=1, description="Worker pool size")

    # Delivery
    send_rate_per_second: int = Field(default=5, ge=1, description="Outbound sends per second")
    send_max_wait_seconds: float = Field(default=30.0, gt=0, description="Longest wait for a send slot")
    unsubscribe_attempts: int = Field(default=5, ge=1, description="Attempts for auto-unsubscribe")
    unsubscribe_retry_delay_seconds: float = Field(default=60.0, ge=0)
    message_length_limit: int = Field(default=4096, description="Per-message length limit")

    # Summarization
    min_history_messages: int = Field(default=6, ge=1, description="Minimum messages to summarize")
    condensed_fallback_chars: int = Field(default=50, ge=1)
    max_history_chars: int = Field(default=30000, description="History text budget per prompt")
    summary_language: str = Field(default="English")

    # Paths
    config_dir: Path = Field(default=Path("config"), description="Config directory")
    data_dir: Path = Field(default=Path("data"), description="Data directory")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @property
    def db_path(self) -> Path:
        return self.data_dir / "recap.db"

    @model_validator(mode="after")
    def apply_llm_defaults(self) -> Self:
        """Fill provider-specific model defaults when omitted."""
        if self.llm_model is None:
            self.llm_model = PROVIDER_DEFAULTS[self.llm_provider]
        return self

    @model_validator(mode="after")
    def check_page_budget(self) -> Self:
        """Reject a safety buffer that eats the whole page."""
        if self.page_safety_buffer >= self.page_size_limit:
            raise ValueError("page_safety_buffer must be smaller than page_size_limit")
        return self

    @model_validator(mode="after")
    def ensure_directories(self) -> Self:
        """Make sure the data and config directories exist."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self


class ChatEntry(BaseModel):
    """Validated chat entry from chats.yaml."""

    enabled: bool = Field(default=True)
    send_mode: Literal["publicly", "private"] = Field(default="publicly")
    rates_per_day: Literal[2, 3, 4] = Field(default=4)
    pin: bool = Field(default=False)
    notes: str | None = Field(default=None)

    model_config = {"extra": "allow"}

    def to_options(self, chat_id: int) -> RecapOptions:
        return RecapOptions(
            chat_id=chat_id,
            enabled=self.enabled,
            send_mode=(
                SendMode.PUBLICLY
                if self.send_mode == "publicly"
                else SendMode.ONLY_PRIVATE_SUBSCRIPTIONS
            ),
            rates_per_day=self.rates_per_day,
            pin_enabled=self.pin,
        )


class ChatsConfig:
    """Seed recap options for chats from a YAML file."""

    def __init__(self, config_path: Path):
        self.config_path = config_path
        self._options: dict[int, RecapOptions] = {}
        self._load()

    def _load(self) -> None:
        """Parse and validate every entry in the file."""
        if not self.config_path.exists():
            self._options = {}
            return

        with open(self.config_path) as file_handle:
            data = yaml.safe_load(file_handle) or {}

        if not isinstance(data, dict):
            raise ValueError("Invalid chats.yaml: top-level structure must be a mapping")

        raw_chats = data.get("chats", {})
        if raw_chats is None:
            self._options = {}
            return
        if not isinstance(raw_chats, dict):
            raise ValueError("Invalid chats.yaml: 'chats' must be a mapping")

        validated: dict[int, RecapOptions] = {}
        validation_errors: list[str] = []

        for raw_id, raw_chat in raw_chats.items():
            try:
                chat_id = int(raw_id)
            except (TypeError, ValueError):
                validation_errors.append(f"{raw_id}: chat id must be an integer")
                continue
            if raw_chat is None:
                raw_chat = {}
            if not isinstance(raw_chat, dict):
                validation_errors.append(f"{chat_id}: chat configuration must be a mapping")
                continue

            try:
                parsed = ChatEntry.model_validate(raw_chat)
            except ValidationError as exc:
                details = "; ".join(
                    f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                    for err in exc.errors()
                )
                validation_errors.append(f"{chat_id}: {details}")
                continue

            validated[chat_id] = parsed.to_options(chat_id)

        if validation_errors:
            rendered = "\n  - ".join(validation_errors)
            raise ValueError(f"Invalid chats.yaml entries:\n  - {rendered}")

        self._options = validated

    @property
    def options(self) -> dict[int, RecapOptions]:
        """Recap options keyed by chat id."""
        return self._options

    def get_chat_ids(self) -> list[int]:
        """Chat ids with a seed entry."""
        return list(self._options)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide Settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
