"""
Recap configuration actions.

The bot's configuration keyboard produces callback payloads; each one is
parsed into one of the action models below and applied to the store, with
the chat re-queued whenever its schedule changes.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

from recap.logging_config import get_logger
from recap.models import RecapOptions, SendMode

if TYPE_CHECKING:
    from recap.scheduler import RecapScheduler
    from recap.storage import RecapStore

logger = get_logger("actions")


class ToggleRecap(BaseModel):
    action: Literal["toggle"] = "toggle"
    chat_id: int
    enabled: bool


class AssignMode(BaseModel):
    action: Literal["assign_mode"] = "assign_mode"
    chat_id: int
    mode: SendMode


class CompleteConfig(BaseModel):
    """User closed the configuration keyboard."""

    action: Literal["complete"] = "complete"
    chat_id: int


class SelectRatesPerDay(BaseModel):
    action: Literal["rates"] = "rates"
    chat_id: int
    rates: Literal[2, 3, 4]


class TogglePin(BaseModel):
    action: Literal["pin"] = "pin"
    chat_id: int
    pin_enabled: bool


class Unsubscribe(BaseModel):
    """A private subscriber opted out from a recap message."""

    action: Literal["unsubscribe"] = "unsubscribe"
    chat_id: int
    user_id: int


RecapAction = Annotated[
    ToggleRecap | AssignMode | CompleteConfig | SelectRatesPerDay | TogglePin | Unsubscribe,
    Field(discriminator="action"),
]

_adapter: TypeAdapter[RecapAction] = TypeAdapter(RecapAction)


def parse_action(payload: str | bytes | dict[str, Any]) -> RecapAction:
    """Parse a callback payload (JSON text or mapping) into an action.

    Raises:
        pydantic.ValidationError: unknown action or malformed fields.
    """
    if isinstance(payload, (str, bytes)):
        return _adapter.validate_python(json.loads(payload))
    return _adapter.validate_python(payload)


def apply_action(store: RecapStore, scheduler: RecapScheduler, action: RecapAction) -> RecapOptions | None:
    """Apply an action and return the chat's resulting options."""
    options = store.find_options(action.chat_id) or RecapOptions(chat_id=action.chat_id)

    match action:
        case ToggleRecap(enabled=enabled):
            options = store.set_enabled(action.chat_id, enabled)
            if enabled:
                scheduler.schedule(action.chat_id, options)
            else:
                scheduler.unschedule(action.chat_id)
        case AssignMode(mode=mode):
            options = options.model_copy(update={"send_mode": mode})
            store.upsert_options(options)
        case SelectRatesPerDay(rates=rates):
            options = options.model_copy(update={"rates_per_day": rates})
            store.upsert_options(options)
            if options.enabled:
                scheduler.schedule(action.chat_id, options)
        case TogglePin(pin_enabled=pin_enabled):
            options = options.model_copy(update={"pin_enabled": pin_enabled})
            store.upsert_options(options)
        case Unsubscribe(user_id=user_id):
            removed = store.unsubscribe(action.chat_id, user_id)
            logger.info(f"User {user_id} unsubscribed from chat {action.chat_id} (removed={removed})")
            return None
        case CompleteConfig():
            pass

    logger.info(f"Applied {action.action} to chat {action.chat_id}: {options.model_dump(mode='json')}")
    return options
