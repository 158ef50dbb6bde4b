"""Provider-agnostic LLM interface and shared types."""

import json
from dataclasses import dataclass
from typing import Any, Protocol

from pydantic import BaseModel

from recap.errors import TransientNetworkError


class LLMError(Exception):
    """Raised when an LLM provider call fails."""


class TransientLLMError(LLMError, TransientNetworkError):
    """Raised when an LLM call failed for a reason worth retrying."""


@dataclass
class LLMResponse:
    """Provider-agnostic response from an LLM call."""

    parsed: dict[str, Any]
    raw_text: str
    input_tokens: int
    output_tokens: int

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens


class LLMClient(Protocol):
    """Protocol that all LLM providers must implement."""

    def generate(
        self,
        prompt: str,
        system: str,
        response_schema: type[BaseModel],
    ) -> LLMResponse:
        """Generate a structured JSON response."""
        ...


def token_counts(usage: Any, input_field: str, output_field: str) -> tuple[int, int]:
    """Read (input, output) token counts off a provider usage object, if any."""
    if usage is None:
        return 0, 0
    return int(getattr(usage, input_field, 0) or 0), int(getattr(usage, output_field, 0) or 0)


def parse_json_text(raw_text: str, provider: str) -> dict[str, Any]:
    """Decode a JSON object from model output, tolerating code fences."""

    text = raw_text.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
        text = text.strip()
    if not text:
        return {}

    try:
        parsed = json.loads(text)
    except ValueError as exc:
        raise LLMError(f"{provider} response parsing failed: {exc}") from exc

    if isinstance(parsed, list):
        # Some models answer with the bare array instead of the wrapping object.
        return {"items": parsed}
    if not isinstance(parsed, dict):
        raise LLMError(f"{provider} returned JSON of unexpected type {type(parsed).__name__}")
    return parsed
