"""Anthropic messages provider.

The messages API has no JSON mode, so the schema is appended to the prompt
and the reply is decoded leniently.
"""

import json

import anthropic
from anthropic import Anthropic
from pydantic import BaseModel

from .base import LLMError, LLMResponse, TransientLLMError, parse_json_text, token_counts

MAX_OUTPUT_TOKENS = 4096

_TRANSIENT_ERRORS = (
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)


class AnthropicClient:
    def __init__(self, api_key: str, model: str, timeout: float = 120.0):
        self.client = Anthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model

    def generate(
        self,
        prompt: str,
        system: str,
        response_schema: type[BaseModel],
    ) -> LLMResponse:
        schema = json.dumps(response_schema.model_json_schema(), indent=2)
        content = f"{prompt}\n\nReply with JSON only, matching this schema:\n{schema}"

        try:
            response = self.client.messages.create(
                model=self.model,
                system=system,
                max_tokens=MAX_OUTPUT_TOKENS,
                messages=[{"role": "user", "content": content}],
            )
        except _TRANSIENT_ERRORS as exc:
            raise TransientLLMError(f"Anthropic request failed: {exc}") from exc
        except anthropic.AnthropicError as exc:
            raise LLMError(f"Anthropic request failed: {exc}") from exc

        if response.stop_reason == "max_tokens":
            raise LLMError(f"Anthropic response hit the {MAX_OUTPUT_TOKENS} token limit")

        raw_text = "".join(block.text for block in response.content if block.type == "text")
        input_tokens, output_tokens = token_counts(response.usage, "input_tokens", "output_tokens")
        return LLMResponse(
            parsed=parse_json_text(raw_text, "Anthropic"),
            raw_text=raw_text,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
