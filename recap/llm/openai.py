"""OpenAI chat completions provider."""

import openai
from openai import OpenAI
from pydantic import BaseModel

from .base import LLMError, LLMResponse, TransientLLMError, parse_json_text, token_counts

_TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class OpenAIClient:
    """Structured JSON generation through the OpenAI API."""

    def __init__(self, api_key: str, model: str, timeout: float = 120.0):
        # Retries are owned by RetryClient, not the SDK.
        self.client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model

    def generate(
        self,
        prompt: str,
        system: str,
        response_schema: type[BaseModel],
    ) -> LLMResponse:
        schema_format = {
            "type": "json_schema",
            "json_schema": {"name": response_schema.__name__, "schema": response_schema.model_json_schema()},
        }
        conversation = [{"role": "system", "content": system}, {"role": "user", "content": prompt}]
        try:
            response = self.client.chat.completions.create(
                model=self.model, messages=conversation, response_format=schema_format
            )
        except _TRANSIENT_ERRORS as exc:
            raise TransientLLMError(f"OpenAI request failed: {exc}") from exc
        except openai.OpenAIError as exc:
            raise LLMError(f"OpenAI request failed: {exc}") from exc

        if not response.choices:
            raise LLMError("OpenAI returned no choices")
        choice = response.choices[0]
        refusal = getattr(choice.message, "refusal", None)
        if refusal:
            raise LLMError(f"OpenAI refused the request: {refusal}")
        if choice.finish_reason == "length":
            raise LLMError("OpenAI response was cut off at the token limit")

        raw_text = choice.message.content or ""
        input_tokens, output_tokens = token_counts(response.usage, "prompt_tokens", "completion_tokens")
        return LLMResponse(
            parsed=parse_json_text(raw_text, "OpenAI"),
            raw_text=raw_text,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
