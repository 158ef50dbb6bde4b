"""Gemini provider using the google-genai SDK's native response schema."""

import httpx
from google import genai
from google.genai import errors, types
from pydantic import BaseModel

from .base import LLMError, LLMResponse, TransientLLMError, parse_json_text, token_counts


def _is_transient(exc: Exception) -> bool:
    if isinstance(exc, (errors.ServerError, httpx.TransportError)):
        return True
    return getattr(exc, "code", None) == 429


def _as_dict(structured, raw_text: str) -> dict:
    # The SDK fills `parsed` only when it could validate the reply itself.
    if isinstance(structured, BaseModel):
        return structured.model_dump()
    if isinstance(structured, dict):
        return structured
    return parse_json_text(raw_text, "Gemini")


class GeminiClient:
    def __init__(self, api_key: str, model: str, timeout: float = 120.0):
        self.client = genai.Client(api_key=api_key)
        self.model = model
        self.timeout_ms = int(timeout * 1000)

    def generate(
        self,
        prompt: str,
        system: str,
        response_schema: type[BaseModel],
    ) -> LLMResponse:
        request_config = types.GenerateContentConfig(
            system_instruction=system,
            response_mime_type="application/json",
            response_schema=response_schema,
            http_options=types.HttpOptions(timeout=self.timeout_ms),
        )
        try:
            response = self.client.models.generate_content(
                model=self.model, contents=prompt, config=request_config
            )
        except (errors.APIError, httpx.HTTPError) as exc:
            error_type = TransientLLMError if _is_transient(exc) else LLMError
            raise error_type(f"Gemini request failed: {exc}") from exc

        text = response.text or ""
        input_tokens, output_tokens = token_counts(
            response.usage_metadata, "prompt_token_count", "candidates_token_count"
        )
        return LLMResponse(
            parsed=_as_dict(response.parsed, text),
            raw_text=text,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
