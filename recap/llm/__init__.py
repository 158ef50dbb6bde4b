"""LLM provider registry and client factory."""

import importlib
from typing import Literal, NamedTuple

from .base import LLMClient, LLMError, LLMResponse, TransientLLMError
from .retry import RetryClient

Provider = Literal["gemini", "openai", "anthropic"]


class _ProviderEntry(NamedTuple):
    module: str
    class_name: str
    default_model: str


_REGISTRY: dict[str, _ProviderEntry] = {
    "gemini": _ProviderEntry(".gemini", "GeminiClient", "gemini-2.5-flash"),
    "openai": _ProviderEntry(".openai", "OpenAIClient", "gpt-4o-mini"),
    "anthropic": _ProviderEntry(".anthropic", "AnthropicClient", "claude-sonnet-4-20250514"),
}

PROVIDER_DEFAULTS: dict[str, str] = {name: entry.default_model for name, entry in _REGISTRY.items()}


def create_client(
    provider: Provider,
    api_key: str,
    model: str | None = None,
    max_retries: int = 2,
    timeout: float = 120.0,
) -> RetryClient:
    """Build the provider's client, wrapped in a RetryClient.

    Provider modules are imported on demand so only the SDK in use needs
    to be installed.
    """
    entry = _REGISTRY.get(provider)
    if entry is None:
        raise LLMError(f"Unknown LLM provider: {provider}")

    try:
        module = importlib.import_module(entry.module, __name__)
    except ImportError as exc:
        raise LLMError(
            f"Missing dependency for provider '{provider}'. "
            f"Install the '{provider}' extra to continue."
        ) from exc

    client_class = getattr(module, entry.class_name)
    inner = client_class(api_key=api_key, model=model or entry.default_model, timeout=timeout)
    return RetryClient(inner, max_retries=max_retries)


__all__ = [
    "LLMClient",
    "LLMError",
    "LLMResponse",
    "PROVIDER_DEFAULTS",
    "Provider",
    "RetryClient",
    "TransientLLMError",
    "create_client",
]
