"""Retry wrapper that sits in front of any provider client."""

from pydantic import BaseModel
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from recap.logging_config import get_logger

from .base import LLMClient, LLMResponse, TransientLLMError

logger = get_logger("llm.retry")


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning(f"LLM call failed (attempt {state.attempt_number}), retrying: {exc}")


class RetryClient:
    """Retries transient provider failures with exponential backoff.

    Non-transient failures (bad request, unparseable output) are raised
    immediately.
    """

    def __init__(
        self,
        inner: LLMClient,
        max_retries: int = 2,
        min_wait: float = 1.0,
        max_wait: float = 10.0,
    ):
        self.inner = inner
        self.max_retries = max_retries
        self.min_wait = min_wait
        self.max_wait = max_wait

    @property
    def model(self) -> str:
        return getattr(self.inner, "model", "unknown")

    def generate(
        self,
        prompt: str,
        system: str,
        response_schema: type[BaseModel],
    ) -> LLMResponse:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=1, min=self.min_wait, max=self.max_wait),
            retry=retry_if_exception_type(TransientLLMError),
            before_sleep=_log_retry,
            reraise=True,
        )
        return retrying(
            self.inner.generate,
            prompt=prompt,
            system=system,
            response_schema=response_schema,
        )
