"""
LiteLLM wrapper used by every worker.
"""

import logging
import re
import time
from typing import Any

import litellm
from litellm import completion
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    BadRequestError,
    BudgetExceededError,
    ContextWindowExceededError,
    NotFoundError,
    RateLimitError,
    ServiceUnavailableError,
    Timeout,
)
from litellm.types.utils import ModelResponse

from claimai.models.config import ModelConfig

# Suppress LiteLLM debug messages (e.g., "Provider List: ...")
litellm.suppress_debug_info = True

logger = logging.getLogger(__name__)

_PROVIDER_KEY_HINTS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
}

_CREDIT_HINTS = ("402", "credits", "insufficient", "budget")

# Errors worth retrying on the same model
_TRANSIENT = (RateLimitError, ServiceUnavailableError, Timeout, APIConnectionError, APIError)

# Errors that no retry or fallback model will fix
_FATAL = (
    AuthenticationError,
    NotFoundError,
    BudgetExceededError,
    BadRequestError,
    ContextWindowExceededError,
)


def _extract_error_message(error: Exception) -> str:
    """Extract the most useful part of a LiteLLM error message."""
    msg = str(error)
    match = re.search(r'"message"\s*:\s*"([^"]+)"', msg)
    if match:
        return match.group(1)
    if len(msg) > 200:
        return msg[:200] + "..."
    return msg


class LLMError(Exception):
    """User-friendly LLM error with actionable guidance."""

    def __init__(self, message: str, original: Exception | None = None):
        self.original = original
        super().__init__(message)


def _friendly_llm_error(model: str, error: Exception | None) -> LLMError:
    """Convert a LiteLLM exception to a user-friendly error message."""
    provider = model.split("/")[0].lower()

    if error is None:
        return LLMError(f"No response from '{model}'")

    if isinstance(error, AuthenticationError):
        key_name = _PROVIDER_KEY_HINTS.get(provider, f"{provider.upper()}_API_KEY")
        return LLMError(
            f"Authentication failed for '{model}'. Check that {key_name} is set correctly.",
            original=error,
        )

    if isinstance(error, NotFoundError):
        return LLMError(
            f"Model '{model}' not found. Use the LiteLLM format provider/model "
            f"(e.g., openai/gpt-4o).",
            original=error,
        )

    if isinstance(error, RateLimitError):
        return LLMError(f"Rate limit exceeded for '{model}'. Wait a moment and try again.", original=error)

    if isinstance(error, BudgetExceededError):
        return LLMError(f"API budget exhausted for '{model}'.", original=error)

    if isinstance(error, ContextWindowExceededError):
        return LLMError(
            f"Context too large for '{model}'. Start a new thread or use a model with a larger context window.",
            original=error,
        )

    if isinstance(error, BadRequestError):
        return LLMError(
            f"Model '{model}' rejected the request: {_extract_error_message(error)}",
            original=error,
        )

    if isinstance(error, Timeout):
        return LLMError(f"'{model}' did not answer in time.", original=error)

    if isinstance(error, APIConnectionError):
        return LLMError(f"Cannot connect to the {provider} API.", original=error)

    if isinstance(error, ServiceUnavailableError):
        return LLMError(f"The {provider} API is temporarily unavailable.", original=error)

    if isinstance(error, APIError):
        if any(kw in str(error).lower() for kw in _CREDIT_HINTS):
            return LLMError(f"Credits exhausted for '{model}': {_extract_error_message(error)}", original=error)
        return LLMError(f"API error from {provider}: {_extract_error_message(error)}", original=error)

    return LLMError(f"LLM error ({type(error).__name__}): {error}", original=error)


class LLMClient:
    """
    Wrapper around LiteLLM with retry, backoff and model failover.

    Any provider LiteLLM supports can be used (openai/gpt-4o,
    anthropic/claude-3-5-sonnet-20241022, ollama/llama3, ...).
    """

    def __init__(
        self,
        model: str,
        temperature: float = 0.2,
        max_tokens: int | None = None,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        retry_backoff: float = 2.0,
        timeout: float | None = None,
        fallback_models: list[str] | None = None,
    ):
        """
        Args:
            model: LiteLLM model identifier
            temperature: Sampling temperature (0-2)
            max_tokens: Maximum tokens in response
            max_retries: Retries per model on transient errors
            retry_delay: Initial delay between retries (seconds)
            retry_backoff: Exponential backoff multiplier
            timeout: Per-request timeout (seconds)
            fallback_models: Models tried in order when the primary exhausts retries
        """
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.retry_backoff = retry_backoff
        self.timeout = timeout
        self.fallback_models = fallback_models or []

    @classmethod
    def from_config(cls, config: ModelConfig) -> "LLMClient":
        return cls(
            model=config.provider,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            retry_backoff=config.retry_backoff,
            timeout=config.timeout,
            fallback_models=config.fallback_models,
        )

    def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> ModelResponse:
        """
        Send a chat completion request with automatic retry and model failover.

        Non-transient errors (auth, unknown model, bad request) raise
        immediately without trying fallback models.

        Raises:
            LLMError: When every model failed
        """
        last_error: Exception | None = None
        for i, model in enumerate([self.model] + self.fallback_models):
            if i > 0:
                logger.warning("Falling back to model: %s", model)

            result, error = self._try_model(model, messages, tools)
            if result is not None:
                return result
            last_error = error

        raise _friendly_llm_error(self.model, last_error)

    def _try_model(
        self,
        model: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
    ) -> tuple[ModelResponse | None, Exception | None]:
        """
        Try a single model with retries.

        Returns:
            (response, None) on success, or (None, last_error) on transient failure.
        """
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if self.max_tokens is not None:
            kwargs["max_tokens"] = self.max_tokens
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        last_error: Exception | None = None
        delay = self.retry_delay

        for attempt in range(self.max_retries + 1):
            try:
                return completion(**kwargs), None
            except _FATAL as e:
                raise _friendly_llm_error(model, e) from e
            except _TRANSIENT as e:
                if isinstance(e, (APIError, APIConnectionError)) and any(
                    kw in str(e).lower() for kw in _CREDIT_HINTS
                ):
                    raise _friendly_llm_error(model, e) from e
                last_error = e
                if attempt < self.max_retries:
                    logger.warning(
                        "LLM call failed (attempt %d/%d, model %s): %s. Retrying in %.1fs...",
                        attempt + 1,
                        self.max_retries + 1,
                        model,
                        e,
                        delay,
                    )
                    time.sleep(delay)
                    delay *= self.retry_backoff

        return None, last_error
