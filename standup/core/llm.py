"""
Daily Standup Bot — LLM Provider Abstraction.

`LLMClient.complete()` routes to the configured provider.
Provider is selected at startup via the LLM_PROVIDER env var.
Supports: gemini (default), anthropic, openai, deepseek, cohere.

Every call is bounded by a timeout. Failures surface as LLMError with the
HTTP status when the SDK exposes one, so callers can decide whether to retry.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

# Type alias for provider implementations
_ProviderFn = Callable[[str, str, str, str, int], Awaitable[str]]

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})

DEEPSEEK_BASE_URL = "https://api.deepseek.com/v1"


class LLMError(Exception):
    """A failed provider call.

    status is the HTTP status when known; retryable is True for throttling,
    transient server errors, timeouts and network failures.
    """

    def __init__(self, message: str, status: int | None = None, retryable: bool = False) -> None:
        super().__init__(message)
        self.status = status
        self.retryable = retryable


# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------


async def _complete_gemini(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    gm = genai.GenerativeModel(
        model_name=model,
        system_instruction=system,
    )
    response = await gm.generate_content_async(
        user_message,
        generation_config=genai.types.GenerationConfig(max_output_tokens=max_tokens, temperature=0.2),
    )
    return response.text


async def _complete_anthropic(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)
    response = await client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=system,
        messages=[{"role": "user", "content": user_message}],
    )
    return response.content[0].text


async def _complete_openai_compatible(
    api_key: str, model: str, system: str, user_message: str, max_tokens: int,
    base_url: str | None = None,
) -> str:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)
    response = await client.chat.completions.create(
        model=model,
        max_tokens=max_tokens,
        temperature=0.2,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user_message},
        ],
    )
    return response.choices[0].message.content or ""


async def _complete_openai(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    return await _complete_openai_compatible(api_key, model, system, user_message, max_tokens)


async def _complete_deepseek(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    return await _complete_openai_compatible(
        api_key, model, system, user_message, max_tokens, base_url=DEEPSEEK_BASE_URL,
    )


async def _complete_cohere(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    import cohere

    client = cohere.AsyncClientV2(api_key=api_key)
    response = await client.chat(
        model=model,
        max_tokens=max_tokens,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user_message},
        ],
    )
    return response.message.content[0].text


_PROVIDERS: dict[str, tuple[_ProviderFn, str]] = {
    "gemini":    (_complete_gemini,    "gemini-2.0-flash"),
    "anthropic": (_complete_anthropic, "claude-haiku-4-5-20251001"),
    "openai":    (_complete_openai,    "gpt-4o-mini"),
    "deepseek":  (_complete_deepseek,  "deepseek-chat"),
    "cohere":    (_complete_cohere,    "command-a-03-2025"),
}


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------

_NETWORK_ERROR_NAMES = {"APIConnectionError", "APITimeoutError", "ServiceUnavailable", "DeadlineExceeded"}


def status_of(exc: BaseException) -> int | None:
    """HTTP status carried by an SDK exception, if any."""
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    code = getattr(exc, "code", None)
    if isinstance(code, int):
        return code
    return None


def to_llm_error(exc: BaseException) -> LLMError:
    if isinstance(exc, LLMError):
        return exc
    if isinstance(exc, asyncio.TimeoutError):
        return LLMError("LLM request timed out", retryable=True)
    status = status_of(exc)
    if status is not None:
        return LLMError(f"LLM request failed with status {status}: {exc}", status, status in RETRYABLE_STATUSES)
    network = isinstance(exc, (httpx.TransportError, ConnectionError)) or type(exc).__name__ in _NETWORK_ERROR_NAMES
    return LLMError(f"LLM request failed: {exc}", retryable=network)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class LLMClient:
    """Bound provider + model + key, shared by the evaluator, classifier and coach."""

    def __init__(self, provider: str, api_key: str, model: str = "", timeout: float = 6.0) -> None:
        provider = provider.lower()
        if provider not in _PROVIDERS:
            raise ValueError(
                f"Unknown LLM_PROVIDER={provider!r}. "
                f"Supported: {', '.join(_PROVIDERS)}"
            )
        self._fn, default_model = _PROVIDERS[provider]
        self.provider = provider
        self.model = model or default_model
        self.timeout = timeout
        self._api_key = api_key

    async def complete(
        self,
        system: str,
        user_message: str,
        max_tokens: int = 256,
        timeout: float | None = None,
        model: str | None = None,
    ) -> str:
        """Send a prompt and return the response text.

        Raises LLMError on timeout or API errors.
        """
        try:
            return await asyncio.wait_for(
                self._fn(self._api_key, model or self.model, system, user_message, max_tokens),
                timeout=timeout or self.timeout,
            )
        except Exception as exc:
            raise to_llm_error(exc) from exc


def create_llm_client(settings) -> LLMClient | None:
    """Build the client from settings, or None when no API key is configured."""
    if not settings.LLM_API_KEY:
        logger.info("No LLM_API_KEY configured — LLM features disabled")
        return None
    client = LLMClient(
        provider=settings.LLM_PROVIDER,
        api_key=settings.LLM_API_KEY,
        model=settings.LLM_MODEL,
        timeout=settings.LLM_TIMEOUT_SECONDS,
    )
    logger.info("LLM provider: %s, model: %s", client.provider, client.model)
    return client
