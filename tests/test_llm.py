"""Tests for standup.core.llm — provider client and error classification."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from standup.core.llm import LLMClient, LLMError, create_llm_client, to_llm_error


class _StatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class _CodeError(Exception):
    code = 503


class TestToLLMError:
    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_retryable_statuses(self, status):
        err = to_llm_error(_StatusError(status))
        assert err.status == status
        assert err.retryable is True

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_client_errors_are_final(self, status):
        assert to_llm_error(_StatusError(status)).retryable is False

    def test_code_attribute(self):
        err = to_llm_error(_CodeError("unavailable"))
        assert err.status == 503
        assert err.retryable is True

    def test_timeout_is_retryable(self):
        err = to_llm_error(asyncio.TimeoutError())
        assert err.status is None
        assert err.retryable is True

    def test_network_error_is_retryable(self):
        assert to_llm_error(httpx.ConnectError("refused")).retryable is True

    def test_unknown_error_is_final(self):
        assert to_llm_error(ValueError("bad")).retryable is False

    def test_llm_error_passes_through(self):
        original = LLMError("x", 500, True)
        assert to_llm_error(original) is original


class TestLLMClient:
    def test_unknown_provider_raises(self):
        with pytest.raises(ValueError, match="Unknown LLM_PROVIDER"):
            LLMClient("mystery", "key")

    def test_default_model_per_provider(self):
        assert LLMClient("deepseek", "key").model == "deepseek-chat"
        assert LLMClient("gemini", "key", model="gemini-custom").model == "gemini-custom"

    @pytest.mark.asyncio
    async def test_complete_routes_to_provider(self):
        client = LLMClient("openai", "key", model="gpt-test")
        client._fn = AsyncMock(return_value="hola")

        assert await client.complete("sys", "user", max_tokens=50) == "hola"
        client._fn.assert_awaited_once_with("key", "gpt-test", "sys", "user", 50)

    @pytest.mark.asyncio
    async def test_model_override(self):
        client = LLMClient("openai", "key", model="gpt-test")
        client._fn = AsyncMock(return_value="ok")
        await client.complete("sys", "user", model="gpt-other")
        assert client._fn.await_args.args[1] == "gpt-other"

    @pytest.mark.asyncio
    async def test_timeout_becomes_retryable_error(self):
        async def slow(*args):
            await asyncio.sleep(1)
            return "late"

        client = LLMClient("openai", "key", timeout=0.01)
        client._fn = slow

        with pytest.raises(LLMError) as excinfo:
            await client.complete("sys", "user")
        assert excinfo.value.retryable is True

    @pytest.mark.asyncio
    async def test_sdk_error_is_wrapped(self):
        client = LLMClient("anthropic", "key")
        client._fn = AsyncMock(side_effect=_StatusError(429))

        with pytest.raises(LLMError) as excinfo:
            await client.complete("sys", "user")
        assert excinfo.value.status == 429


class TestCreateLLMClient:
    def test_none_without_key(self):
        settings = MagicMock(LLM_API_KEY="")
        assert create_llm_client(settings) is None

    def test_builds_client(self):
        settings = MagicMock(
            LLM_API_KEY="key", LLM_PROVIDER="DeepSeek", LLM_MODEL="", LLM_TIMEOUT_SECONDS=4.0,
        )
        client = create_llm_client(settings)
        assert client.provider == "deepseek"
        assert client.model == "deepseek-chat"
        assert client.timeout == 4.0
