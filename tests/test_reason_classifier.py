"""Tests for standup.core.reason_classifier — LLM reason escalation."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from standup.core.llm import LLMError
from standup.core.reason_classifier import ReasonClassifier, build_classifier_prompt


def _client(response=None, error=None):
    client = MagicMock()
    client.model = "gemini-2.0-flash"
    client.complete = AsyncMock(return_value=response, side_effect=error)
    return client


class TestReasonClassifier:
    @pytest.mark.asyncio
    async def test_valid_code(self):
        classifier = ReasonClassifier(_client('{"code": "scope_change"}'))
        assert await classifier.classify("plan", "cambiaron prioridades") == "scope_change"

    @pytest.mark.asyncio
    async def test_fenced_code(self):
        classifier = ReasonClassifier(_client('```json\n{"code":"tech_debt"}\n```'))
        assert await classifier.classify(None, "legacy") == "tech_debt"

    @pytest.mark.asyncio
    async def test_other_yields_none(self):
        classifier = ReasonClassifier(_client('{"code": "other"}'))
        assert await classifier.classify("plan", "update") is None

    @pytest.mark.asyncio
    async def test_unknown_code_yields_none(self):
        classifier = ReasonClassifier(_client('{"code": "laziness"}'))
        assert await classifier.classify("plan", "update") is None

    @pytest.mark.asyncio
    async def test_failure_yields_none(self):
        classifier = ReasonClassifier(_client(error=LLMError("timeout", retryable=True)))
        assert await classifier.classify("plan", "update") is None

    @pytest.mark.asyncio
    async def test_uses_reason_model_and_short_timeout(self):
        client = _client('{"code": "impediment"}')
        classifier = ReasonClassifier(client, model="gemini-reasons")

        await classifier.classify("plan", "update")

        kwargs = client.complete.await_args.kwargs
        assert kwargs["model"] == "gemini-reasons"
        assert kwargs["timeout"] == 2.2
        assert classifier.model == "gemini-reasons"

    def test_model_defaults_to_client_model(self):
        assert ReasonClassifier(_client()).model == "gemini-2.0-flash"


class TestPrompt:
    def test_includes_plan_and_update(self):
        prompt = build_classifier_prompt("Plan A", "Resultado B")
        assert '"""Plan A"""' in prompt
        assert '"""Resultado B"""' in prompt
        assert '{"code":"<etiqueta_permitida>"}' in prompt

    def test_missing_plan(self):
        assert "(no disponible)" in build_classifier_prompt(None, "x")
