"""Tests for standup.adapters.evaluator_factory and standup.core.coaching."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from standup.adapters.evaluator_factory import create_evaluator
from standup.core.coaching import Coach, build_coach_prompt
from standup.core.evaluator import HeuristicEvaluator, LLMEvaluator


def _settings(**overrides):
    values = dict(
        LLM_API_KEY="",
        LLM_PROVIDER="gemini",
        LLM_MODEL="",
        LLM_RUBRIC_VERSION="v1",
        LLM_MAX_RETRIES=2,
        LLM_TIMEOUT_SECONDS=6.0,
    )
    values.update(overrides)
    return MagicMock(**values)


class TestCreateEvaluator:
    def test_heuristic_without_key(self):
        evaluator = create_evaluator(_settings())
        assert isinstance(evaluator, HeuristicEvaluator)
        assert evaluator.version == "v1"

    def test_llm_with_key(self):
        evaluator = create_evaluator(_settings(LLM_API_KEY="k", LLM_PROVIDER="deepseek", LLM_MAX_RETRIES=3))
        assert isinstance(evaluator, LLMEvaluator)
        assert evaluator.model == "deepseek-chat"
        assert evaluator.max_retries == 3

    def test_uses_given_client(self):
        client = MagicMock()
        client.model = "shared-model"
        evaluator = create_evaluator(_settings(), client=client)
        assert isinstance(evaluator, LLMEvaluator)
        assert evaluator.model == "shared-model"


class TestCoach:
    def test_prompt_skips_missing_parts(self):
        assert build_coach_prompt("", "resultado", "motivo") == "Resultado: resultado\nMotivo: motivo\nRespuesta:"

    @pytest.mark.asyncio
    async def test_reply_strips_text(self):
        client = MagicMock()
        client.complete = AsyncMock(return_value="  Ánimo, mañana será mejor.  ")

        reply = await Coach(client).reply("plan", "resultado", "motivo")

        assert reply == "Ánimo, mañana será mejor."
        assert "Plan: plan" in client.complete.await_args.args[1]
