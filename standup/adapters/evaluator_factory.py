"""Evaluator factory — selects the EvaluatorPort implementation at startup."""

from __future__ import annotations

import logging

from standup.core.evaluator import HeuristicEvaluator, LLMEvaluator
from standup.core.llm import LLMClient, create_llm_client
from standup.ports.evaluator_port import EvaluatorPort

logger = logging.getLogger(__name__)


def create_evaluator(settings, client: LLMClient | None = None) -> EvaluatorPort:
    """LLMEvaluator when an LLM API key is configured, HeuristicEvaluator otherwise."""
    if client is None:
        client = create_llm_client(settings)

    if client is None:
        logger.warning("LLM_API_KEY not set — using heuristic evaluation")
        return HeuristicEvaluator(version=settings.LLM_RUBRIC_VERSION)

    logger.info("Using LLM evaluator (%s)", client.model)
    return LLMEvaluator(
        client,
        rubric_version=settings.LLM_RUBRIC_VERSION,
        max_retries=settings.LLM_MAX_RETRIES,
        timeout=settings.LLM_TIMEOUT_SECONDS,
    )
