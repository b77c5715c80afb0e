"""
Daily Standup Bot — LLM reason classifier.

Second opinion for the heuristic tagger: asks the model for exactly one
reason code from the closed set. Any failure, unknown code or "other"
yields None.
"""

from __future__ import annotations

import logging

from standup.core.llm import LLMClient
from standup.core.llm_json import parse_model_json
from standup.data.models import ReasonCode

logger = logging.getLogger(__name__)

CLASSIFIER_TIMEOUT_SECONDS = 2.2

ALLOWED_CODES = frozenset(code.value for code in ReasonCode)

CLASSIFIER_SYSTEM_PROMPT = (
    "Eres un clasificador de razones por las que un objetivo diario Agile NO se cumplió. "
    "Respondes SOLO JSON."
)


def build_classifier_prompt(plan: str | None, update: str) -> str:
    plan_block = f'"""{plan}"""' if plan else "(no disponible)"
    return f"""Debes elegir EXACTAMENTE UNA etiqueta del siguiente conjunto permitido:

impediment | blocked_dependency | scope_change | overcommitment | unknown_tech |
tech_debt | requirements_clarity | tooling_issues | major_incident |
meetings_overload | health_issue | personal_emergency | other

Definiciones breves:
- impediment: bloqueo genérico (accesos/permisos/colas), sin depender de otro equipo específico.
- blocked_dependency: esperando a otro equipo/tercero/QA/UX/aprobación.
- scope_change: cambio de alcance/prioridad/pivot.
- overcommitment: mala estimación/sobrecarga/falta de tiempo.
- unknown_tech: curva de aprendizaje/tecnología nueva/desconocimiento.
- tech_debt: deuda técnica/refactor/legacy.
- requirements_clarity: requerimientos poco claros/falta de criterios.
- tooling_issues: CI/CD/build/deploy/pipeline/runner/entornos.
- major_incident: incidente mayor/P0/P1/producción.
- meetings_overload: muchas reuniones/back-to-back.
- health_issue: problemas de salud.
- personal_emergency: urgencia personal/familiar.
- other: ninguna de las anteriores aplica razonablemente.

Entrada:
- Plan de la mañana (opcional): {plan_block}
- Actualización del final del día: \"\"\"{update}\"\"\"

Reglas:
1) Elige la ÚNICA etiqueta que mejor explique la NO completitud (o "other").
2) Devuelve SOLO JSON, sin texto adicional, con el formato exacto:
{{"code":"<etiqueta_permitida>"}}"""


class ReasonClassifier:
    """Single-label reason classifier backed by the configured LLM."""

    def __init__(
        self,
        client: LLMClient,
        model: str = "",
        timeout: float = CLASSIFIER_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self.model = model or client.model
        self.timeout = timeout

    async def classify(self, plan: str | None, update: str) -> str | None:
        try:
            text = await self._client.complete(
                CLASSIFIER_SYSTEM_PROMPT,
                build_classifier_prompt(plan, update),
                max_tokens=40,
                timeout=self.timeout,
                model=self.model,
            )
        except Exception as exc:
            logger.warning("Reason classifier failed: %s", exc)
            return None

        code = str(parse_model_json(text).get("code") or "").strip()
        if code not in ALLOWED_CODES:
            logger.info("Reason classifier returned no usable code (%r)", code)
            return None
        return code
