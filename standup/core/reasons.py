"""
Daily Standup Bot — Reason tagger.

Multi-label heuristic that guesses why a daily plan was not completed.
Spanish and English lexicon, accent-insensitive, with a negation window,
weighted patterns and co-occurrence boosts, calibrated to [0, 1].
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field

from standup.core.text import normalize_text
from standup.data.models import ReasonCode

REASONS_HEURISTIC_VERSION = "heuristic-v2"

NEGATION_WINDOW = 5
NEGATION_FACTOR = 0.35
MAX_MATCHES_PER_PATTERN = 3
CALIBRATION_ALPHA = 2.7


@dataclass
class TaggedReason:
    code: str
    confidence: float
    evidence: list[str] = field(default_factory=list)


# (pattern, weight) per reason code, matched against normalized sentences
LEXICON: dict[ReasonCode, list[tuple[re.Pattern, float]]] = {
    ReasonCode.IMPEDIMENT: [
        (re.compile(r"\b(bloquead[oa]s?|bloqueo|bloquear|atasc[ao]|trabad[oa])\b"), 2.2),
        (re.compile(r"\b(esperand[oa]|pendiente de|en cola|sin respuesta)\b"), 1.6),
        (re.compile(r"\b(acceso|permis[oa]s?|credenciales?)\b"), 1.8),
        (re.compile(r"\b(dependenc(ia|ias)|dependant|blocked by)\b"), 1.6),
    ],
    ReasonCode.TECH_DEBT: [
        (re.compile(r"\b(deuda tecnica|tech debt|legacy|monolit[oa])\b"), 2.0),
        (re.compile(r"\b(refactor(e|izar|izacion)?|re-estructurar)\b"), 1.6),
        (re.compile(r"\b(adecuar|sanear|limpieza de codigo)\b"), 1.2),
    ],
    ReasonCode.UNKNOWN_TECH: [
        (re.compile(r"\b(no (sabia|conocia)|desconoc(ia|ido))\b"), 1.6),
        (re.compile(r"\b(aprend(iendo|izaje)|investig(ar|ando)|tutorial|docu(mentacion)?)\b"), 1.6),
        (re.compile(r"\b(por primera vez|rampa|ramp ?up)\b"), 1.2),
    ],
    ReasonCode.MAJOR_INCIDENT: [
        (re.compile(r"\b(incidente|caida|outage|severidad|sev[0-2]|p0|p1)\b"), 2.6),
        (re.compile(r"\b(prod(uction)?|en produccion|servicio critico)\b"), 1.8),
    ],
    ReasonCode.SCOPE_CHANGE: [
        (re.compile(r"\b(cambio de alcance|scope change|pivot|repriorizar|reprioritiz(e|ed|ing))\b"), 2.0),
        (re.compile(r"\b(prioridad(es)?|replanificar|plan cambio)\b"), 1.4),
    ],
    ReasonCode.OVERCOMMITMENT: [
        (re.compile(r"\b(no alcance|no me dio el tiempo|me falto tiempo|time ran out)\b"), 2.0),
        (re.compile(r"\b(much[ao] trabajo|sobrecarg[ao]|overcommit|demasiadas tareas)\b"), 1.6),
        (re.compile(r"\b(subestime?)\b"), 1.4),
    ],
    ReasonCode.BLOCKED_DEPENDENCY: [
        (re.compile(r"\b(esperand[oa].*(equipo|tercero|proveedor|qa|ux|devops))\b"), 2.0),
        (re.compile(r"\b(dependenc(ia|ias) externas|third-?party)\b"), 1.6),
    ],
    ReasonCode.MEETINGS_OVERLOAD: [
        (re.compile(r"\b(reunion(es)?|meetings?)\b"), 1.4),
        (re.compile(r"\b(back-?to-?back|bloque.*(reunion|meeting))\b"), 2.0),
    ],
    ReasonCode.REQUIREMENTS_CLARITY: [
        (re.compile(r"\b(requerimientos? (poco )?clar[oa]s?|ambiguedad|no claro)\b"), 2.0),
        (re.compile(r"\b(falt[ao] (contexto|detalles|criterios?))\b"), 1.4),
    ],
    ReasonCode.TOOLING_ISSUES: [
        (re.compile(r"\b(ci/cd|pipeline|build|deploy|runner|pipelines?)\b"), 1.6),
        (re.compile(r"\b(fallo|fallas|rompio|errores?)\b"), 1.2),
    ],
    ReasonCode.HEALTH_ISSUE: [
        (re.compile(r"\b(enfermo|salud|gripa|covid|malestar|cita medica)\b"), 2.2),
    ],
    ReasonCode.PERSONAL_EMERGENCY: [
        (re.compile(r"\b(emergencia (personal|familiar)|imprevisto familiar|urgencia)\b"), 2.4),
    ],
}

NEGATIONS = [
    re.compile(r"\b(no|nunca|ya no|sin|dejo de|deje de|dejamos de)\b"),
    re.compile(r"\b(not|never|no longer|without)\b"),
]

# (codes that must all be present in a sentence, delta added to each)
BOOSTS: list[tuple[tuple[ReasonCode, ...], float]] = [
    ((ReasonCode.IMPEDIMENT,), 0.4),
    ((ReasonCode.IMPEDIMENT, ReasonCode.BLOCKED_DEPENDENCY), 0.6),
    ((ReasonCode.MAJOR_INCIDENT, ReasonCode.TOOLING_ISSUES), 0.5),
    ((ReasonCode.OVERCOMMITMENT, ReasonCode.MEETINGS_OVERLOAD), 0.4),
]

_SENTENCE_SPLIT_RE = re.compile(r"[.!?;\n\r]+")
_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9_]+", re.IGNORECASE)


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT_RE.split(text or "") if s.strip()]


def tokenize(text: str) -> list[str]:
    return [t for t in _TOKEN_SPLIT_RE.split(text) if t]


def to_confidence(score: float, alpha: float = CALIBRATION_ALPHA) -> float:
    if score <= 0:
        return 0.0
    return max(0.0, min(1.0, 1 - math.exp(-score / alpha)))


def _negated_before(tokens: list[str], token_index: int) -> bool:
    start = max(0, token_index - NEGATION_WINDOW)
    window = " ".join(tokens[start:token_index])
    return any(neg.search(window) for neg in NEGATIONS)


def score_sentence(sentence: str) -> dict[ReasonCode, float]:
    """Score one sentence per reason code, boosts included."""
    norm = normalize_text(sentence)
    tokens = tokenize(norm)
    per_code: dict[ReasonCode, float] = {}

    for code, patterns in LEXICON.items():
        score = 0.0
        for pattern, weight in patterns:
            for occurrences, match in enumerate(pattern.finditer(norm)):
                if occurrences >= MAX_MATCHES_PER_PATTERN:
                    break
                token_index = len(tokenize(norm[: match.start()]))
                negated = _negated_before(tokens, token_index)
                score += weight * NEGATION_FACTOR if negated else weight
        if score > 0:
            per_code[code] = score

    for codes, delta in BOOSTS:
        if all(per_code.get(code, 0) > 0 for code in codes):
            for code in codes:
                per_code[code] += delta

    return per_code


def tag_reasons(
    text: str,
    top_k: int = 3,
    min_confidence: float = 0.45,
    debug: bool = False,
) -> list[TaggedReason]:
    """Tag the likely reasons behind an incomplete update.

    Returns at most top_k codes whose confidence reaches min_confidence,
    highest first. With debug, each result carries up to three sentences
    that contributed the most to it.
    """
    sentences = split_sentences(text)
    if not sentences:
        return []

    totals: dict[ReasonCode, float] = {}
    evidence: dict[ReasonCode, list[tuple[float, str]]] = {}

    for sentence in sentences:
        for code, gain in score_sentence(sentence).items():
            totals[code] = totals.get(code, 0.0) + gain
            if debug:
                evidence.setdefault(code, []).append((gain, sentence))

    scored = [
        (code, to_confidence(score))
        for code, score in totals.items()
    ]
    scored = [item for item in scored if item[1] >= min_confidence]
    scored.sort(key=lambda item: item[1], reverse=True)

    results = []
    for code, confidence in scored[:top_k]:
        reason = TaggedReason(code=code.value, confidence=confidence)
        if debug:
            ranked = sorted(evidence.get(code, []), key=lambda item: item[0], reverse=True)
            reason.evidence = [sentence for _, sentence in ranked[:3]]
        results.append(reason)
    return results
