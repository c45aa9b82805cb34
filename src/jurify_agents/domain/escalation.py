"""Motor de regras de escalonamento (função pura).

A decisão é tomada sobre a RESPOSTA gerada pelo agente atual, não sobre a
mensagem do lead: é o julgamento do agente especializado ("interessado",
"proposta") que dispara o handoff. Inverter isso quebra o roteamento.

Confiança: fração de palavras-gatilho distintas encontradas, saturando em
`saturation` matches:

    confidence = min(1.0, matched / min(len(keywords), saturation))

É monotônica no número de matches; com saturation=2, uma regra de quatro
palavras precisa de dois matches para atingir 1.0 e um único match vale 0.5.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Sequence
from dataclasses import dataclass, field

from jurify_agents.domain.agents import EscalationRule
from jurify_agents.domain.enums import AgentType

DEFAULT_KEYWORD_SATURATION = 2


@dataclass(frozen=True, slots=True)
class EscalationDecision:
    """Resultado da avaliação de um turno."""

    escalate: bool
    next_agent_type: AgentType | None = None
    matched_rule: EscalationRule | None = None
    confidence: float = 0.0
    matched_keywords: tuple[str, ...] = field(default_factory=tuple)


NO_ESCALATION = EscalationDecision(escalate=False)


def fold_text(text: str) -> str:
    """Normaliza para comparação: minúsculas e sem acentos."""
    decomposed = unicodedata.normalize("NFKD", text.casefold())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def match_keywords(folded_text: str, keywords: Sequence[str]) -> tuple[str, ...]:
    """Retorna as palavras-gatilho (originais) presentes no texto já normalizado."""
    return tuple(kw for kw in keywords if fold_text(kw) and fold_text(kw) in folded_text)


def score_confidence(matched: int, total_keywords: int, saturation: int) -> float:
    if matched <= 0 or total_keywords <= 0:
        return 0.0
    needed = max(1, min(total_keywords, saturation))
    return min(1.0, matched / needed)


def evaluate(
    current_agent_type: AgentType,
    outbound_text: str,
    rules: Sequence[EscalationRule],
    saturation: int = DEFAULT_KEYWORD_SATURATION,
) -> EscalationDecision:
    """Decide se o turno escala e para qual tipo de agente.

    Regras são avaliadas na ordem declarada; a primeira que atinge o limiar
    vence (sem acumular regras). Lista de palavras vazia nunca casa e regras
    que apontam para o próprio tipo atual são ignoradas.
    """
    if not outbound_text or not rules:
        return NO_ESCALATION

    folded = fold_text(outbound_text)

    for rule in rules:
        if not rule.trigger_keywords or rule.next_agent_type == current_agent_type:
            continue

        matched = match_keywords(folded, rule.trigger_keywords)
        if not matched:
            continue

        confidence = score_confidence(len(matched), len(rule.trigger_keywords), saturation)
        if confidence >= rule.confidence_threshold:
            return EscalationDecision(
                escalate=True,
                next_agent_type=rule.next_agent_type,
                matched_rule=rule,
                confidence=confidence,
                matched_keywords=matched,
            )

    return NO_ESCALATION
