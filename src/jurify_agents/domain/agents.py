"""Perfis de agentes (tabela `agentes_ia`) e regras de escalonamento.

As regras ficam em `parametros_avancados.escalation_rules` como JSON livre.
Aqui elas são decodificadas para modelos validados no carregamento, de modo
que configuração malformada é rejeitada cedo (InvalidAgentConfiguration) e
nunca chega ao momento da avaliação.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from jurify_agents.domain.enums import AgentType, RuleCondition
from jurify_agents.domain.errors import InvalidAgentConfiguration

DEFAULT_PERSONALITY = "Profissional e acessivel"
DEFAULT_SPECIALIZATION: tuple[str, ...] = ("geral",)
DEFAULT_MAX_INTERACTIONS = 50


class EscalationRule(BaseModel):
    """Regra de handoff: condição, tipo destino, palavras-gatilho e limiar."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    condition: RuleCondition = RuleCondition.CUSTOM
    next_agent_type: AgentType
    trigger_keywords: tuple[str, ...] = ()
    confidence_threshold: float = Field(default=0.7, gt=0.0, le=1.0)

    @field_validator("condition", mode="before")
    @classmethod
    def _coerce_condition(cls, value: Any) -> Any:
        # Condições livres do painel antigo viram CUSTOM
        if isinstance(value, str) and value not in {c.value for c in RuleCondition}:
            return RuleCondition.CUSTOM
        return value

    @field_validator("trigger_keywords", mode="before")
    @classmethod
    def _clean_keywords(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            raise ValueError("trigger_keywords deve ser lista de strings")
        cleaned: list[str] = []
        for item in value:
            if not isinstance(item, str):
                raise ValueError("trigger_keywords deve conter apenas strings")
            stripped = item.strip()
            if stripped and stripped not in cleaned:
                cleaned.append(stripped)
        return tuple(cleaned)


class AgentProfile(BaseModel):
    """Agente configurado de um tenant (snapshot imutável)."""

    model_config = ConfigDict(frozen=True)

    id: str
    tenant_id: str
    name: str = ""
    type: AgentType
    legal_area: str = ""
    prompt_base: str = ""
    personality: str = DEFAULT_PERSONALITY
    specialization_tags: tuple[str, ...] = DEFAULT_SPECIALIZATION
    escalation_rules: tuple[EscalationRule, ...] = ()
    max_interactions: int = Field(default=DEFAULT_MAX_INTERACTIONS, ge=1)
    active: bool = True
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> AgentProfile:
        """Decodifica uma linha no formato da tabela `agentes_ia`.

        Raises:
            InvalidAgentConfiguration: linha ou regras malformadas
        """
        params = row.get("parametros_avancados") or {}
        if not isinstance(params, Mapping):
            raise InvalidAgentConfiguration(
                "parametros_avancados deve ser um objeto", agent_id=row.get("id")
            )

        try:
            return cls(
                id=str(row["id"]),
                tenant_id=str(row["tenant_id"]),
                name=row.get("nome") or "",
                type=row["tipo_agente"],
                legal_area=row.get("area_juridica") or "",
                prompt_base=row.get("prompt_base") or "",
                personality=params.get("personality") or DEFAULT_PERSONALITY,
                specialization_tags=_as_tags(params.get("specialization")),
                escalation_rules=decode_escalation_rules(params.get("escalation_rules")),
                max_interactions=params.get("max_interactions") or DEFAULT_MAX_INTERACTIONS,
                active=bool(row.get("ativo", True)),
                created_at=row.get("created_at"),
            )
        except KeyError as e:
            raise InvalidAgentConfiguration(
                f"Campo obrigatório ausente: {e.args[0]}", agent_id=row.get("id")
            ) from e
        except (ValidationError, TypeError) as e:
            raise InvalidAgentConfiguration(
                f"Agente malformado: {e}", agent_id=row.get("id")
            ) from e

    def to_row(self) -> dict[str, Any]:
        """Inverso de `from_row` (usado pelos stores de escrita)."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "nome": self.name,
            "tipo_agente": self.type.value,
            "area_juridica": self.legal_area,
            "prompt_base": self.prompt_base,
            "ativo": self.active,
            "created_at": self.created_at,
            "parametros_avancados": {
                "personality": self.personality,
                "specialization": list(self.specialization_tags),
                "max_interactions": self.max_interactions,
                "escalation_rules": [
                    rule.model_dump(mode="json") for rule in self.escalation_rules
                ],
            },
        }


def decode_escalation_rules(raw: Any) -> tuple[EscalationRule, ...]:
    """Valida a lista JSON de regras.

    Raises:
        InvalidAgentConfiguration: se `raw` não for lista ou alguma regra for inválida
    """
    if raw is None:
        return ()
    if not isinstance(raw, list | tuple):
        raise InvalidAgentConfiguration("escalation_rules deve ser uma lista")

    rules: list[EscalationRule] = []
    for index, item in enumerate(raw):
        if isinstance(item, EscalationRule):
            rules.append(item)
            continue
        if not isinstance(item, Mapping):
            raise InvalidAgentConfiguration(f"escalation_rules[{index}] deve ser um objeto")
        try:
            rules.append(EscalationRule.model_validate(item))
        except ValidationError as e:
            raise InvalidAgentConfiguration(
                f"escalation_rules[{index}] inválida: {e.errors()[0]['msg']}"
            ) from e
    return tuple(rules)


def default_escalation_rules(
    agent_type: AgentType, extra_keywords: Iterable[str] = ()
) -> tuple[EscalationRule, ...]:
    """Regras padrão criadas junto com o agente no painel.

    SDR → Closer quando o lead demonstra interesse; Closer → CS quando o
    contrato é fechado; CS não escala (estado terminal).
    """
    extra = list(extra_keywords)

    if agent_type == AgentType.SDR:
        return (
            EscalationRule(
                condition=RuleCondition.LEAD_QUALIFIED,
                next_agent_type=AgentType.CLOSER,
                trigger_keywords=["interessado", "orcamento", "proposta", "contratar", *extra],
                confidence_threshold=0.7,
            ),
        )
    if agent_type == AgentType.CLOSER:
        return (
            EscalationRule(
                condition=RuleCondition.CONTRACT_SIGNED,
                next_agent_type=AgentType.CS,
                trigger_keywords=["assinado", "contrato", "aceito", "fechado", *extra],
                confidence_threshold=0.8,
            ),
        )
    return ()


def _as_tags(raw: Any) -> tuple[str, ...]:
    if not raw:
        return DEFAULT_SPECIALIZATION
    if isinstance(raw, str):
        return (raw,)
    return tuple(str(tag) for tag in raw)
