"""LeadSession: estado de roteamento por (tenant, lead, canal).

A sessão é um cache derivado do log de interações; toda transição precisa ser
reproduzível por replay (ver application/lifecycle.py).
"""

from __future__ import annotations

from datetime import datetime
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from jurify_agents.domain.enums import TERMINAL_STATUSES, AgentType, Channel, SessionStatus


class SessionKey(NamedTuple):
    """Chave única de uma conversa."""

    tenant_id: str
    lead_id: str
    channel: Channel

    @property
    def storage_id(self) -> str:
        return f"{self.tenant_id}:{self.lead_id}:{self.channel.value}"


class LeadSession(BaseModel):
    """Snapshot imutável de uma sessão; alterações geram nova instância."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str
    lead_id: str
    channel: Channel
    current_agent_type: AgentType
    current_agent_id: str | None = None
    interaction_count: int = Field(default=0, ge=0)
    agent_turns: int = Field(default=0, ge=0)
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: datetime
    last_activity_at: datetime
    version: int = Field(default=0, ge=0)

    @property
    def key(self) -> SessionKey:
        return SessionKey(self.tenant_id, self.lead_id, self.channel)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


# Tabela de transições de status: (origem) → destinos permitidos.
# `escalated` é transitório dentro do mesmo turno e nunca é persistido.
TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.ACTIVE: frozenset(
        {
            SessionStatus.ACTIVE,
            SessionStatus.ESCALATED,
            SessionStatus.QUALIFIED,
            SessionStatus.CLOSED,
            SessionStatus.ABANDONED,
        }
    ),
    SessionStatus.ESCALATED: frozenset({SessionStatus.ACTIVE}),
    SessionStatus.QUALIFIED: frozenset(
        {SessionStatus.ACTIVE, SessionStatus.CLOSED, SessionStatus.ABANDONED}
    ),
    SessionStatus.CLOSED: frozenset(),
    SessionStatus.ABANDONED: frozenset(),
}


def validate_transition(current: SessionStatus, target: SessionStatus) -> tuple[bool, str]:
    """Valida transição de status sem efeitos colaterais.

    Retorna (True, "") se permitida, (False, motivo) caso contrário.
    """
    if current in TERMINAL_STATUSES:
        return False, f"Terminal status {current} has no transitions"
    if target not in TRANSITIONS[current]:
        return False, f"No transition from {current} to {target}"
    return True, ""
