"""InteractionRecord: log append-only, fonte de verdade das sessões."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from jurify_agents.domain.enums import AgentType, Channel, InteractionKind, SessionStatus


class InteractionRecord(BaseModel):
    """Registro imutável de um turno processado (ou evento de ciclo de vida).

    Registros `closed`/`abandoned` têm textos vazios e não contam como
    interações no `interaction_count` da sessão.
    """

    model_config = ConfigDict(frozen=True)

    interaction_id: str
    tenant_id: str
    lead_id: str
    channel: Channel
    agent_id: str | None = None
    timestamp: datetime
    kind: InteractionKind = InteractionKind.MESSAGE
    inbound_message_id: str | None = None
    inbound_text: str = ""
    outbound_text: str = ""
    escalated: bool = False
    from_agent_type: AgentType
    to_agent_type: AgentType | None = None
    matched_condition: str | None = None
    confidence: float | None = None
    status_after: SessionStatus
    interaction_index: int = Field(default=0, ge=0)
    sequence: int = Field(default=0, ge=0)
    """Posição no log da sessão (a `version` gravada junto com o registro)."""
    response_time_ms: float | None = None
    escalation_error: str | None = None

    @property
    def sort_key(self) -> tuple[datetime, int, int]:
        return (self.timestamp, self.sequence, self.interaction_index)

    @property
    def is_message(self) -> bool:
        return self.kind == InteractionKind.MESSAGE
