"""Métricas por agente derivadas do log de interações (somente leitura)."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta

from jurify_agents.domain.enums import SessionStatus
from jurify_agents.domain.interactions import InteractionRecord
from jurify_agents.domain.protocols import LeadStatusReader, SessionRepositoryProtocol
from jurify_agents.domain.protocols.lead_status import (
    ACTIVE_LEAD_STATUSES,
    CONVERSION_LEAD_STATUSES,
)
from jurify_agents.observability.logging import get_logger, mask_id

logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class AgentMetrics:
    agent_id: str
    tenant_id: str
    window_start: datetime
    window_end: datetime
    total_interactions: int = 0
    successful_conversions: int = 0
    active_conversations: int = 0
    avg_response_time_ms: float = 0.0
    escalations: int = 0
    success_rate: float = 0.0

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["window_start"] = self.window_start.isoformat()
        data["window_end"] = self.window_end.isoformat()
        return data


class StatsAggregator:
    """Agrega métricas de um agente numa janela de tempo.

    Com `LeadStatusReader`, conversões e conversas ativas vêm do status do
    lead no CRM. Sem ele, são inferidas do log: conversão é um lead que este
    agente escalou adiante; ativo é um lead cujo último registro o deixa
    ativo com este agente.
    """

    def __init__(
        self,
        session_repository: SessionRepositoryProtocol,
        lead_status_reader: LeadStatusReader | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._sessions = session_repository
        self._lead_status = lead_status_reader
        self._clock = clock or (lambda: datetime.now(UTC))

    async def compute_agent_metrics(
        self, tenant_id: str, agent_id: str, window: timedelta
    ) -> AgentMetrics:
        if window <= timedelta(0):
            raise ValueError("window deve ser positiva")

        until = self._clock()
        since = until - window
        records = await self._sessions.list_tenant_interactions(tenant_id, since, until)

        mine = [r for r in records if r.is_message and r.agent_id == agent_id]
        leads = {r.lead_id for r in mine}
        timings = [r.response_time_ms for r in mine if r.response_time_ms is not None]
        escalations = sum(1 for r in mine if r.escalated)

        if self._lead_status is not None and leads:
            statuses = await self._lead_status.statuses(tenant_id, leads)
            conversions = sum(1 for s in statuses.values() if s in CONVERSION_LEAD_STATUSES)
            active = sum(1 for s in statuses.values() if s in ACTIVE_LEAD_STATUSES)
        else:
            conversions = len({r.lead_id for r in mine if r.escalated})
            active = _active_with_agent(records, agent_id)

        metrics = AgentMetrics(
            agent_id=agent_id,
            tenant_id=tenant_id,
            window_start=since,
            window_end=until,
            total_interactions=len(mine),
            successful_conversions=conversions,
            active_conversations=active,
            avg_response_time_ms=round(sum(timings) / len(timings), 2) if timings else 0.0,
            escalations=escalations,
            success_rate=round(conversions / len(leads), 4) if leads else 0.0,
        )
        logger.info(
            "agent_metrics_computed",
            extra={
                "tenant_id": tenant_id,
                "agent_id": mask_id(agent_id),
                "total_interactions": metrics.total_interactions,
                "window_hours": round(window.total_seconds() / 3600, 2),
            },
        )
        return metrics


def _active_with_agent(records: list[InteractionRecord], agent_id: str) -> int:
    latest: dict[tuple[str, str], InteractionRecord] = {}
    for record in sorted(records, key=lambda r: r.sort_key):
        latest[(record.lead_id, record.channel.value)] = record

    return len(
        {
            r.lead_id
            for r in latest.values()
            if r.is_message
            and r.agent_id == agent_id
            and not r.escalated
            and r.status_after == SessionStatus.ACTIVE
        }
    )
