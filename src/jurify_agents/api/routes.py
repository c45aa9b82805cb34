"""Rotas HTTP: entrada de mensagens de leads, ciclo de vida e métricas."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from jurify_agents.api.dependencies import get_dispatcher, get_settings, get_stats
from jurify_agents.api.schemas import ErrorOut, LeadMessageIn, LeadMessageOut, SessionActionIn
from jurify_agents.application.dispatcher import InboundLead, LeadDispatcher
from jurify_agents.application.stats import StatsAggregator
from jurify_agents.config.settings import Settings
from jurify_agents.domain.enums import Channel
from jurify_agents.domain.session import LeadSession, SessionKey

router = APIRouter()

MAX_METRICS_WINDOW_HOURS = 24 * 90

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    code: {"model": ErrorOut} for code in (404, 409, 422, 503)
}


@router.get("/health")
def health(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    """Healthcheck simples para Cloud Run."""
    return {"status": "ok", "service": settings.service_name, "version": settings.version}


@router.post(
    "/v1/leads/messages", response_model=LeadMessageOut, responses=_ERROR_RESPONSES
)
async def process_lead_message(
    payload: LeadMessageIn,
    dispatcher: LeadDispatcher = Depends(get_dispatcher),
) -> LeadMessageOut:
    """Processa a mensagem do lead pelo agente atual da sessão."""
    result = await dispatcher.process_lead(
        InboundLead(
            lead_id=payload.lead_id,
            tenant_id=payload.tenant_id,
            channel=payload.channel,
            message=payload.message,
            message_id=payload.message_id,
        )
    )
    return LeadMessageOut(
        reply=result.reply,
        session=result.session,
        escalated=result.escalated,
        duplicate=result.duplicate,
    )


@router.post("/v1/leads/{lead_id}/sessions/{channel}/close", response_model=LeadSession)
async def close_lead_session(
    lead_id: str,
    channel: Channel,
    payload: SessionActionIn,
    dispatcher: LeadDispatcher = Depends(get_dispatcher),
) -> LeadSession:
    return await dispatcher.close_session(
        SessionKey(payload.tenant_id, lead_id, channel), reason=payload.reason
    )


@router.post("/v1/leads/{lead_id}/sessions/{channel}/abandon", response_model=LeadSession)
async def abandon_lead_session(
    lead_id: str,
    channel: Channel,
    payload: SessionActionIn,
    if_inactive: bool = Query(False),
    dispatcher: LeadDispatcher = Depends(get_dispatcher),
) -> LeadSession:
    """Chamado pelo scheduler externo de inatividade.

    Com `if_inactive=true` a janela `INACTIVITY_WINDOW_MINUTES` é aplicada aqui
    e sessões ainda ativas voltam sem alteração.
    """
    key = SessionKey(payload.tenant_id, lead_id, channel)
    if if_inactive:
        return await dispatcher.abandon_if_inactive(key)
    return await dispatcher.abandon_session(key)


@router.get("/v1/leads/{lead_id}/sessions/{channel}", response_model=LeadSession)
async def get_lead_session(
    lead_id: str,
    channel: Channel,
    tenant_id: str = Query(..., min_length=1),
    dispatcher: LeadDispatcher = Depends(get_dispatcher),
) -> LeadSession:
    session = await dispatcher.get_session(SessionKey(tenant_id, lead_id, channel))
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="session_not_found")
    return session


@router.get("/v1/tenants/{tenant_id}/agents/{agent_id}/metrics")
async def agent_metrics(
    tenant_id: str,
    agent_id: str,
    window_hours: float = Query(24.0, gt=0, le=MAX_METRICS_WINDOW_HOURS),
    stats: StatsAggregator = Depends(get_stats),
) -> dict[str, Any]:
    metrics = await stats.compute_agent_metrics(
        tenant_id, agent_id, timedelta(hours=window_hours)
    )
    return metrics.to_dict()


@router.get("/v1/dispatcher/counters")
def dispatcher_counters(
    dispatcher: LeadDispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    return dispatcher.counters
