"""Schemas HTTP (entrada/saída) das rotas de leads."""

from __future__ import annotations

from pydantic import BaseModel, Field

from jurify_agents.domain.enums import Channel
from jurify_agents.domain.session import LeadSession


class LeadMessageIn(BaseModel):
    lead_id: str = Field(min_length=1)
    tenant_id: str = Field(min_length=1)
    channel: Channel
    message: str = Field(min_length=1)
    message_id: str | None = None


class LeadMessageOut(BaseModel):
    reply: str
    session: LeadSession
    escalated: bool = False
    duplicate: bool = False


class SessionActionIn(BaseModel):
    """Corpo de close/abandon (tenant obrigatório, motivo opcional)."""

    tenant_id: str = Field(min_length=1)
    reason: str | None = None


class ErrorOut(BaseModel):
    error: str
    retryable: bool
    fallback_reply: str
