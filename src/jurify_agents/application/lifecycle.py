"""Ciclo de vida da LeadSession (funções puras).

Toda mudança de sessão passa por aqui: o dispatcher só decide QUANDO aplicar,
nunca COMO. `replay` reconstrói a mesma sessão a partir do log, o que permite
auditar ou reparar o cache de sessões.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from jurify_agents.domain.agents import AgentProfile
from jurify_agents.domain.enums import AgentType, InteractionKind, SessionStatus
from jurify_agents.domain.errors import SessionInvariantError
from jurify_agents.domain.escalation import EscalationDecision
from jurify_agents.domain.interactions import InteractionRecord
from jurify_agents.domain.session import LeadSession, SessionKey, validate_transition


@dataclass(frozen=True, slots=True)
class TurnOutcome:
    """Resultado de aplicar um turno à sessão."""

    session: LeadSession
    escalated: bool
    to_agent_type: AgentType | None
    forced_close: bool

    @property
    def record_status(self) -> SessionStatus:
        """Status gravado no registro (inclui o transitório `escalated`)."""
        return SessionStatus.ESCALATED if self.escalated else self.session.status


def start_session(key: SessionKey, entry_agent_type: AgentType, now: datetime) -> LeadSession:
    """Nova sessão no agente de entrada, ainda não persistida (version 0)."""
    return LeadSession(
        tenant_id=key.tenant_id,
        lead_id=key.lead_id,
        channel=key.channel,
        current_agent_type=entry_agent_type,
        status=SessionStatus.ACTIVE,
        created_at=now,
        last_activity_at=now,
        version=0,
    )


def apply_turn(
    session: LeadSession,
    agent: AgentProfile,
    decision: EscalationDecision,
    target_available: bool,
    now: datetime,
) -> TurnOutcome:
    """Aplica um turno processado pelo `agent`.

    - escalonamento com destino disponível: troca de tipo e zera `agent_turns`
    - sem escalonamento: `agent_turns += 1`; acima de `max_interactions`
      a sessão é encerrada (forced close)
    """
    if session.is_terminal:
        raise SessionInvariantError(f"turno aplicado em sessão terminal ({session.status})")

    escalate = bool(decision.escalate and target_available and decision.next_agent_type)
    forced_close = False

    if escalate:
        next_type = decision.next_agent_type
        agent_turns = 0
        status = SessionStatus.ACTIVE
    else:
        next_type = session.current_agent_type
        agent_turns = session.agent_turns + 1
        forced_close = agent_turns > agent.max_interactions
        status = SessionStatus.CLOSED if forced_close else SessionStatus.ACTIVE

    updated = session.model_copy(
        update={
            "current_agent_type": next_type,
            "current_agent_id": agent.id,
            "interaction_count": session.interaction_count + 1,
            "agent_turns": agent_turns,
            "status": status,
            "last_activity_at": max(now, session.last_activity_at),
        }
    )
    _check_progress(session, updated)

    return TurnOutcome(
        session=updated,
        escalated=escalate,
        to_agent_type=next_type if escalate else None,
        forced_close=forced_close,
    )


def close_session(session: LeadSession, now: datetime) -> LeadSession:
    """Encerramento explícito (resolução pelo CS ou operador)."""
    return _terminate(session, SessionStatus.CLOSED, now)


def abandon_session(session: LeadSession, now: datetime) -> LeadSession:
    """Abandono por inatividade (política externa)."""
    return _terminate(session, SessionStatus.ABANDONED, now)


def is_inactive(session: LeadSession, window: timedelta, now: datetime) -> bool:
    if session.is_terminal:
        return False
    return now - session.last_activity_at >= window


def replay(
    records: Iterable[InteractionRecord],
    key: SessionKey,
    entry_agent_type: AgentType,
) -> LeadSession | None:
    """Reconstrói a sessão a partir do log de interações.

    Cada commit grava exatamente um registro, então `version` é o número de
    registros.
    """
    ordered = sorted(records, key=lambda r: r.sort_key)
    if not ordered:
        return None

    session = start_session(key, entry_agent_type, ordered[0].timestamp)
    count = 0
    turns = 0
    current_type = ordered[0].from_agent_type
    status = SessionStatus.ACTIVE
    agent_id: str | None = None

    for record in ordered:
        if record.kind == InteractionKind.MESSAGE:
            count += 1
            agent_id = record.agent_id
            if record.escalated and record.to_agent_type is not None:
                current_type = record.to_agent_type
                turns = 0
                status = SessionStatus.ACTIVE
            else:
                current_type = record.from_agent_type
                turns += 1
                status = (
                    SessionStatus.CLOSED
                    if record.status_after == SessionStatus.CLOSED
                    else SessionStatus.ACTIVE
                )
        elif record.kind == InteractionKind.CLOSED:
            status = SessionStatus.CLOSED
        elif record.kind == InteractionKind.ABANDONED:
            status = SessionStatus.ABANDONED

    return session.model_copy(
        update={
            "current_agent_type": current_type,
            "current_agent_id": agent_id,
            "interaction_count": count,
            "agent_turns": turns,
            "status": status,
            "last_activity_at": ordered[-1].timestamp,
            "version": len(ordered),
        }
    )


def _terminate(session: LeadSession, target: SessionStatus, now: datetime) -> LeadSession:
    allowed, reason = validate_transition(session.status, target)
    if not allowed:
        raise SessionInvariantError(reason)
    return session.model_copy(
        update={"status": target, "last_activity_at": max(now, session.last_activity_at)}
    )


def _check_progress(before: LeadSession, after: LeadSession) -> None:
    if after.interaction_count < before.interaction_count:
        raise SessionInvariantError("interaction_count não pode diminuir")
    allowed, reason = validate_transition(before.status, after.status)
    if not allowed:
        raise SessionInvariantError(reason)
