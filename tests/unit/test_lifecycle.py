"""Testes das transições puras da LeadSession e do replay do log."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from jurify_agents.application.lifecycle import (
    abandon_session,
    apply_turn,
    close_session,
    is_inactive,
    replay,
    start_session,
)
from jurify_agents.domain.enums import AgentType, Channel, InteractionKind, SessionStatus
from jurify_agents.domain.errors import SessionInvariantError
from jurify_agents.domain.escalation import NO_ESCALATION, EscalationDecision
from jurify_agents.domain.interactions import InteractionRecord
from jurify_agents.domain.session import SessionKey, validate_transition

T0 = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)
KEY = SessionKey("tenant-1", "lead-1", Channel.WHATSAPP)

TO_CLOSER = EscalationDecision(escalate=True, next_agent_type=AgentType.CLOSER, confidence=1.0)


def _record(outcome, before, index_time: datetime, kind=InteractionKind.MESSAGE) -> InteractionRecord:
    return InteractionRecord(
        interaction_id=f"r-{index_time.timestamp()}",
        tenant_id=KEY.tenant_id,
        lead_id=KEY.lead_id,
        channel=KEY.channel,
        agent_id=outcome.session.current_agent_id,
        timestamp=index_time,
        kind=kind,
        escalated=outcome.escalated,
        from_agent_type=before.current_agent_type,
        to_agent_type=outcome.to_agent_type,
        status_after=outcome.record_status,
        interaction_index=outcome.session.interaction_count,
    )


class TestStartSession:
    def test_new_session_on_entry_agent(self) -> None:
        session = start_session(KEY, AgentType.SDR, T0)

        assert session.current_agent_type == AgentType.SDR
        assert session.status == SessionStatus.ACTIVE
        assert session.interaction_count == 0
        assert session.version == 0
        assert session.key.storage_id == "tenant-1:lead-1:whatsapp"


class TestApplyTurn:
    def test_turn_without_escalation(self, make_agent) -> None:
        session = start_session(KEY, AgentType.SDR, T0)
        outcome = apply_turn(session, make_agent(), NO_ESCALATION, True, T0 + timedelta(seconds=5))

        assert outcome.escalated is False
        assert outcome.session.interaction_count == 1
        assert outcome.session.agent_turns == 1
        assert outcome.session.current_agent_type == AgentType.SDR
        assert outcome.session.current_agent_id == "sdr-agent"
        assert outcome.session.last_activity_at == T0 + timedelta(seconds=5)
        assert outcome.record_status == SessionStatus.ACTIVE

    def test_escalation_switches_agent_and_resets_turns(self, make_agent) -> None:
        session = start_session(KEY, AgentType.SDR, T0)
        session = apply_turn(session, make_agent(), NO_ESCALATION, True, T0).session

        outcome = apply_turn(session, make_agent(), TO_CLOSER, True, T0)

        assert outcome.escalated is True
        assert outcome.to_agent_type == AgentType.CLOSER
        assert outcome.session.current_agent_type == AgentType.CLOSER
        assert outcome.session.agent_turns == 0
        assert outcome.session.interaction_count == 2
        assert outcome.session.status == SessionStatus.ACTIVE
        assert outcome.record_status == SessionStatus.ESCALATED

    def test_escalation_without_target_stays(self, make_agent) -> None:
        session = start_session(KEY, AgentType.SDR, T0)
        outcome = apply_turn(session, make_agent(), TO_CLOSER, False, T0)

        assert outcome.escalated is False
        assert outcome.session.current_agent_type == AgentType.SDR
        assert outcome.session.interaction_count == 1

    def test_forced_close_after_max_interactions(self, make_agent) -> None:
        """Com max_interactions=3, o 4º turno sem escalonamento encerra a sessão."""
        agent = make_agent(max_interactions=3)
        session = start_session(KEY, AgentType.SDR, T0)
        for _ in range(3):
            outcome = apply_turn(session, agent, NO_ESCALATION, True, T0)
            assert outcome.forced_close is False
            session = outcome.session

        outcome = apply_turn(session, agent, NO_ESCALATION, True, T0)

        assert outcome.forced_close is True
        assert outcome.session.status == SessionStatus.CLOSED
        assert outcome.session.interaction_count == 4

    def test_escalation_on_cap_turn_wins_over_close(self, make_agent) -> None:
        agent = make_agent(max_interactions=1)
        session = apply_turn(
            start_session(KEY, AgentType.SDR, T0), agent, NO_ESCALATION, True, T0
        ).session

        outcome = apply_turn(session, agent, TO_CLOSER, True, T0)

        assert outcome.forced_close is False
        assert outcome.session.status == SessionStatus.ACTIVE

    def test_terminal_session_rejects_turn(self, make_agent) -> None:
        session = close_session(start_session(KEY, AgentType.SDR, T0), T0)
        with pytest.raises(SessionInvariantError):
            apply_turn(session, make_agent(), NO_ESCALATION, True, T0)

    def test_last_activity_never_goes_back(self, make_agent) -> None:
        session = start_session(KEY, AgentType.SDR, T0)
        outcome = apply_turn(session, make_agent(), NO_ESCALATION, True, T0 - timedelta(hours=1))
        assert outcome.session.last_activity_at == T0


class TestTerminalTransitions:
    def test_close_then_abandon_fails(self) -> None:
        closed = close_session(start_session(KEY, AgentType.SDR, T0), T0)
        assert closed.status == SessionStatus.CLOSED
        with pytest.raises(SessionInvariantError):
            abandon_session(closed, T0)

    def test_abandon(self) -> None:
        abandoned = abandon_session(start_session(KEY, AgentType.CS, T0), T0)
        assert abandoned.status == SessionStatus.ABANDONED
        assert abandoned.is_terminal is True

    def test_transition_table(self) -> None:
        assert validate_transition(SessionStatus.ACTIVE, SessionStatus.CLOSED) == (True, "")
        allowed, reason = validate_transition(SessionStatus.CLOSED, SessionStatus.ACTIVE)
        assert allowed is False
        assert "Terminal" in reason


class TestIsInactive:
    def test_inactive_after_window(self) -> None:
        session = start_session(KEY, AgentType.SDR, T0)
        assert is_inactive(session, timedelta(hours=1), T0 + timedelta(hours=2)) is True
        assert is_inactive(session, timedelta(hours=1), T0 + timedelta(minutes=30)) is False

    def test_terminal_never_inactive(self) -> None:
        session = close_session(start_session(KEY, AgentType.SDR, T0), T0)
        assert is_inactive(session, timedelta(seconds=1), T0 + timedelta(days=1)) is False


class TestReplay:
    def test_empty_log(self) -> None:
        assert replay([], KEY, AgentType.SDR) is None

    def test_replay_matches_live_session(self, make_agent) -> None:
        """Sessão reconstruída do log é igual à sessão mantida turno a turno."""
        sdr, closer = make_agent(AgentType.SDR), make_agent(AgentType.CLOSER)
        session = start_session(KEY, AgentType.SDR, T0)
        records: list[InteractionRecord] = []
        steps = [(sdr, NO_ESCALATION), (sdr, TO_CLOSER), (closer, NO_ESCALATION)]

        for i, (agent, decision) in enumerate(steps, start=1):
            now = T0 + timedelta(minutes=i)
            outcome = apply_turn(session, agent, decision, True, now)
            records.append(_record(outcome, session, now))
            session = outcome.session.model_copy(update={"version": session.version + 1})

        rebuilt = replay(list(reversed(records)), KEY, AgentType.SDR)

        assert rebuilt is not None
        assert rebuilt.current_agent_type == AgentType.CLOSER
        assert rebuilt.interaction_count == 3
        assert rebuilt.agent_turns == 1
        assert rebuilt.version == 3
        assert rebuilt.last_activity_at == session.last_activity_at
        assert rebuilt.model_dump(exclude={"created_at"}) == session.model_dump(
            exclude={"created_at"}
        )

    def test_replay_lifecycle_record(self, make_agent) -> None:
        session = start_session(KEY, AgentType.SDR, T0)
        outcome = apply_turn(session, make_agent(), NO_ESCALATION, True, T0)
        message = _record(outcome, session, T0)
        closed = message.model_copy(
            update={
                "interaction_id": "closed-1",
                "kind": InteractionKind.ABANDONED,
                "timestamp": T0 + timedelta(hours=30),
                "status_after": SessionStatus.ABANDONED,
            }
        )

        rebuilt = replay([message, closed], KEY, AgentType.SDR)

        assert rebuilt.status == SessionStatus.ABANDONED
        assert rebuilt.interaction_count == 1
        assert rebuilt.version == 2

    def test_close_with_same_timestamp_applies_after_message(self, make_agent) -> None:
        """Registro de encerramento no mesmo instante e índice vem depois da mensagem."""
        session = start_session(KEY, AgentType.SDR, T0)
        outcome = apply_turn(session, make_agent(), NO_ESCALATION, True, T0)
        message = _record(outcome, session, T0).model_copy(update={"sequence": 1})
        closed = message.model_copy(
            update={
                "interaction_id": "0-closed",
                "kind": InteractionKind.CLOSED,
                "status_after": SessionStatus.CLOSED,
                "sequence": 2,
            }
        )

        rebuilt = replay([closed, message], KEY, AgentType.SDR)

        assert rebuilt.status == SessionStatus.CLOSED
        assert rebuilt.interaction_count == 1
        assert closed.sort_key > message.sort_key
