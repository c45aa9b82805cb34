"""Testes do repositório de sessões em Firestore (cliente mockado)."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest

from jurify_agents.application.lifecycle import start_session
from jurify_agents.domain.enums import AgentType, Channel, InteractionKind, SessionStatus
from jurify_agents.domain.errors import SessionWriteConflict
from jurify_agents.domain.interactions import InteractionRecord
from jurify_agents.domain.session import SessionKey
from jurify_agents.infra.session_repository_firestore import FirestoreSessionRepository
from jurify_agents.infra.store_errors import SessionStoreError

T0 = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)
KEY = SessionKey("tenant-1", "lead-1", Channel.CHAT)
SID = "tenant-1:lead-1:chat"

RECORD = InteractionRecord(
    interaction_id="r1",
    tenant_id="tenant-1",
    lead_id="lead-1",
    channel=Channel.CHAT,
    timestamp=T0,
    inbound_message_id="m1",
    from_agent_type=AgentType.SDR,
    status_after=SessionStatus.ACTIVE,
    interaction_index=1,
)

# Executa a função transacional diretamente com a transação mockada
_transactional = patch(
    "jurify_agents.infra.session_repository_firestore.firestore.transactional",
    lambda fn: fn,
)


def _snapshot(data: dict | None) -> MagicMock:
    snap = MagicMock()
    snap.exists = data is not None
    snap.to_dict.return_value = data
    return snap


def _client() -> tuple[MagicMock, MagicMock, MagicMock]:
    client = MagicMock()
    sessions = MagicMock()
    interactions = MagicMock()
    client.collection.side_effect = lambda name: {
        "lead_sessions": sessions,
        "lead_interactions": interactions,
    }[name]
    return client, sessions, interactions


class TestFirestoreCommit:
    @pytest.mark.asyncio
    async def test_commit_sets_session_and_record_in_transaction(self) -> None:
        client, sessions, interactions = _client()
        session_ref = sessions.document.return_value
        session_ref.get.return_value = _snapshot(None)
        tx = client.transaction.return_value
        repo = FirestoreSessionRepository(client)

        with _transactional:
            committed = await repo.commit(start_session(KEY, AgentType.SDR, T0), 0, RECORD)

        assert committed.version == 1
        sessions.document.assert_called_with(SID)
        interactions.document.assert_called_with("r1")
        session_ref.get.assert_called_once_with(transaction=tx)
        assert tx.set.call_count == 2
        session_data = tx.set.call_args_list[0][0][1]
        record_data = tx.set.call_args_list[1][0][1]
        assert session_data["version"] == 1
        assert record_data["session_id"] == SID
        assert record_data["inbound_message_id"] == "m1"

    @pytest.mark.asyncio
    async def test_version_mismatch_aborts(self) -> None:
        client, sessions, _ = _client()
        sessions.document.return_value.get.return_value = _snapshot({"version": 4})
        tx = client.transaction.return_value
        repo = FirestoreSessionRepository(client)

        with _transactional, pytest.raises(SessionWriteConflict):
            await repo.commit(start_session(KEY, AgentType.SDR, T0), 3, RECORD)

        tx.set.assert_not_called()

    @pytest.mark.asyncio
    async def test_driver_error_wrapped(self) -> None:
        client, sessions, _ = _client()
        sessions.document.return_value.get.side_effect = RuntimeError("unavailable")
        repo = FirestoreSessionRepository(client)

        with _transactional, pytest.raises(SessionStoreError):
            await repo.commit(start_session(KEY, AgentType.SDR, T0), 0, RECORD)


class TestFirestoreReads:
    @pytest.mark.asyncio
    async def test_load(self) -> None:
        client, sessions, _ = _client()
        session = start_session(KEY, AgentType.SDR, T0)
        sessions.document.return_value.get.return_value = _snapshot(session.model_dump())
        repo = FirestoreSessionRepository(client)

        assert await repo.load(KEY) == session

    @pytest.mark.asyncio
    async def test_load_missing(self) -> None:
        client, sessions, _ = _client()
        sessions.document.return_value.get.return_value = _snapshot(None)
        assert await FirestoreSessionRepository(client).load(KEY) is None

    @pytest.mark.asyncio
    async def test_find_interaction(self) -> None:
        client, _, interactions = _client()
        query = interactions.where.return_value.where.return_value.limit.return_value
        doc = _snapshot({**RECORD.model_dump(), "session_id": SID})
        query.stream.return_value = [doc]
        repo = FirestoreSessionRepository(client)

        found = await repo.find_interaction(KEY, "m1")

        assert found == RECORD
        interactions.where.assert_called_once_with("session_id", "==", SID)
        interactions.where.return_value.where.assert_called_once_with(
            "inbound_message_id", "==", "m1"
        )

    @pytest.mark.asyncio
    async def test_list_interactions_sorted(self) -> None:
        client, _, interactions = _client()
        later = RECORD.model_copy(update={"interaction_id": "r2", "interaction_index": 2})
        interactions.where.return_value.stream.return_value = [
            _snapshot(later.model_dump()),
            _snapshot(RECORD.model_dump()),
        ]
        repo = FirestoreSessionRepository(client)

        records = await repo.list_interactions(KEY)

        assert [r.interaction_id for r in records] == ["r1", "r2"]

    @pytest.mark.asyncio
    async def test_lifecycle_record_sorted_after_message_on_tie(self) -> None:
        client, _, interactions = _client()
        message = RECORD.model_copy(update={"sequence": 1})
        closed = RECORD.model_copy(
            update={
                "interaction_id": "0-closed",
                "kind": InteractionKind.CLOSED,
                "inbound_message_id": None,
                "status_after": SessionStatus.CLOSED,
                "sequence": 2,
            }
        )
        interactions.where.return_value.stream.return_value = [
            _snapshot(closed.model_dump()),
            _snapshot(message.model_dump()),
        ]

        records = await FirestoreSessionRepository(client).list_interactions(KEY)

        assert [r.kind for r in records] == [InteractionKind.MESSAGE, InteractionKind.CLOSED]
