"""Repositório de sessões em memória (dev/testes, processo único)."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from jurify_agents.domain.errors import SessionWriteConflict
from jurify_agents.domain.interactions import InteractionRecord
from jurify_agents.domain.protocols import SessionRepositoryProtocol
from jurify_agents.domain.session import LeadSession, SessionKey
from jurify_agents.observability.logging import get_logger, mask_id

logger: logging.Logger = get_logger(__name__)


class InMemorySessionRepository(SessionRepositoryProtocol):
    """Sessões e log mantidos em dicionários.

    Não usar em produção: não há compartilhamento entre instâncias.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, LeadSession] = {}
        self._records: dict[str, list[InteractionRecord]] = {}
        self._by_message_id: dict[tuple[str, str], InteractionRecord] = {}
        self._lock = asyncio.Lock()

    async def load(self, key: SessionKey) -> LeadSession | None:
        return self._sessions.get(key.storage_id)

    async def commit(
        self, session: LeadSession, expected_version: int, record: InteractionRecord
    ) -> LeadSession:
        storage_id = session.key.storage_id
        async with self._lock:
            current = self._sessions.get(storage_id)
            current_version = current.version if current else 0
            if current_version != expected_version:
                logger.debug(
                    "session_version_conflict",
                    extra={
                        "lead_id": mask_id(session.lead_id),
                        "expected": expected_version,
                        "actual": current_version,
                    },
                )
                raise SessionWriteConflict(
                    "Versão da sessão mudou",
                    expected=expected_version,
                    actual=current_version,
                )

            committed = session.model_copy(update={"version": expected_version + 1})
            self._sessions[storage_id] = committed
            self._records.setdefault(storage_id, []).append(record)
            if record.inbound_message_id:
                self._by_message_id[(storage_id, record.inbound_message_id)] = record
        return committed

    async def list_interactions(self, key: SessionKey) -> list[InteractionRecord]:
        return list(self._records.get(key.storage_id, ()))

    async def find_interaction(
        self, key: SessionKey, message_id: str
    ) -> InteractionRecord | None:
        return self._by_message_id.get((key.storage_id, message_id))

    async def list_tenant_interactions(
        self, tenant_id: str, since: datetime, until: datetime
    ) -> list[InteractionRecord]:
        return [
            r
            for records in list(self._records.values())
            for r in records
            if r.tenant_id == tenant_id and since <= r.timestamp < until
        ]
