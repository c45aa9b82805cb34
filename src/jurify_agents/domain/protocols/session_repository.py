"""Protocolo do repositório de sessões + log de interações."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from jurify_agents.domain.interactions import InteractionRecord
from jurify_agents.domain.session import LeadSession, SessionKey


class SessionRepositoryProtocol(ABC):
    """Persistência de LeadSession e do log append-only.

    `commit` grava sessão e registro numa única operação atômica, condicionada
    à versão lida (CAS). Nunca há sessão sem registro correspondente nem
    registro sem sessão.
    """

    @abstractmethod
    async def load(self, key: SessionKey) -> LeadSession | None:
        """Carrega a sessão (None se inexistente)."""

    @abstractmethod
    async def commit(
        self, session: LeadSession, expected_version: int, record: InteractionRecord
    ) -> LeadSession:
        """Persiste sessão e registro se a versão atual for `expected_version`.

        Retorna a sessão com `version = expected_version + 1`.

        Raises:
            SessionWriteConflict: versão persistida difere da esperada
        """

    @abstractmethod
    async def list_interactions(self, key: SessionKey) -> list[InteractionRecord]:
        """Registros da sessão em ordem de gravação."""

    @abstractmethod
    async def find_interaction(
        self, key: SessionKey, message_id: str
    ) -> InteractionRecord | None:
        """Registro já gravado para o `message_id` (idempotência)."""

    @abstractmethod
    async def list_tenant_interactions(
        self, tenant_id: str, since: datetime, until: datetime
    ) -> list[InteractionRecord]:
        """Registros do tenant com `since <= timestamp < until`."""
