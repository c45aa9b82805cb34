"""Store de perfis de agentes em Firestore (coleção `agentes_ia`).

Schema (um documento por agente):
    /agentes_ia/{agent_id}
      ├── tenant_id, nome, tipo_agente, area_juridica, prompt_base, ativo
      ├── created_at
      └── parametros_avancados{personality, specialization, max_interactions,
                               escalation_rules}

Linhas malformadas são logadas e excluídas do roster; não derrubam o tenant.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from google.cloud import firestore

from jurify_agents.domain.agents import AgentProfile
from jurify_agents.domain.enums import AgentType
from jurify_agents.domain.errors import (
    AgentProfileNotFound,
    InvalidAgentConfiguration,
)
from jurify_agents.domain.protocols import AgentProfileStoreProtocol
from jurify_agents.domain.roster import AgentRoster
from jurify_agents.infra.store_errors import AgentStoreError
from jurify_agents.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class FirestoreAgentProfileStore(AgentProfileStoreProtocol):
    """Leitura/escrita de agentes; cada `snapshot` é uma única query."""

    def __init__(self, client: firestore.Client, collection: str = "agentes_ia") -> None:
        self._client = client
        self._collection = collection

    def _col(self) -> firestore.CollectionReference:
        return self._client.collection(self._collection)

    async def list_active(
        self, tenant_id: str, agent_type: AgentType | None = None
    ) -> list[AgentProfile]:
        profiles = await asyncio.to_thread(self._query_tenant, tenant_id)
        return [
            p
            for p in profiles
            if p.active and (agent_type is None or p.type == agent_type)
        ]

    async def get(self, tenant_id: str, agent_id: str) -> AgentProfile:
        try:
            doc = await asyncio.to_thread(self._col().document(agent_id).get)
        except Exception as e:
            logger.error(
                "agent_store_read_failed",
                extra={"tenant_id": tenant_id, "agent_id": agent_id, "error": type(e).__name__},
            )
            raise AgentStoreError(f"Firestore get failed: {e}") from e

        data = doc.to_dict() if doc.exists else None
        if not data or data.get("tenant_id") != tenant_id:
            raise AgentProfileNotFound(
                "Agente não encontrado", tenant_id=tenant_id, agent_id=agent_id
            )
        return AgentProfile.from_row({**data, "id": doc.id})

    async def snapshot(self, tenant_id: str) -> AgentRoster:
        return AgentRoster(tenant_id, await self.list_active(tenant_id))

    async def upsert(self, profile: AgentProfile) -> AgentProfile:
        """Grava o agente; a checagem de unicidade e o `set` rodam na mesma transação."""
        if profile.created_at is None:
            profile = profile.model_copy(update={"created_at": datetime.now(UTC)})

        row = profile.to_row()
        row.pop("id")
        tenant_query = self._col().where("tenant_id", "==", profile.tenant_id)

        @firestore.transactional
        def _txn(tx: firestore.Transaction, doc_ref: firestore.DocumentReference) -> None:
            if profile.active:
                for doc in tenant_query.stream(transaction=tx):
                    data = doc.to_dict() or {}
                    if (
                        doc.id != profile.id
                        and data.get("ativo", True)
                        and data.get("tipo_agente") == profile.type.value
                    ):
                        raise InvalidAgentConfiguration(
                            f"Já existe agente ativo do tipo {profile.type} no tenant",
                            tenant_id=profile.tenant_id,
                            agent_id=profile.id,
                            conflicting_agent_id=doc.id,
                        )
            tx.set(doc_ref, row)

        await self._write(
            profile.tenant_id, profile.id, lambda ref: _txn(self._client.transaction(), ref)
        )
        logger.info(
            "agent_profile_upserted",
            extra={
                "tenant_id": profile.tenant_id,
                "agent_id": profile.id,
                "agent_type": profile.type.value,
                "active": profile.active,
            },
        )
        return profile

    async def set_active(self, tenant_id: str, agent_id: str, active: bool) -> AgentProfile:
        current = await self.get(tenant_id, agent_id)
        return await self.upsert(current.model_copy(update={"active": active}))

    async def delete(self, tenant_id: str, agent_id: str) -> None:
        await self.get(tenant_id, agent_id)
        await self._write(tenant_id, agent_id, lambda ref: ref.delete())
        logger.info("agent_profile_deleted", extra={"tenant_id": tenant_id, "agent_id": agent_id})

    async def _write(self, tenant_id: str, agent_id: str, op: Any) -> None:
        ref = self._col().document(agent_id)
        try:
            await asyncio.to_thread(op, ref)
        except InvalidAgentConfiguration:
            raise
        except Exception as e:
            logger.error(
                "agent_store_write_failed",
                extra={"tenant_id": tenant_id, "agent_id": agent_id, "error": type(e).__name__},
            )
            raise AgentStoreError(f"Firestore write failed: {e}") from e

    def _query_tenant(self, tenant_id: str) -> list[AgentProfile]:
        try:
            docs = list(self._col().where("tenant_id", "==", tenant_id).stream())
        except Exception as e:
            logger.error(
                "agent_store_read_failed",
                extra={"tenant_id": tenant_id, "error": type(e).__name__},
            )
            raise AgentStoreError(f"Firestore query failed: {e}") from e

        profiles: list[AgentProfile] = []
        for doc in docs:
            data = doc.to_dict() or {}
            try:
                profiles.append(AgentProfile.from_row({**data, "id": doc.id}))
            except InvalidAgentConfiguration as e:
                logger.error(
                    "agent_profile_rejected",
                    extra={"tenant_id": tenant_id, "agent_id": doc.id, "error": str(e)},
                )
        return profiles
