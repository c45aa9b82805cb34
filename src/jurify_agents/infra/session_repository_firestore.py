"""Repositório de sessões em Firestore.

Schema:
    /lead_sessions/{tenant}:{lead}:{channel}
      └── campos de LeadSession (version = CAS)
    /lead_interactions/{interaction_id}
      └── campos de InteractionRecord + session_id

O commit roda numa transação: lê a versão da sessão, grava sessão e registro.
Conflito de versão aborta a transação sem escrita.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

from google.cloud import firestore

from jurify_agents.domain.errors import SessionWriteConflict
from jurify_agents.domain.interactions import InteractionRecord
from jurify_agents.domain.protocols import SessionRepositoryProtocol
from jurify_agents.domain.session import LeadSession, SessionKey
from jurify_agents.infra.store_errors import SessionStoreError
from jurify_agents.observability.logging import get_logger, mask_id

logger: logging.Logger = get_logger(__name__)


class FirestoreSessionRepository(SessionRepositoryProtocol):
    """Cliente Firestore síncrono executado em thread (`asyncio.to_thread`)."""

    def __init__(
        self,
        client: firestore.Client,
        sessions_collection: str = "lead_sessions",
        interactions_collection: str = "lead_interactions",
    ) -> None:
        self._client = client
        self._sessions = sessions_collection
        self._interactions = interactions_collection

    def _session_ref(self, storage_id: str) -> firestore.DocumentReference:
        return self._client.collection(self._sessions).document(storage_id)

    def _interactions_col(self) -> firestore.CollectionReference:
        return self._client.collection(self._interactions)

    async def load(self, key: SessionKey) -> LeadSession | None:
        doc = await self._call("load", key, self._session_ref(key.storage_id).get)
        if not doc.exists:
            return None
        return LeadSession.model_validate(doc.to_dict() or {})

    async def commit(
        self, session: LeadSession, expected_version: int, record: InteractionRecord
    ) -> LeadSession:
        sid = session.key.storage_id
        session_ref = self._session_ref(sid)
        record_ref = self._interactions_col().document(record.interaction_id)
        committed = session.model_copy(update={"version": expected_version + 1})
        record_data = {**record.model_dump(), "session_id": sid}

        @firestore.transactional
        def _txn(tx: firestore.Transaction) -> None:
            snapshot = session_ref.get(transaction=tx)
            data = snapshot.to_dict() if snapshot.exists else None
            current_version = int((data or {}).get("version", 0))
            if current_version != expected_version:
                raise SessionWriteConflict(
                    "Versão da sessão mudou",
                    expected=expected_version,
                    actual=current_version,
                )
            tx.set(session_ref, committed.model_dump())
            tx.set(record_ref, record_data)

        await self._call("commit", session.key, _txn, self._client.transaction())
        logger.debug(
            "session_committed",
            extra={"lead_id": mask_id(session.lead_id), "version": committed.version},
        )
        return committed

    async def list_interactions(self, key: SessionKey) -> list[InteractionRecord]:
        query = self._interactions_col().where("session_id", "==", key.storage_id)
        docs = await self._call("list_interactions", key, lambda: list(query.stream()))
        records = [self._to_record(doc.to_dict() or {}) for doc in docs]
        return sorted(records, key=lambda r: r.sort_key)

    async def find_interaction(
        self, key: SessionKey, message_id: str
    ) -> InteractionRecord | None:
        query = (
            self._interactions_col()
            .where("session_id", "==", key.storage_id)
            .where("inbound_message_id", "==", message_id)
            .limit(1)
        )
        docs = await self._call("find_interaction", key, lambda: list(query.stream()))
        if not docs:
            return None
        return self._to_record(docs[0].to_dict() or {})

    async def list_tenant_interactions(
        self, tenant_id: str, since: datetime, until: datetime
    ) -> list[InteractionRecord]:
        query = (
            self._interactions_col()
            .where("tenant_id", "==", tenant_id)
            .where("timestamp", ">=", since)
            .where("timestamp", "<", until)
        )
        try:
            docs = await asyncio.to_thread(lambda: list(query.stream()))
        except Exception as e:
            logger.error(
                "session_store_failed",
                extra={"operation": "list_tenant_interactions", "error": type(e).__name__},
            )
            raise SessionStoreError(f"Firestore query failed: {e}") from e
        return [self._to_record(doc.to_dict() or {}) for doc in docs]

    async def _call(self, operation: str, key: SessionKey, fn: Any, *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except SessionWriteConflict:
            raise
        except Exception as e:
            logger.error(
                "session_store_failed",
                extra={
                    "operation": operation,
                    "tenant_id": key.tenant_id,
                    "lead_id": mask_id(key.lead_id),
                    "error": type(e).__name__,
                },
            )
            raise SessionStoreError(f"Firestore {operation} failed: {e}") from e

    @staticmethod
    def _to_record(data: dict[str, Any]) -> InteractionRecord:
        data.pop("session_id", None)
        return InteractionRecord.model_validate(data)
