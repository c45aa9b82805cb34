"""Repositório de sessões em Redis (produção, múltiplas instâncias).

Chaves por sessão (`{sid}` = "{tenant}:{lead}:{channel}"):
    lead_session:{sid}              JSON da LeadSession (campo version = CAS)
    lead_interactions:{sid}         lista (RPUSH) de InteractionRecord JSON
    lead_message_ids:{sid}          hash message_id → InteractionRecord JSON
    tenant_interactions:{tenant}    sorted set por timestamp (métricas)

O commit usa WATCH na chave da sessão + MULTI/EXEC: sessão e registro são
gravados juntos ou nada é gravado.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from redis.exceptions import RedisError, WatchError

from jurify_agents.domain.errors import SessionWriteConflict
from jurify_agents.domain.interactions import InteractionRecord
from jurify_agents.domain.protocols import SessionRepositoryProtocol
from jurify_agents.domain.session import LeadSession, SessionKey
from jurify_agents.infra.store_errors import SessionStoreError
from jurify_agents.observability.logging import get_logger, mask_id

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger: logging.Logger = get_logger(__name__)

SESSION_PREFIX = "lead_session:"
INTERACTIONS_PREFIX = "lead_interactions:"
MESSAGE_IDS_PREFIX = "lead_message_ids:"
TENANT_INDEX_PREFIX = "tenant_interactions:"


def _text(raw: bytes | str) -> str:
    return raw.decode("utf-8") if isinstance(raw, bytes) else raw


class RedisSessionRepository(SessionRepositoryProtocol):
    """Implementação sobre `redis.asyncio`."""

    def __init__(self, redis_client: Redis) -> None:
        self._redis = redis_client

    async def load(self, key: SessionKey) -> LeadSession | None:
        try:
            raw = await self._redis.get(SESSION_PREFIX + key.storage_id)
        except RedisError as e:
            self._log_failure("load", key, e)
            raise SessionStoreError(f"Redis load failed: {e}") from e
        if raw is None:
            return None
        return LeadSession.model_validate_json(_text(raw))

    async def commit(
        self, session: LeadSession, expected_version: int, record: InteractionRecord
    ) -> LeadSession:
        sid = session.key.storage_id
        session_key = SESSION_PREFIX + sid
        committed = session.model_copy(update={"version": expected_version + 1})
        record_json = record.model_dump_json()

        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(session_key)
                raw = await pipe.get(session_key)
                current_version = (
                    LeadSession.model_validate_json(_text(raw)).version if raw else 0
                )
                if current_version != expected_version:
                    raise SessionWriteConflict(
                        "Versão da sessão mudou",
                        expected=expected_version,
                        actual=current_version,
                    )

                pipe.multi()
                pipe.set(session_key, committed.model_dump_json())
                pipe.rpush(INTERACTIONS_PREFIX + sid, record_json)
                if record.inbound_message_id:
                    pipe.hset(MESSAGE_IDS_PREFIX + sid, record.inbound_message_id, record_json)
                pipe.zadd(
                    TENANT_INDEX_PREFIX + record.tenant_id,
                    {record_json: record.timestamp.timestamp()},
                )
                await pipe.execute()
        except WatchError as e:
            logger.debug("session_watch_conflict", extra={"lead_id": mask_id(session.lead_id)})
            raise SessionWriteConflict(
                "Sessão alterada durante o commit", expected=expected_version
            ) from e
        except RedisError as e:
            self._log_failure("commit", session.key, e)
            raise SessionStoreError(f"Redis commit failed: {e}") from e

        return committed

    async def list_interactions(self, key: SessionKey) -> list[InteractionRecord]:
        try:
            items = await self._redis.lrange(INTERACTIONS_PREFIX + key.storage_id, 0, -1)
        except RedisError as e:
            self._log_failure("list_interactions", key, e)
            raise SessionStoreError(f"Redis lrange failed: {e}") from e
        return [InteractionRecord.model_validate_json(_text(item)) for item in items]

    async def find_interaction(
        self, key: SessionKey, message_id: str
    ) -> InteractionRecord | None:
        try:
            raw = await self._redis.hget(MESSAGE_IDS_PREFIX + key.storage_id, message_id)
        except RedisError as e:
            self._log_failure("find_interaction", key, e)
            raise SessionStoreError(f"Redis hget failed: {e}") from e
        if raw is None:
            return None
        return InteractionRecord.model_validate_json(_text(raw))

    async def list_tenant_interactions(
        self, tenant_id: str, since: datetime, until: datetime
    ) -> list[InteractionRecord]:
        try:
            items = await self._redis.zrangebyscore(
                TENANT_INDEX_PREFIX + tenant_id,
                since.timestamp(),
                f"({until.timestamp()}",
            )
        except RedisError as e:
            logger.error(
                "session_store_failed",
                extra={"operation": "list_tenant_interactions", "error": type(e).__name__},
            )
            raise SessionStoreError(f"Redis zrangebyscore failed: {e}") from e
        return [InteractionRecord.model_validate_json(_text(item)) for item in items]

    @staticmethod
    def _log_failure(operation: str, key: SessionKey, error: Exception) -> None:
        logger.error(
            "session_store_failed",
            extra={
                "operation": operation,
                "tenant_id": key.tenant_id,
                "lead_id": mask_id(key.lead_id),
                "error": type(error).__name__,
            },
        )
