"""Factories backend-agnósticas para os stores de agentes e sessões."""

from __future__ import annotations

import logging
from typing import Any

from jurify_agents.domain.protocols import (
    AgentProfileStoreProtocol,
    SessionRepositoryProtocol,
)
from jurify_agents.infra.agent_store_memory import InMemoryAgentProfileStore
from jurify_agents.infra.session_repository_memory import InMemorySessionRepository
from jurify_agents.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


def create_session_repository(
    backend: str,
    redis_client: Any | None = None,
    firestore_client: Any | None = None,
    sessions_collection: str = "lead_sessions",
    interactions_collection: str = "lead_interactions",
) -> SessionRepositoryProtocol:
    """Cria o repositório de sessões.

    Raises:
        ValueError: backend desconhecido ou cliente obrigatório ausente
    """
    backend = backend.lower()

    if backend == "memory":
        logger.warning("session_repository_memory_dev_only")
        return InMemorySessionRepository()

    if backend == "redis":
        if redis_client is None:
            raise ValueError("redis_client required for redis backend")
        from jurify_agents.infra.session_repository_redis import RedisSessionRepository

        logger.info("session_repository_selected", extra={"backend": backend})
        return RedisSessionRepository(redis_client)

    if backend == "firestore":
        if firestore_client is None:
            raise ValueError("firestore_client required for firestore backend")
        from jurify_agents.infra.session_repository_firestore import (
            FirestoreSessionRepository,
        )

        logger.info("session_repository_selected", extra={"backend": backend})
        return FirestoreSessionRepository(
            firestore_client,
            sessions_collection=sessions_collection,
            interactions_collection=interactions_collection,
        )

    raise ValueError(f"Unknown session repository backend: {backend}")


def create_agent_store(
    backend: str,
    firestore_client: Any | None = None,
    collection: str = "agentes_ia",
) -> AgentProfileStoreProtocol:
    """Cria o store de perfis de agentes.

    Raises:
        ValueError: backend desconhecido ou cliente obrigatório ausente
    """
    backend = backend.lower()

    if backend == "memory":
        logger.warning("agent_store_memory_dev_only")
        return InMemoryAgentProfileStore()

    if backend == "firestore":
        if firestore_client is None:
            raise ValueError("firestore_client required for firestore backend")
        from jurify_agents.infra.agent_store_firestore import FirestoreAgentProfileStore

        logger.info("agent_store_selected", extra={"backend": backend})
        return FirestoreAgentProfileStore(firestore_client, collection=collection)

    raise ValueError(f"Unknown agent store backend: {backend}")
