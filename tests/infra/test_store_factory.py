"""Testes das factories de stores."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from jurify_agents.infra.agent_store_firestore import FirestoreAgentProfileStore
from jurify_agents.infra.agent_store_memory import InMemoryAgentProfileStore
from jurify_agents.infra.session_repository_firestore import FirestoreSessionRepository
from jurify_agents.infra.session_repository_memory import InMemorySessionRepository
from jurify_agents.infra.session_repository_redis import RedisSessionRepository
from jurify_agents.infra.store_factory import create_agent_store, create_session_repository


class TestCreateSessionRepository:
    def test_memory(self) -> None:
        assert isinstance(create_session_repository("memory"), InMemorySessionRepository)

    def test_redis_requires_client(self) -> None:
        with pytest.raises(ValueError, match="redis_client"):
            create_session_repository("redis")
        repo = create_session_repository("REDIS", redis_client=MagicMock())
        assert isinstance(repo, RedisSessionRepository)

    def test_firestore_collections(self) -> None:
        client = MagicMock()
        repo = create_session_repository(
            "firestore", firestore_client=client, sessions_collection="s", interactions_collection="i"
        )
        assert isinstance(repo, FirestoreSessionRepository)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError, match="Unknown"):
            create_session_repository("postgres")


class TestCreateAgentStore:
    def test_memory(self) -> None:
        assert isinstance(create_agent_store("memory"), InMemoryAgentProfileStore)

    def test_firestore(self) -> None:
        with pytest.raises(ValueError):
            create_agent_store("firestore")
        store = create_agent_store("firestore", firestore_client=MagicMock())
        assert isinstance(store, FirestoreAgentProfileStore)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError):
            create_agent_store("redis")
