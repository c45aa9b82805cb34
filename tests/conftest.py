from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from jurify_agents.config.settings import Settings, get_settings
from jurify_agents.domain.agents import AgentProfile, default_escalation_rules
from jurify_agents.domain.enums import AgentType
from jurify_agents.domain.protocols import ReplyGeneratorProtocol, ReplyRequest

TENANT = "tenant-1"
BASE_TIME = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)


class ScriptedReplyGenerator(ReplyGeneratorProtocol):
    """Gerador fake: devolve respostas em sequência (ou a última, repetida).

    Itens que são exceções são levantados em vez de devolvidos.
    """

    def __init__(self, replies: list[Any]) -> None:
        self._replies = list(replies)
        self.requests: list[ReplyRequest] = []

    async def generate(self, request: ReplyRequest) -> str:
        self.requests.append(request)
        item = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(item, BaseException):
            raise item
        return item


class StepClock:
    """Relógio determinístico que avança 1s a cada leitura."""

    def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self._step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self._step
        return current


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings() -> Settings:
    """Settings de teste: backoff zerado para não esperar entre retries."""
    return Settings(
        reply_backoff_base_seconds=0.0,
        reply_backoff_max_seconds=0.0,
        reply_max_retries=2,
    )


@pytest.fixture()
def make_agent() -> Callable[..., AgentProfile]:
    def _make(agent_type: AgentType = AgentType.SDR, **overrides: Any) -> AgentProfile:
        data: dict[str, Any] = {
            "id": f"{agent_type.value}-agent",
            "tenant_id": TENANT,
            "name": f"Agente {agent_type.value}",
            "type": agent_type,
            "legal_area": "trabalhista",
            "prompt_base": "Você é um assistente jurídico.",
            "escalation_rules": default_escalation_rules(agent_type),
            "created_at": BASE_TIME,
        }
        data.update(overrides)
        return AgentProfile(**data)

    return _make


@pytest.fixture()
def full_team(make_agent: Callable[..., AgentProfile]) -> list[AgentProfile]:
    """SDR, Closer e CS ativos com as regras padrão."""
    return [make_agent(agent_type) for agent_type in AgentType]


@pytest.fixture()
def scripted() -> Callable[[list[Any]], ScriptedReplyGenerator]:
    return ScriptedReplyGenerator


@pytest.fixture()
def clock() -> StepClock:
    return StepClock()
