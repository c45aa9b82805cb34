"""AgentRoster: visão imutável dos agentes ativos de um tenant."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

from jurify_agents.domain.agents import AgentProfile
from jurify_agents.domain.enums import AgentType
from jurify_agents.observability.logging import get_logger

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _precedence(profile: AgentProfile) -> tuple[datetime, str]:
    created = profile.created_at or _EPOCH
    if created.tzinfo is None:
        created = created.replace(tzinfo=UTC)
    return created, profile.id


class AgentRoster:
    """Snapshot consistente usado por uma chamada inteira do dispatcher.

    Se existirem dois agentes ativos do mesmo tipo (linhas escritas por outra
    ferramenta), vence o mais antigo por `created_at` e depois por `id`.
    """

    def __init__(self, tenant_id: str, profiles: Iterable[AgentProfile]) -> None:
        self._tenant_id = tenant_id
        by_type: dict[AgentType, AgentProfile] = {}
        for profile in sorted(
            (p for p in profiles if p.active and p.tenant_id == tenant_id), key=_precedence
        ):
            winner = by_type.get(profile.type)
            if winner is not None:
                logger.warning(
                    "duplicate_active_agents",
                    extra={
                        "tenant_id": tenant_id,
                        "agent_type": profile.type.value,
                        "kept_agent_id": winner.id,
                        "ignored_agent_id": profile.id,
                    },
                )
                continue
            by_type[profile.type] = profile
        self._by_type = by_type

    @property
    def tenant_id(self) -> str:
        return self._tenant_id

    def resolve(self, agent_type: AgentType) -> AgentProfile | None:
        """Retorna o agente ativo do tipo, ou None."""
        return self._by_type.get(agent_type)

    def has(self, agent_type: AgentType) -> bool:
        return agent_type in self._by_type

    def profiles(self) -> list[AgentProfile]:
        return list(self._by_type.values())

    def __len__(self) -> int:
        return len(self._by_type)
