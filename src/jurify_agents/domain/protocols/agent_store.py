"""Protocolo do store de perfis de agentes."""

from __future__ import annotations

from abc import ABC, abstractmethod

from jurify_agents.domain.agents import AgentProfile
from jurify_agents.domain.enums import AgentType
from jurify_agents.domain.roster import AgentRoster


class AgentProfileStoreProtocol(ABC):
    """Contrato de leitura (dispatcher) e escrita administrativa (painel)."""

    @abstractmethod
    async def list_active(
        self, tenant_id: str, agent_type: AgentType | None = None
    ) -> list[AgentProfile]:
        """Agentes ativos do tenant, opcionalmente filtrados por tipo."""

    @abstractmethod
    async def get(self, tenant_id: str, agent_id: str) -> AgentProfile:
        """Retorna o agente ou levanta AgentProfileNotFound."""

    @abstractmethod
    async def snapshot(self, tenant_id: str) -> AgentRoster:
        """Roster imutável do tenant para uma chamada de roteamento."""

    @abstractmethod
    async def upsert(self, profile: AgentProfile) -> AgentProfile:
        """Cria ou substitui um agente (valida unicidade de ativo por tipo)."""

    @abstractmethod
    async def set_active(self, tenant_id: str, agent_id: str, active: bool) -> AgentProfile:
        """Ativa/desativa um agente."""

    @abstractmethod
    async def delete(self, tenant_id: str, agent_id: str) -> None:
        """Remove um agente (AgentProfileNotFound se não existir)."""
