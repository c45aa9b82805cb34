"""Store de perfis de agentes em memória (dev/testes)."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from types import MappingProxyType

from jurify_agents.domain.agents import AgentProfile
from jurify_agents.domain.enums import AgentType
from jurify_agents.domain.errors import AgentProfileNotFound, InvalidAgentConfiguration
from jurify_agents.domain.protocols import AgentProfileStoreProtocol
from jurify_agents.domain.roster import AgentRoster
from jurify_agents.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

Tenants = MappingProxyType[str, MappingProxyType[str, AgentProfile]]


class InMemoryAgentProfileStore(AgentProfileStoreProtocol):
    """Copy-on-write: cada escrita publica um novo mapa imutável.

    Leitores pegam a referência atual e nunca veem uma escrita pela metade.
    """

    def __init__(
        self,
        profiles: Iterable[AgentProfile] = (),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._write_lock = asyncio.Lock()
        self._tenants: Tenants = MappingProxyType({})
        for profile in profiles:
            self._publish(self._validated(self._stamped(profile)))

    async def list_active(
        self, tenant_id: str, agent_type: AgentType | None = None
    ) -> list[AgentProfile]:
        agents = self._tenants.get(tenant_id, MappingProxyType({}))
        return [
            p
            for p in agents.values()
            if p.active and (agent_type is None or p.type == agent_type)
        ]

    async def get(self, tenant_id: str, agent_id: str) -> AgentProfile:
        profile = self._tenants.get(tenant_id, MappingProxyType({})).get(agent_id)
        if profile is None:
            raise AgentProfileNotFound(
                "Agente não encontrado", tenant_id=tenant_id, agent_id=agent_id
            )
        return profile

    async def snapshot(self, tenant_id: str) -> AgentRoster:
        return AgentRoster(tenant_id, await self.list_active(tenant_id))

    async def upsert(self, profile: AgentProfile) -> AgentProfile:
        async with self._write_lock:
            stamped = self._validated(self._stamped(profile))
            self._publish(stamped)
        logger.info(
            "agent_profile_upserted",
            extra={
                "tenant_id": profile.tenant_id,
                "agent_id": profile.id,
                "agent_type": profile.type.value,
                "active": profile.active,
            },
        )
        return stamped

    async def set_active(self, tenant_id: str, agent_id: str, active: bool) -> AgentProfile:
        current = await self.get(tenant_id, agent_id)
        return await self.upsert(current.model_copy(update={"active": active}))

    async def delete(self, tenant_id: str, agent_id: str) -> None:
        async with self._write_lock:
            agents = dict(self._tenants.get(tenant_id, {}))
            if agents.pop(agent_id, None) is None:
                raise AgentProfileNotFound(
                    "Agente não encontrado", tenant_id=tenant_id, agent_id=agent_id
                )
            tenants = dict(self._tenants)
            tenants[tenant_id] = MappingProxyType(agents)
            self._tenants = MappingProxyType(tenants)
        logger.info("agent_profile_deleted", extra={"tenant_id": tenant_id, "agent_id": agent_id})

    def _stamped(self, profile: AgentProfile) -> AgentProfile:
        if profile.created_at is not None:
            return profile
        existing = self._tenants.get(profile.tenant_id, {}).get(profile.id)
        created_at = existing.created_at if existing else self._clock()
        return profile.model_copy(update={"created_at": created_at})

    def _validated(self, profile: AgentProfile) -> AgentProfile:
        if not profile.active:
            return profile
        for other in self._tenants.get(profile.tenant_id, {}).values():
            if other.id != profile.id and other.active and other.type == profile.type:
                raise InvalidAgentConfiguration(
                    f"Já existe agente ativo do tipo {profile.type} no tenant",
                    tenant_id=profile.tenant_id,
                    agent_id=profile.id,
                    conflicting_agent_id=other.id,
                )
        return profile

    def _publish(self, profile: AgentProfile) -> None:
        agents = dict(self._tenants.get(profile.tenant_id, {}))
        agents[profile.id] = profile
        tenants = dict(self._tenants)
        tenants[profile.tenant_id] = MappingProxyType(agents)
        self._tenants = MappingProxyType(tenants)
