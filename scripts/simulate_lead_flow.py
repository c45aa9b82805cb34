#!/usr/bin/env python
"""Script de diagnóstico do pipeline multiagente (tudo em memória).

Simula:
1. Tenant com SDR, Closer e CS usando as regras padrão
2. Conversa de um lead até a contratação
3. Escalonamentos SDR → Closer → CS e contadores do dispatcher

Uso:
    python scripts/simulate_lead_flow.py
"""

import asyncio
import sys
from pathlib import Path

# Adicionar src ao path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from jurify_agents.application.dispatcher import InboundLead, LeadDispatcher
from jurify_agents.config.settings import Settings
from jurify_agents.domain.agents import AgentProfile, default_escalation_rules
from jurify_agents.domain.enums import AgentType, Channel
from jurify_agents.domain.protocols import ReplyGeneratorProtocol, ReplyRequest
from jurify_agents.infra.agent_store_memory import InMemoryAgentProfileStore
from jurify_agents.infra.session_repository_memory import InMemorySessionRepository

TENANT = "tenant-demo"

SCRIPTED_REPLIES = [
    "Olá! Qual é o seu problema trabalhista?",
    "Entendi. Você está interessado em receber uma proposta de honorários?",
    "Segue a proposta. Posso considerar o contrato fechado?",
    "Contrato assinado e aceito, obrigado!",
    "Bem-vindo! Vamos acompanhar o seu processo.",
]

LEAD_MESSAGES = [
    "Oi, fui demitido sem justa causa",
    "Quero saber quanto custa",
    "Gostei, pode mandar",
    "Assinei",
    "Quando começa?",
]


class ScriptedReplyGenerator(ReplyGeneratorProtocol):
    """Devolve respostas pré-definidas em sequência."""

    def __init__(self, replies: list[str]) -> None:
        self._replies = list(replies)

    async def generate(self, request: ReplyRequest) -> str:
        return self._replies.pop(0)


def build_agents() -> list[AgentProfile]:
    return [
        AgentProfile(
            id=f"{agent_type.value}-1",
            tenant_id=TENANT,
            name=agent_type.value.upper(),
            type=agent_type,
            legal_area="trabalhista",
            escalation_rules=default_escalation_rules(agent_type),
        )
        for agent_type in AgentType
    ]


async def main() -> int:
    dispatcher = LeadDispatcher(
        InMemoryAgentProfileStore(build_agents()),
        InMemorySessionRepository(),
        ScriptedReplyGenerator(SCRIPTED_REPLIES),
        settings=Settings(),
    )

    for index, message in enumerate(LEAD_MESSAGES, start=1):
        result = await dispatcher.process_lead(
            InboundLead(
                lead_id="lead-demo",
                tenant_id=TENANT,
                channel=Channel.CHAT,
                message=message,
                message_id=f"msg-{index}",
            )
        )
        marker = "⇢ escalou" if result.escalated else ""
        print(
            f"[{index}] {result.session.current_agent_type:<17} "
            f"count={result.session.interaction_count} {marker}"
        )
        print(f"    lead:   {message}")
        print(f"    agente: {result.reply}")

    print(f"✅ Contadores: {dispatcher.counters}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
