"""Montagem de prompts para a geração de respostas dos agentes."""

from __future__ import annotations

from jurify_agents.domain.enums import AgentType
from jurify_agents.domain.protocols import ReplyRequest

_ROLE_BY_TYPE: dict[AgentType, str] = {
    AgentType.SDR: "qualificar o lead e entender a necessidade jurídica",
    AgentType.CLOSER: "apresentar a proposta, negociar e conduzir a contratação",
    AgentType.CS: "acompanhar o cliente após a contratação",
}


def build_system_prompt(request: ReplyRequest) -> str:
    """System prompt a partir da configuração do agente."""
    role = _ROLE_BY_TYPE.get(request.agent_type, "atender o lead")
    tags = ", ".join(request.specialization_tags) or "geral"
    area = request.legal_area or "não informada"

    base = request.prompt_base.strip()
    header = f"{base}\n\n" if base else ""

    return f"""{header}## Perfil do agente

- Papel: {role}
- Personalidade: {request.personality}
- Área jurídica: {area}
- Especialização: {tags}

## Regras

1. Responda em português, de forma breve e objetiva.
2. Não prometa resultado de processo nem valores que não foram informados.
3. Se o lead demonstrar interesse em contratar, diga isso claramente na resposta.
"""


def build_messages(request: ReplyRequest) -> list[dict[str, str]]:
    """Mensagens no formato chat: system, histórico alternado, mensagem atual."""
    messages = [{"role": "system", "content": build_system_prompt(request)}]
    for entry in request.history:
        messages.append({"role": "user", "content": entry.inbound_text})
        messages.append({"role": "assistant", "content": entry.outbound_text})
    messages.append({"role": "user", "content": request.inbound_message})
    return messages
