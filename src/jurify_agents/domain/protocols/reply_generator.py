"""Fronteira de geração de resposta (LLM externo)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from jurify_agents.domain.enums import AgentType


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """Um turno anterior da conversa (mensagem do lead e resposta do agente)."""

    inbound_text: str
    outbound_text: str


@dataclass(frozen=True, slots=True)
class ReplyRequest:
    """Entrada da geração: configuração do agente + contexto da conversa."""

    agent_id: str
    agent_type: AgentType
    prompt_base: str
    personality: str
    legal_area: str
    specialization_tags: tuple[str, ...]
    inbound_message: str
    history: tuple[HistoryEntry, ...] = field(default_factory=tuple)


class ReplyGeneratorProtocol(ABC):
    """Gera o texto de resposta do agente."""

    @abstractmethod
    async def generate(self, request: ReplyRequest) -> str:
        """Retorna a resposta; levanta exceção em falha (retry é externo)."""


class ReplyGenerationError(Exception):
    """Falha transitória ou resposta inválida do gerador."""


class MalformedReplyError(ReplyGenerationError):
    """Gerador respondeu vazio ou em formato inesperado."""
