"""Geradores de resposta: OpenAI (produção) e respostas fixas (dev)."""

from __future__ import annotations

import logging

from openai import APIError, APITimeoutError, AsyncOpenAI

from jurify_agents.ai.prompts import build_messages
from jurify_agents.domain.enums import AgentType
from jurify_agents.domain.protocols import (
    MalformedReplyError,
    ReplyGenerationError,
    ReplyGeneratorProtocol,
    ReplyRequest,
)
from jurify_agents.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class OpenAIReplyGenerator(ReplyGeneratorProtocol):
    """Gera respostas com chat completions.

    Timeout e retry ficam no chamador (`invoke_with_retry`); aqui cada
    chamada é uma única tentativa (`max_retries=0` no cliente).
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        client: AsyncOpenAI | None = None,
        temperature: float = 0.4,
        max_tokens: int = 400,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key, max_retries=0)
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def generate(self, request: ReplyRequest) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=build_messages(request),
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except (APIError, APITimeoutError) as e:
            logger.warning(
                "reply_generation_api_error",
                extra={"agent_type": request.agent_type.value, "error_type": type(e).__name__},
            )
            raise ReplyGenerationError(type(e).__name__) from e

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content or not content.strip():
            raise MalformedReplyError("Resposta vazia do modelo")
        return content.strip()


_CANNED_REPLIES: dict[AgentType, str] = {
    AgentType.SDR: (
        "Olá! Obrigado pelo contato. Pode me contar um pouco mais sobre o seu caso?"
    ),
    AgentType.CLOSER: (
        "Com base no que conversamos, posso preparar uma proposta para você. "
        "Podemos seguir?"
    ),
    AgentType.CS: "Estamos acompanhando o seu caso. Posso ajudar em algo mais?",
}


class CannedReplyGenerator(ReplyGeneratorProtocol):
    """Resposta determinística por tipo de agente (OPENAI_ENABLED=false)."""

    def __init__(self, replies: dict[AgentType, str] | None = None) -> None:
        self._replies = {**_CANNED_REPLIES, **(replies or {})}

    async def generate(self, request: ReplyRequest) -> str:
        return self._replies.get(request.agent_type, "Obrigado pela mensagem!")
