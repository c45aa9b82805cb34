"""Testes dos geradores de resposta e da montagem de prompts."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APITimeoutError

from jurify_agents.ai.prompts import build_messages, build_system_prompt
from jurify_agents.ai.reply_generator import CannedReplyGenerator, OpenAIReplyGenerator
from jurify_agents.domain.enums import AgentType
from jurify_agents.domain.protocols import (
    HistoryEntry,
    MalformedReplyError,
    ReplyGenerationError,
    ReplyRequest,
)


def _request(**overrides) -> ReplyRequest:
    data = {
        "agent_id": "sdr-1",
        "agent_type": AgentType.SDR,
        "prompt_base": "Você é um assistente do escritório.",
        "personality": "Cordial",
        "legal_area": "trabalhista",
        "specialization_tags": ("rescisao", "horas extras"),
        "inbound_message": "Fui demitido sem justa causa",
    }
    data.update(overrides)
    return ReplyRequest(**data)


def _completion(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _client(create: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = create
    return client


class TestPrompts:
    def test_system_prompt_carries_agent_configuration(self) -> None:
        prompt = build_system_prompt(_request())
        assert prompt.startswith("Você é um assistente do escritório.")
        assert "Personalidade: Cordial" in prompt
        assert "Área jurídica: trabalhista" in prompt
        assert "rescisao, horas extras" in prompt
        assert "qualificar o lead" in prompt

    def test_empty_prompt_base_and_area(self) -> None:
        prompt = build_system_prompt(_request(prompt_base="  ", legal_area=""))
        assert prompt.startswith("## Perfil do agente")
        assert "Área jurídica: não informada" in prompt

    def test_messages_alternate_history(self) -> None:
        history = (HistoryEntry("oi", "olá!"), HistoryEntry("quero ajuda", "claro"))
        messages = build_messages(_request(history=history))

        assert [m["role"] for m in messages] == [
            "system",
            "user",
            "assistant",
            "user",
            "assistant",
            "user",
        ]
        assert messages[1]["content"] == "oi"
        assert messages[-1]["content"] == "Fui demitido sem justa causa"


class TestOpenAIReplyGenerator:
    @pytest.mark.asyncio
    async def test_returns_stripped_content(self) -> None:
        create = AsyncMock(return_value=_completion("  Entendi, pode detalhar?  "))
        generator = OpenAIReplyGenerator(model="gpt-test", client=_client(create))

        reply = await generator.generate(_request())

        assert reply == "Entendi, pode detalhar?"
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["messages"][0]["role"] == "system"

    @pytest.mark.asyncio
    async def test_empty_content_is_malformed(self) -> None:
        generator = OpenAIReplyGenerator(client=_client(AsyncMock(return_value=_completion(""))))
        with pytest.raises(MalformedReplyError):
            await generator.generate(_request())

    @pytest.mark.asyncio
    async def test_no_choices_is_malformed(self) -> None:
        create = AsyncMock(return_value=SimpleNamespace(choices=[]))
        with pytest.raises(MalformedReplyError):
            await OpenAIReplyGenerator(client=_client(create)).generate(_request())

    @pytest.mark.asyncio
    async def test_api_timeout_wrapped(self) -> None:
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        create = AsyncMock(side_effect=APITimeoutError(request=request))
        generator = OpenAIReplyGenerator(client=_client(create))

        with pytest.raises(ReplyGenerationError, match="APITimeoutError"):
            await generator.generate(_request())


class TestCannedReplyGenerator:
    @pytest.mark.asyncio
    async def test_reply_per_agent_type(self) -> None:
        generator = CannedReplyGenerator({AgentType.CS: "Tudo certo por aqui."})

        sdr = await generator.generate(_request())
        cs = await generator.generate(_request(agent_type=AgentType.CS))

        assert "seu caso" in sdr
        assert cs == "Tudo certo por aqui."
