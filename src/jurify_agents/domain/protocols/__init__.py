"""Re-exports dos Protocolos de domínio para uso por Application."""

from __future__ import annotations

from jurify_agents.domain.protocols.agent_store import AgentProfileStoreProtocol
from jurify_agents.domain.protocols.lead_status import LeadStatusReader
from jurify_agents.domain.protocols.reply_generator import (
    HistoryEntry,
    MalformedReplyError,
    ReplyGenerationError,
    ReplyGeneratorProtocol,
    ReplyRequest,
)
from jurify_agents.domain.protocols.session_repository import SessionRepositoryProtocol

__all__ = [
    "AgentProfileStoreProtocol",
    "HistoryEntry",
    "LeadStatusReader",
    "MalformedReplyError",
    "ReplyGenerationError",
    "ReplyGeneratorProtocol",
    "ReplyRequest",
    "SessionRepositoryProtocol",
]
