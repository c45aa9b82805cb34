"""Enums de domínio: tipos de agente, status de sessão, canais e condições."""

from __future__ import annotations

from enum import StrEnum


class AgentType(StrEnum):
    """Tipos de agente configuráveis por tenant (coluna `tipo_agente`)."""

    SDR = "sdr"
    CLOSER = "closer"
    CS = "customer_success"


class SessionStatus(StrEnum):
    """Status de uma LeadSession."""

    ACTIVE = "active"
    QUALIFIED = "qualified"
    ESCALATED = "escalated"
    CLOSED = "closed"
    ABANDONED = "abandoned"


TERMINAL_STATUSES = frozenset({SessionStatus.CLOSED, SessionStatus.ABANDONED})
"""Status que encerram a sessão (sem transições posteriores)."""


class Channel(StrEnum):
    """Canais de origem de um lead."""

    CHAT = "chat"
    WHATSAPP = "whatsapp"
    WEB = "web"
    TEST = "test"
    EMAIL = "email"
    PHONE = "phone"
    PLAYGROUND = "playground"


class RuleCondition(StrEnum):
    """Condição (tag) de uma regra de escalonamento."""

    LEAD_QUALIFIED = "lead_qualified"
    """SDR identificou interesse real: handoff para o Closer."""

    CONTRACT_SIGNED = "contract_signed"
    """Closer fechou o contrato: handoff para Customer Success."""

    CUSTOM = "custom"
    """Regra configurada livremente pelo tenant."""


class InteractionKind(StrEnum):
    """Tipo de registro no log de interações."""

    MESSAGE = "message"
    CLOSED = "closed"
    ABANDONED = "abandoned"
