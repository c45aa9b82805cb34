"""Leitura opcional do status de leads no CRM (fora deste serviço)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

# Status do CRM que contam como conversão / conversa ativa
CONVERSION_LEAD_STATUSES = frozenset({"contrato_assinado", "em_atendimento"})
ACTIVE_LEAD_STATUSES = frozenset({"em_qualificacao", "proposta_enviada"})


class LeadStatusReader(ABC):
    """Consulta status atuais de leads de um tenant."""

    @abstractmethod
    async def statuses(self, tenant_id: str, lead_ids: Iterable[str]) -> dict[str, str]:
        """Mapa lead_id → status (leads desconhecidos são omitidos)."""
