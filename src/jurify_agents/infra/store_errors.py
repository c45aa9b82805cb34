"""Erros de infraestrutura dos stores (falhas de driver, não de domínio)."""

from __future__ import annotations


class SessionStoreError(Exception):
    """Falha ao ler ou gravar sessões/interações no backend."""


class AgentStoreError(Exception):
    """Falha ao ler ou gravar perfis de agentes no backend."""
