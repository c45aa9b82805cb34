"""Taxonomia de erros do pipeline de leads.

Todos os erros de `LeadProcessingError` são recuperáveis pelo chamador
(retry ou ação do operador). `SessionInvariantError` é erro de programação
e nunca deve ser mascarado.
"""

from __future__ import annotations


class LeadProcessingError(Exception):
    """Base dos erros tipados devolvidos ao chamador."""

    kind: str = "lead_processing_error"
    retryable: bool = False

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.context = context


class AgentNotConfigured(LeadProcessingError):
    """Nenhum agente ativo do tipo exigido pela sessão."""

    kind = "agent_not_configured"
    retryable = False


class AgentInvocationFailed(LeadProcessingError):
    """Geração externa falhou após retries/timeout (transitório)."""

    kind = "agent_invocation_failed"
    retryable = True


class SessionWriteConflict(LeadProcessingError):
    """Outro writer alterou a mesma sessão (CAS falhou)."""

    kind = "session_write_conflict"
    retryable = True


class EscalationTargetMissing(LeadProcessingError):
    """Regra disparou mas não existe agente ativo do tipo destino."""

    kind = "escalation_target_missing"
    retryable = False


class SessionClosed(LeadProcessingError):
    """Mensagem recebida para sessão em estado terminal."""

    kind = "session_closed"
    retryable = False


class AgentProfileNotFound(LeadProcessingError):
    """Agente não existe para o tenant."""

    kind = "agent_not_found"
    retryable = False


class InvalidAgentConfiguration(LeadProcessingError):
    """Configuração de agente malformada ou ambígua."""

    kind = "invalid_agent_configuration"
    retryable = False


class SessionNotFound(LeadProcessingError):
    """Operação de ciclo de vida em sessão inexistente."""

    kind = "session_not_found"
    retryable = False


class SessionInvariantError(AssertionError):
    """Violação de invariante interna da sessão (bug)."""
