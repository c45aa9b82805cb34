"""Configurações da aplicação via variáveis de ambiente.

Todas as configurações são carregadas de env vars ou Secret Manager.
Nunca hardcode secrets ou valores sensíveis.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict

from jurify_agents.infra.secrets import create_secret_provider
from jurify_agents.observability.logging import get_logger

# Limites aceitos para o timeout da geração de resposta (segundos)
REPLY_TIMEOUT_MIN_SECONDS: float = 10.0
REPLY_TIMEOUT_MAX_SECONDS: float = 30.0


class Settings(BaseSettings):
    """Configurações lidas do ambiente."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    # Aplicação
    service_name: str = "jurify_agents"
    version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "json"  # json | text
    correlation_id_header: str = "X-Correlation-ID"

    # Backends de persistência
    agent_store_backend: str = "memory"  # memory | firestore
    session_store_backend: str = "memory"  # memory | redis | firestore
    redis_url: str | None = None
    gcp_project: str | None = None
    firestore_project_id: str | None = None
    firestore_database_id: str = "(default)"
    agents_collection: str = "agentes_ia"
    sessions_collection: str = "lead_sessions"
    interactions_collection: str = "lead_interactions"

    # Roteamento entre agentes
    entry_agent_type: str = "sdr"  # tipo que recebe a primeira mensagem do lead
    keyword_saturation: int = 2  # matches distintos para confiança 1.0
    default_max_interactions: int = 50
    session_write_max_attempts: int = 5  # retries por conflito de escrita (CAS)
    inactivity_window_minutes: int = 1440  # política de abandono (scheduler externo)
    history_max_entries: int = 20  # turnos de contexto enviados ao LLM

    # Geração de resposta (LLM externo)
    openai_enabled: bool = False  # Feature flag (fail-safe: false)
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    reply_timeout_seconds: float = 20.0
    reply_max_retries: int = 2
    reply_backoff_base_seconds: float = 0.5
    reply_backoff_max_seconds: float = 4.0
    reply_circuit_breaker_enabled: bool = False
    reply_circuit_breaker_fail_max: int = 5
    reply_circuit_breaker_reset_timeout_seconds: float = 60.0
    reply_circuit_breaker_half_open_max_calls: int = 1

    # Texto genérico exibido ao lead quando o pipeline falha
    fallback_reply_text: str = (
        "Desculpe, não consegui responder agora. Pode tentar novamente em instantes?"
    )

    @property
    def is_production(self) -> bool:
        """Retorna True se ambiente é produção."""
        return self.environment.lower() in ("production", "prod")

    @property
    def is_staging(self) -> bool:
        """Retorna True se ambiente é staging."""
        return self.environment.lower() in ("staging", "stage")

    @property
    def is_development(self) -> bool:
        """Retorna True se ambiente é desenvolvimento."""
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def firestore_project(self) -> str | None:
        return self.firestore_project_id or self.gcp_project

    def validate_session_store_config(self) -> list[str]:
        """Valida backend do repositório de sessões/interações.

        Em staging/prod, memory é proibido (instâncias stateless).
        """
        errors: list[str] = []
        backend = self.session_store_backend.lower()

        valid_backends = {"memory", "redis", "firestore"}
        if backend not in valid_backends:
            errors.append(
                f"SESSION_STORE_BACKEND '{backend}' inválido. Valores válidos: {valid_backends}"
            )

        if backend == "memory" and (self.is_staging or self.is_production):
            errors.append(
                "SESSION_STORE_BACKEND=memory é proibido em staging/production. "
                "Use 'redis' ou 'firestore'."
            )
        if backend == "redis" and not self.redis_url:
            errors.append("SESSION_STORE_BACKEND=redis requer REDIS_URL configurado")
        if backend == "firestore" and not self.firestore_project:
            errors.append(
                "SESSION_STORE_BACKEND=firestore requer FIRESTORE_PROJECT_ID ou GCP_PROJECT"
            )
        return errors

    def validate_agent_store_config(self) -> list[str]:
        """Valida backend do store de perfis de agentes."""
        errors: list[str] = []
        backend = self.agent_store_backend.lower()
        if backend not in {"memory", "firestore"}:
            errors.append("AGENT_STORE_BACKEND inválido: use memory | firestore")
        if backend == "memory" and (self.is_staging or self.is_production):
            errors.append("AGENT_STORE_BACKEND=memory é proibido em staging/production")
        if backend == "firestore" and not self.firestore_project:
            errors.append(
                "AGENT_STORE_BACKEND=firestore requer FIRESTORE_PROJECT_ID ou GCP_PROJECT"
            )
        return errors

    def validate_reply_generation(self) -> list[str]:
        """Valida configuração da chamada externa de geração de resposta."""
        errors: list[str] = []
        if self.openai_enabled and not self.openai_api_key:
            errors.append("OPENAI_ENABLED=true requer OPENAI_API_KEY configurado")
        if not REPLY_TIMEOUT_MIN_SECONDS <= self.reply_timeout_seconds <= REPLY_TIMEOUT_MAX_SECONDS:
            errors.append(
                "REPLY_TIMEOUT_SECONDS deve estar entre "
                f"{REPLY_TIMEOUT_MIN_SECONDS:g} e {REPLY_TIMEOUT_MAX_SECONDS:g}"
            )
        if self.reply_max_retries < 0:
            errors.append("REPLY_MAX_RETRIES deve ser >= 0")
        if self.reply_backoff_base_seconds < 0:
            errors.append("REPLY_BACKOFF_BASE_SECONDS deve ser >= 0")
        return errors

    def validate_routing(self) -> list[str]:
        """Valida parâmetros de roteamento e concorrência."""
        from jurify_agents.domain.enums import AgentType

        errors: list[str] = []
        try:
            AgentType(self.entry_agent_type)
        except ValueError:
            errors.append(f"ENTRY_AGENT_TYPE '{self.entry_agent_type}' desconhecido")
        if self.keyword_saturation < 1:
            errors.append("KEYWORD_SATURATION deve ser >= 1")
        if self.default_max_interactions < 1:
            errors.append("DEFAULT_MAX_INTERACTIONS deve ser >= 1")
        if self.session_write_max_attempts < 1:
            errors.append("SESSION_WRITE_MAX_ATTEMPTS deve ser >= 1")
        if self.history_max_entries < 0:
            errors.append("HISTORY_MAX_ENTRIES deve ser >= 0")
        if self.inactivity_window_minutes < 1:
            errors.append("INACTIVITY_WINDOW_MINUTES deve ser >= 1")
        return errors

    def validate_all(self) -> list[str]:
        """Agrega todas as validações (usado no startup da aplicação)."""
        return (
            self.validate_session_store_config()
            + self.validate_agent_store_config()
            + self.validate_reply_generation()
            + self.validate_routing()
        )

    def model_post_init(self, __context: Any) -> None:
        """Carrega OPENAI_API_KEY do Secret Manager em staging/production.

        - Nunca loga valores de secrets
        - Fail-closed em produção se o carregamento falhar
        """
        logger: logging.Logger = get_logger(__name__)

        if not (self.is_staging or self.is_production):
            return

        # Testes com environment=staging/prod não devem chamar o Secret Manager real.
        if os.getenv("PYTEST_CURRENT_TEST"):
            logger.info(
                "Pulando Secret Manager em ambiente de teste controlado",
                extra={"environment": self.environment},
            )
            return

        if self.openai_api_key or not self.openai_enabled:
            return

        project_id = os.getenv("GOOGLE_CLOUD_PROJECT") or self.gcp_project
        if not project_id:
            raise RuntimeError("GOOGLE_CLOUD_PROJECT obrigatório em staging/production")

        provider = create_secret_provider(backend="secret_manager", project_id=project_id)
        try:
            self.openai_api_key = provider.get_secret("OPENAI_API_KEY")
        except RuntimeError as e:
            logger.error(
                "Falha ao carregar OPENAI_API_KEY do Secret Manager",
                extra={"environment": self.environment, "error": type(e).__name__},
            )
            raise

        logger.info(
            "Secret carregado do Secret Manager",
            extra={"secret_name": "OPENAI_API_KEY", "environment": self.environment},
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Retorna uma instância cacheada de Settings."""
    return Settings()
