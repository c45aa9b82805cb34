"""Fábrica da aplicação FastAPI.

Uso com uvicorn: `uvicorn jurify_agents.api.app:create_app --factory`.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from jurify_agents.ai.reply_generator import CannedReplyGenerator, OpenAIReplyGenerator
from jurify_agents.api.routes import router
from jurify_agents.application.dispatcher import LeadDispatcher
from jurify_agents.application.stats import StatsAggregator
from jurify_agents.config.settings import Settings, get_settings
from jurify_agents.domain.errors import LeadProcessingError
from jurify_agents.domain.protocols import (
    AgentProfileStoreProtocol,
    LeadStatusReader,
    ReplyGeneratorProtocol,
    SessionRepositoryProtocol,
)
from jurify_agents.infra.store_errors import AgentStoreError, SessionStoreError
from jurify_agents.infra.store_factory import create_agent_store, create_session_repository
from jurify_agents.observability.logging import configure_logging, get_logger
from jurify_agents.observability.middleware import CorrelationIdMiddleware

logger = get_logger(__name__)

# kind → status HTTP
ERROR_STATUS: dict[str, int] = {
    "agent_not_configured": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "invalid_agent_configuration": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "agent_invocation_failed": status.HTTP_503_SERVICE_UNAVAILABLE,
    "session_write_conflict": status.HTTP_409_CONFLICT,
    "session_closed": status.HTTP_409_CONFLICT,
    "session_not_found": status.HTTP_404_NOT_FOUND,
    "agent_not_found": status.HTTP_404_NOT_FOUND,
}


def _create_redis_client(redis_url: str | None):
    """Cliente `redis.asyncio` (o repositório usa WATCH/MULTI assíncrono)."""
    if not redis_url:
        return None
    from redis import asyncio as redis_asyncio

    return redis_asyncio.from_url(redis_url)


def _create_firestore_client(settings: Settings):
    from google.cloud import firestore

    return firestore.Client(
        project=settings.firestore_project,
        database=settings.firestore_database_id,
    )


def _create_reply_generator(settings: Settings) -> ReplyGeneratorProtocol:
    if settings.openai_enabled:
        logger.info("reply_generator_selected", extra={"backend": "openai"})
        return OpenAIReplyGenerator(api_key=settings.openai_api_key, model=settings.openai_model)
    logger.warning("reply_generator_canned_dev_only")
    return CannedReplyGenerator()


def _register_error_handlers(app: FastAPI, settings: Settings) -> None:
    def _body(kind: str, retryable: bool) -> dict[str, Any]:
        return {
            "error": kind,
            "retryable": retryable,
            "fallback_reply": settings.fallback_reply_text,
        }

    async def lead_error_handler(request: Request, exc: LeadProcessingError) -> JSONResponse:
        code = ERROR_STATUS.get(exc.kind, status.HTTP_400_BAD_REQUEST)
        logger.warning(
            "lead_request_failed",
            extra={"error": exc.kind, "status_code": code, "path": request.url.path},
        )
        return JSONResponse(status_code=code, content=_body(exc.kind, exc.retryable))

    async def store_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "store_unavailable",
            extra={"error_type": type(exc).__name__, "path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=_body("store_unavailable", True),
        )

    app.add_exception_handler(LeadProcessingError, lead_error_handler)
    app.add_exception_handler(SessionStoreError, store_error_handler)
    app.add_exception_handler(AgentStoreError, store_error_handler)


def create_app(
    settings: Settings | None = None,
    *,
    agent_store: AgentProfileStoreProtocol | None = None,
    session_repository: SessionRepositoryProtocol | None = None,
    reply_generator: ReplyGeneratorProtocol | None = None,
    lead_status_reader: LeadStatusReader | None = None,
) -> FastAPI:
    """Cria a aplicação; stores/gerador podem ser injetados (testes, scripts)."""
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.service_name, settings.log_format)

    config_errors = settings.validate_all()
    if config_errors:
        raise ValueError(
            f"Configuração inválida para '{settings.environment}': " + "; ".join(config_errors)
        )

    firestore_client = None
    needs_firestore = "firestore" in {
        settings.session_store_backend.lower(),
        settings.agent_store_backend.lower(),
    }
    if needs_firestore and (agent_store is None or session_repository is None):
        firestore_client = _create_firestore_client(settings)

    if session_repository is None:
        redis_client = None
        if settings.session_store_backend.lower() == "redis":
            redis_client = _create_redis_client(settings.redis_url)
        session_repository = create_session_repository(
            settings.session_store_backend,
            redis_client=redis_client,
            firestore_client=firestore_client,
            sessions_collection=settings.sessions_collection,
            interactions_collection=settings.interactions_collection,
        )
    if agent_store is None:
        agent_store = create_agent_store(
            settings.agent_store_backend,
            firestore_client=firestore_client,
            collection=settings.agents_collection,
        )

    app = FastAPI(title=settings.service_name, version=settings.version)
    app.add_middleware(CorrelationIdMiddleware)
    app.include_router(router)
    _register_error_handlers(app, settings)

    app.state.settings = settings
    app.state.agent_store = agent_store
    app.state.session_repository = session_repository
    app.state.dispatcher = LeadDispatcher(
        agent_store,
        session_repository,
        reply_generator or _create_reply_generator(settings),
        settings=settings,
    )
    app.state.stats = StatsAggregator(session_repository, lead_status_reader)

    logger.info(
        "app_initialized",
        extra={
            "environment": settings.environment,
            "session_store_backend": settings.session_store_backend,
            "agent_store_backend": settings.agent_store_backend,
        },
    )
    return app
