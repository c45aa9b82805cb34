"""LeadDispatcher: processa mensagens de leads através da cadeia de agentes.

Fluxo de `process_lead` (por sessão, sob lock + CAS):
1. idempotência por `message_id`
2. carrega/cria sessão (terminal ⇒ SessionClosed)
3. snapshot do roster do tenant e resolução do agente atual
4. geração da resposta (timeout, retry, breaker)
5. avaliação de escalonamento sobre a resposta
6. transição + commit atômico de sessão e registro

Nada é persistido antes do passo 6; falhas ou cancelamento antes disso não
deixam estado parcial.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import Counter
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TypeVar

from jurify_agents.application.lifecycle import (
    abandon_session,
    apply_turn,
    close_session,
    is_inactive,
    start_session,
)
from jurify_agents.application.reply_invocation import RetryPolicy, invoke_with_retry
from jurify_agents.config.settings import Settings, get_settings
from jurify_agents.domain.enums import AgentType, Channel, InteractionKind
from jurify_agents.domain.errors import (
    AgentNotConfigured,
    EscalationTargetMissing,
    LeadProcessingError,
    SessionClosed,
    SessionNotFound,
    SessionWriteConflict,
)
from jurify_agents.domain.escalation import evaluate
from jurify_agents.domain.interactions import InteractionRecord
from jurify_agents.domain.protocols import (
    AgentProfileStoreProtocol,
    HistoryEntry,
    ReplyGeneratorProtocol,
    ReplyRequest,
    SessionRepositoryProtocol,
)
from jurify_agents.domain.session import LeadSession, SessionKey
from jurify_agents.infra.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from jurify_agents.infra.keyed_lock import KeyedLock
from jurify_agents.observability.logging import get_logger, mask_id
from jurify_agents.observability.middleware import correlation_scope
from jurify_agents.observability.timing import timed

logger: logging.Logger = get_logger(__name__)

T = TypeVar("T")
Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class InboundLead:
    """Mensagem de um lead já normalizada pelo adaptador de canal."""

    lead_id: str
    tenant_id: str
    channel: Channel
    message: str
    message_id: str | None = None

    @property
    def key(self) -> SessionKey:
        return SessionKey(self.tenant_id, self.lead_id, self.channel)


@dataclass(frozen=True, slots=True)
class DispatchResult:
    reply: str
    session: LeadSession
    escalated: bool = False
    duplicate: bool = False
    forced_close: bool = False


class DispatchCounters:
    """Contadores em processo para dashboards (somente leitura fora daqui)."""

    def __init__(self) -> None:
        self.processed = 0
        self.escalated = 0
        self.forced_closed = 0
        self.duplicates = 0
        self.errors: Counter[str] = Counter()

    def record_error(self, kind: str) -> None:
        self.errors[kind] += 1

    def snapshot(self) -> dict[str, object]:
        return {
            "processed": self.processed,
            "escalated": self.escalated,
            "forced_closed": self.forced_closed,
            "duplicates": self.duplicates,
            "errors": dict(self.errors),
        }


class LeadDispatcher:
    """Serviço de roteamento de leads entre agentes (SDR → Closer → CS)."""

    def __init__(
        self,
        agent_store: AgentProfileStoreProtocol,
        session_repository: SessionRepositoryProtocol,
        reply_generator: ReplyGeneratorProtocol,
        settings: Settings | None = None,
        clock: Clock | None = None,
        breaker: CircuitBreaker | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._agents = agent_store
        self._sessions = session_repository
        self._generator = reply_generator
        self._settings = settings or get_settings()
        self._clock = clock or _utc_now
        self._sleep = sleep
        self._breaker = breaker or CircuitBreaker(CircuitBreakerConfig.from_settings(self._settings))
        self._policy = RetryPolicy(
            timeout_seconds=self._settings.reply_timeout_seconds,
            max_retries=self._settings.reply_max_retries,
            backoff_base_seconds=self._settings.reply_backoff_base_seconds,
            backoff_max_seconds=self._settings.reply_backoff_max_seconds,
        )
        self._entry_type = AgentType(self._settings.entry_agent_type)
        self._locks = KeyedLock()
        self._counters = DispatchCounters()

    @property
    def counters(self) -> dict[str, object]:
        return self._counters.snapshot()

    async def process_lead(self, inbound: InboundLead) -> DispatchResult:
        """Processa uma mensagem do lead e retorna a resposta do agente.

        Raises:
            AgentNotConfigured: nenhum agente ativo do tipo atual da sessão
            AgentInvocationFailed: geração falhou após retries (sessão intacta)
            SessionWriteConflict: conflito persistente após as tentativas
            SessionClosed: sessão já encerrada
        """
        with correlation_scope(inbound.message_id or uuid.uuid4().hex):
            return await self._serialized(inbound.key, lambda: self._process_once(inbound))

    async def close_session(self, key: SessionKey, reason: str | None = None) -> LeadSession:
        """Encerra a sessão (resolução pelo CS ou operador)."""

        async def _close() -> LeadSession:
            session = await self._load_for_lifecycle(key)
            updated = close_session(session, self._clock())
            committed = await self._commit(
                session, updated, self._lifecycle_record(updated, InteractionKind.CLOSED)
            )
            logger.info(
                "session_closed",
                extra={**self._log_key(key), "reason": reason or "manual"},
            )
            return committed

        return await self._serialized(key, _close)

    async def abandon_session(self, key: SessionKey) -> LeadSession:
        """Marca a sessão como abandonada (scheduler de inatividade externo)."""

        async def _abandon() -> LeadSession:
            session = await self._load_for_lifecycle(key)
            updated = abandon_session(session, self._clock())
            committed = await self._commit(
                session, updated, self._lifecycle_record(updated, InteractionKind.ABANDONED)
            )
            logger.info("session_abandoned", extra=self._log_key(key))
            return committed

        return await self._serialized(key, _abandon)

    async def abandon_if_inactive(self, key: SessionKey) -> LeadSession:
        """Abandona a sessão só se passou `inactivity_window_minutes` sem atividade.

        Sessões ainda ativas são devolvidas sem alteração.
        """
        window = timedelta(minutes=self._settings.inactivity_window_minutes)

        async def _sweep() -> LeadSession:
            session = await self._load_for_lifecycle(key)
            now = self._clock()
            if not is_inactive(session, window, now):
                return session
            updated = abandon_session(session, now)
            committed = await self._commit(
                session, updated, self._lifecycle_record(updated, InteractionKind.ABANDONED)
            )
            logger.info(
                "session_abandoned",
                extra={**self._log_key(key), "inactivity_window_minutes": self._settings.inactivity_window_minutes},
            )
            return committed

        return await self._serialized(key, _sweep)

    async def get_session(self, key: SessionKey) -> LeadSession | None:
        return await self._sessions.load(key)

    async def _serialized(self, key: SessionKey, operation: Callable[[], Awaitable[T]]) -> T:
        """Executa `operation` sob o lock da sessão, refazendo-a em conflito de CAS."""
        max_attempts = self._settings.session_write_max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                async with self._locks.hold(key):
                    return await operation()
            except SessionWriteConflict as e:
                if attempt >= max_attempts:
                    self._counters.record_error(e.kind)
                    logger.error(
                        "session_write_conflict_exhausted",
                        extra={**self._log_key(key), "attempts": attempt},
                    )
                    raise
                logger.warning(
                    "session_write_conflict_retry",
                    extra={**self._log_key(key), "attempt": attempt},
                )
            except LeadProcessingError as e:
                self._counters.record_error(e.kind)
                raise

        raise AssertionError("unreachable")  # pragma: no cover

    async def _process_once(self, inbound: InboundLead) -> DispatchResult:
        key = inbound.key

        if inbound.message_id:
            existing = await self._sessions.find_interaction(key, inbound.message_id)
            if existing is not None:
                return await self._duplicate_result(key, existing)

        now = self._clock()
        session = await self._sessions.load(key)
        if session is None:
            session = start_session(key, self._entry_type, now)
        elif session.is_terminal:
            raise SessionClosed(
                f"Sessão encerrada ({session.status})", status=session.status.value
            )

        roster = await self._agents.snapshot(key.tenant_id)
        agent = roster.resolve(session.current_agent_type)
        if agent is None:
            logger.error(
                "agent_not_configured",
                extra={**self._log_key(key), "agent_type": session.current_agent_type.value},
            )
            raise AgentNotConfigured(
                f"Nenhum agente ativo do tipo {session.current_agent_type}",
                tenant_id=key.tenant_id,
                agent_type=session.current_agent_type.value,
            )

        request = ReplyRequest(
            agent_id=agent.id,
            agent_type=agent.type,
            prompt_base=agent.prompt_base,
            personality=agent.personality,
            legal_area=agent.legal_area,
            specialization_tags=agent.specialization_tags,
            inbound_message=inbound.message,
            history=await self._history(key) if session.version else (),
        )

        started = time.perf_counter()
        with timed("reply_generation"):
            reply = await invoke_with_retry(
                self._generator, request, self._policy, self._breaker, self._sleep
            )
        response_time_ms = round((time.perf_counter() - started) * 1000, 2)

        decision = evaluate(
            session.current_agent_type,
            reply,
            agent.escalation_rules,
            saturation=self._settings.keyword_saturation,
        )

        target_available = True
        escalation_error: str | None = None
        if decision.escalate and not roster.has(decision.next_agent_type):
            missing = EscalationTargetMissing(
                f"Nenhum agente ativo do tipo {decision.next_agent_type}",
                tenant_id=key.tenant_id,
                agent_type=decision.next_agent_type,
            )
            target_available = False
            escalation_error = missing.kind
            self._counters.record_error(missing.kind)
            logger.error(
                "escalation_target_missing",
                extra={
                    **self._log_key(key),
                    "from_agent_type": session.current_agent_type.value,
                    "to_agent_type": decision.next_agent_type.value,
                },
            )

        outcome = apply_turn(session, agent, decision, target_available, self._clock())
        matched_rule = decision.matched_rule if outcome.escalated else None
        record = InteractionRecord(
            interaction_id=uuid.uuid4().hex,
            tenant_id=key.tenant_id,
            lead_id=key.lead_id,
            channel=key.channel,
            agent_id=agent.id,
            timestamp=outcome.session.last_activity_at,
            kind=InteractionKind.MESSAGE,
            inbound_message_id=inbound.message_id,
            inbound_text=inbound.message,
            outbound_text=reply,
            escalated=outcome.escalated,
            from_agent_type=session.current_agent_type,
            to_agent_type=outcome.to_agent_type,
            matched_condition=matched_rule.condition.value if matched_rule else None,
            confidence=decision.confidence if decision.escalate else None,
            status_after=outcome.record_status,
            interaction_index=outcome.session.interaction_count,
            sequence=session.version + 1,
            response_time_ms=response_time_ms,
            escalation_error=escalation_error,
        )

        committed = await self._commit(session, outcome.session, record)

        self._counters.processed += 1
        if outcome.escalated:
            self._counters.escalated += 1
        if outcome.forced_close:
            self._counters.forced_closed += 1
            logger.warning(
                "session_forced_close",
                extra={
                    **self._log_key(key),
                    "agent_type": agent.type.value,
                    "max_interactions": agent.max_interactions,
                },
            )

        logger.info(
            "lead_processed",
            extra={
                **self._log_key(key),
                "agent_id": mask_id(agent.id),
                "from_agent_type": session.current_agent_type.value,
                "to_agent_type": committed.current_agent_type.value,
                "escalated": outcome.escalated,
                "confidence": decision.confidence,
                "interaction_count": committed.interaction_count,
                "status": committed.status.value,
            },
        )
        return DispatchResult(
            reply=reply,
            session=committed,
            escalated=outcome.escalated,
            forced_close=outcome.forced_close,
        )

    async def _commit(
        self, before: LeadSession, after: LeadSession, record: InteractionRecord
    ) -> LeadSession:
        # Depois de iniciado, o commit termina mesmo se o chamador cancelar.
        return await asyncio.shield(self._sessions.commit(after, before.version, record))

    async def _duplicate_result(
        self, key: SessionKey, existing: InteractionRecord
    ) -> DispatchResult:
        session = await self._sessions.load(key)
        if session is None:
            raise SessionNotFound("Registro sem sessão correspondente", key=key.storage_id)
        self._counters.duplicates += 1
        logger.info(
            "duplicate_message_ignored",
            extra={**self._log_key(key), "message_id": mask_id(existing.inbound_message_id)},
        )
        return DispatchResult(
            reply=existing.outbound_text,
            session=session,
            escalated=existing.escalated,
            duplicate=True,
        )

    async def _history(self, key: SessionKey) -> tuple[HistoryEntry, ...]:
        limit = self._settings.history_max_entries
        if limit <= 0:
            return ()
        records = await self._sessions.list_interactions(key)
        messages = [r for r in records if r.is_message]
        return tuple(
            HistoryEntry(inbound_text=r.inbound_text, outbound_text=r.outbound_text)
            for r in messages[-limit:]
        )

    async def _load_for_lifecycle(self, key: SessionKey) -> LeadSession:
        session = await self._sessions.load(key)
        if session is None:
            raise SessionNotFound("Sessão inexistente", key=key.storage_id)
        if session.is_terminal:
            raise SessionClosed(
                f"Sessão encerrada ({session.status})", status=session.status.value
            )
        return session

    def _lifecycle_record(self, session: LeadSession, kind: InteractionKind) -> InteractionRecord:
        return InteractionRecord(
            interaction_id=uuid.uuid4().hex,
            tenant_id=session.tenant_id,
            lead_id=session.lead_id,
            channel=session.channel,
            agent_id=session.current_agent_id,
            timestamp=session.last_activity_at,
            kind=kind,
            from_agent_type=session.current_agent_type,
            status_after=session.status,
            interaction_index=session.interaction_count,
            sequence=session.version + 1,
        )

    @staticmethod
    def _log_key(key: SessionKey) -> dict[str, str | None]:
        return {
            "tenant_id": key.tenant_id,
            "lead_id": mask_id(key.lead_id),
            "channel": key.channel.value,
        }
