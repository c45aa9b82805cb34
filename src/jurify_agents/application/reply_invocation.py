"""Invocação da geração de resposta com timeout, retry e circuit breaker."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from jurify_agents.domain.errors import AgentInvocationFailed
from jurify_agents.domain.protocols.reply_generator import (
    ReplyGenerationError,
    ReplyGeneratorProtocol,
    ReplyRequest,
)
from jurify_agents.infra.circuit_breaker import CircuitBreaker
from jurify_agents.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    timeout_seconds: float = 20.0
    max_retries: int = 2
    backoff_base_seconds: float = 0.5
    backoff_max_seconds: float = 4.0


def calculate_backoff(attempt: int, base_seconds: float, max_seconds: float) -> float:
    """Backoff exponencial: (2**attempt) * base, limitado a max."""
    return min((2**attempt) * base_seconds, max_seconds)


async def invoke_with_retry(
    generator: ReplyGeneratorProtocol,
    request: ReplyRequest,
    policy: RetryPolicy,
    breaker: CircuitBreaker | None = None,
    sleep: Sleep = asyncio.sleep,
) -> str:
    """Gera a resposta com até `max_retries + 1` tentativas.

    Cancelamento do chamador não é tratado como falha e propaga.

    Raises:
        AgentInvocationFailed: todas as tentativas falharam ou breaker aberto
    """
    last_error = "unknown"

    for attempt in range(policy.max_retries + 1):
        if breaker is not None and not await breaker.allow_request():
            logger.warning(
                "reply_circuit_open",
                extra={"agent_type": request.agent_type.value, "attempt": attempt + 1},
            )
            raise AgentInvocationFailed(
                "Circuit breaker aberto para geração de resposta",
                agent_id=request.agent_id,
                attempts=attempt,
                reason="circuit_open",
            )

        try:
            reply = await asyncio.wait_for(
                generator.generate(request), timeout=policy.timeout_seconds
            )
        except TimeoutError:
            last_error = "timeout"
        except ReplyGenerationError as e:
            last_error = type(e).__name__
        except Exception as e:  # noqa: BLE001 - falha de cliente fora da família tipada
            last_error = type(e).__name__
        else:
            if breaker is not None:
                await breaker.record_success()
            return reply

        if breaker is not None:
            await breaker.record_failure()
        logger.warning(
            "reply_generation_attempt_failed",
            extra={
                "agent_type": request.agent_type.value,
                "attempt": attempt + 1,
                "max_attempts": policy.max_retries + 1,
                "error_type": last_error,
            },
        )
        if attempt < policy.max_retries:
            await sleep(
                calculate_backoff(
                    attempt, policy.backoff_base_seconds, policy.backoff_max_seconds
                )
            )

    logger.error(
        "reply_generation_failed",
        extra={
            "agent_type": request.agent_type.value,
            "total_attempts": policy.max_retries + 1,
            "error_type": last_error,
        },
    )
    raise AgentInvocationFailed(
        "Geração de resposta falhou após retries",
        agent_id=request.agent_id,
        attempts=policy.max_retries + 1,
        reason=last_error,
    )
