"""Circuit breaker para a fronteira de geração de resposta.

Quando o provedor de LLM está fora, falhar rápido libera o lock da sessão em
vez de segurar o lead durante todos os retries.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from jurify_agents.config.settings import Settings

CircuitState = Literal["closed", "open", "half_open"]


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Parâmetros do breaker (desabilitado por padrão)."""

    enabled: bool = False
    fail_max: int = 5
    reset_timeout_seconds: float = 60.0
    half_open_max_calls: int = 1

    @classmethod
    def from_settings(cls, settings: Settings) -> CircuitBreakerConfig:
        return cls(
            enabled=settings.reply_circuit_breaker_enabled,
            fail_max=settings.reply_circuit_breaker_fail_max,
            reset_timeout_seconds=settings.reply_circuit_breaker_reset_timeout_seconds,
            half_open_max_calls=settings.reply_circuit_breaker_half_open_max_calls,
        )


class CircuitBreaker:
    """Breaker assíncrono closed → open → half_open → closed."""

    def __init__(
        self,
        config: CircuitBreakerConfig,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._config = config
        self._clock = clock or time.monotonic
        self._lock = asyncio.Lock()
        self._state: CircuitState = "closed"
        self._failures = 0
        self._opened_at: float | None = None
        self._probes = 0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failures

    async def allow_request(self) -> bool:
        """True se a chamada pode seguir.

        Aberto bloqueia até `reset_timeout_seconds`; depois libera no máximo
        `half_open_max_calls` chamadas de prova.
        """
        if not self._config.enabled:
            return True

        async with self._lock:
            if self._state == "open":
                opened_at = self._opened_at if self._opened_at is not None else self._clock()
                if self._clock() - opened_at < self._config.reset_timeout_seconds:
                    return False
                self._state = "half_open"
                self._probes = 0

            if self._state == "half_open":
                if self._probes >= self._config.half_open_max_calls:
                    return False
                self._probes += 1
            return True

    async def record_success(self) -> None:
        if not self._config.enabled:
            return
        async with self._lock:
            self._close()

    async def record_failure(self) -> CircuitState:
        """Conta uma falha; abre ao atingir `fail_max` ou se falhar em half_open."""
        if not self._config.enabled:
            return "closed"

        async with self._lock:
            self._failures += 1
            if self._state == "half_open" or self._failures >= self._config.fail_max:
                self._state = "open"
                self._opened_at = self._clock()
                self._probes = 0
            return self._state

    def _close(self) -> None:
        self._state = "closed"
        self._failures = 0
        self._opened_at = None
        self._probes = 0
