# /shopgenie/utils/circuit_breaker.py

import asyncio
import time
import logging
from enum import Enum
from typing import Any, Callable, Optional

from shopgenie.utils.metrics import circuit_breaker_transitions

logger = logging.getLogger(__name__)

# Breakers guard the outbound collaborators of a conversation: the intent
# classifier (in-process state) and the WhatsApp Graph API (state shared
# through Redis so every worker stops sending at the same time).


class CircuitOpenError(Exception):
    """Raised when a call is blocked because the breaker is OPEN."""


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


def _record_transition(service_name: str, state: CircuitState) -> None:
    circuit_breaker_transitions.labels(service=service_name, state=state.value).inc()
    log = logger.error if state == CircuitState.OPEN else logger.info
    log(f"Circuit breaker for '{service_name}' is now {state.value.upper()}")


class CircuitBreaker:
    """Per-process breaker for a named collaborator."""

    def __init__(self, service_name: str, failure_threshold: int = 5, timeout: int = 60, success_threshold: int = 3):
        self.service_name = service_name
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.success_threshold = success_threshold
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.opened_at: Optional[float] = None
        self._lock = asyncio.Lock()

    async def _transition(self, state: CircuitState) -> None:
        self.state = state
        self.success_count = 0
        if state == CircuitState.OPEN:
            self.opened_at = time.time()
        elif state == CircuitState.CLOSED:
            self.failure_count = 0
            self.opened_at = None
        _record_transition(self.service_name, state)

    async def call(self, func: Callable, *args: Any, **kwargs: Any) -> Any:
        async with self._lock:
            if self.state == CircuitState.OPEN:
                if self.opened_at is not None and time.time() - self.opened_at >= self.timeout:
                    await self._transition(CircuitState.HALF_OPEN)
                else:
                    raise CircuitOpenError(f"Circuit breaker is OPEN for {self.service_name}")
        try:
            result = await func(*args, **kwargs)
        except Exception:
            await self._on_failure()
            raise
        await self._on_success()
        return result

    async def _on_success(self) -> None:
        async with self._lock:
            if self.state != CircuitState.HALF_OPEN:
                self.failure_count = 0
                return
            self.success_count += 1
            if self.success_count >= self.success_threshold:
                await self._transition(CircuitState.CLOSED)

    async def _on_failure(self) -> None:
        async with self._lock:
            self.failure_count += 1
            # Any failure while half-open reopens
            if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
                await self._transition(CircuitState.OPEN)


class RedisCircuitBreaker:
    """
    Breaker whose state lives in Redis under `cb:<service>:*` keys, so all
    workers agree on whether a collaborator is reachable. Without a Redis
    client calls pass straight through.
    """

    def __init__(self, redis_client: Any, service_name: str, failure_threshold: int = 5, timeout: int = 60, success_threshold: int = 3):
        self.redis = redis_client
        self.service_name = service_name
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.success_threshold = success_threshold
        prefix = f"cb:{service_name}"
        self.state_key = f"{prefix}:state"
        self.failure_key = f"{prefix}:failures"
        self.success_key = f"{prefix}:successes"
        self.opened_at_key = f"{prefix}:opened_at"

    async def call(self, func: Callable, *args: Any, **kwargs: Any) -> Any:
        if not self.redis:
            return await func(*args, **kwargs)

        if await self.is_open():
            raise CircuitOpenError(f"Circuit breaker is OPEN for {self.service_name}")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            await self._on_failure()
            raise
        await self._on_success()
        return result

    async def is_open(self) -> bool:
        """OPEN until the timeout has passed since opening; then the next call runs half-open."""
        if not self.redis:
            return False
        try:
            if await self._get_state() != CircuitState.OPEN:
                return False
            opened_at = await self.redis.get(self.opened_at_key)
            if opened_at is None or time.time() - float(opened_at) >= self.timeout:
                await self._set_state(CircuitState.HALF_OPEN)
                return False
            return True
        except Exception as e:
            logger.error(f"Could not read circuit breaker state for {self.service_name}: {e}")
            return True

    async def _get_state(self) -> CircuitState:
        raw = await self.redis.get(self.state_key)
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            return CircuitState(raw) if raw else CircuitState.CLOSED
        except ValueError:
            return CircuitState.CLOSED

    async def _set_state(self, state: CircuitState) -> None:
        await self.redis.set(self.state_key, state.value, ex=self.timeout * 2)
        await self.redis.delete(self.success_key)
        if state == CircuitState.OPEN:
            await self.redis.set(self.opened_at_key, str(time.time()), ex=self.timeout * 2)
        elif state == CircuitState.CLOSED:
            await self.redis.delete(self.failure_key, self.opened_at_key)
        _record_transition(self.service_name, state)

    async def _on_success(self) -> None:
        try:
            if await self._get_state() != CircuitState.HALF_OPEN:
                await self.redis.delete(self.failure_key)
                return
            if await self.redis.incr(self.success_key) >= self.success_threshold:
                await self._set_state(CircuitState.CLOSED)
        except Exception as e:
            logger.error(f"Circuit breaker success bookkeeping failed for {self.service_name}: {e}")

    async def _on_failure(self) -> None:
        try:
            failures = await self.redis.incr(self.failure_key)
            await self.redis.expire(self.failure_key, self.timeout * 2)
            if await self._get_state() == CircuitState.HALF_OPEN or failures >= self.failure_threshold:
                await self._set_state(CircuitState.OPEN)
        except Exception as e:
            logger.error(f"Circuit breaker failure bookkeeping failed for {self.service_name}: {e}")
