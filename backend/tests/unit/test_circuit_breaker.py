# backend/tests/unit/test_circuit_breaker.py

import pytest
from unittest.mock import AsyncMock

from shopgenie.utils.circuit_breaker import CircuitBreaker, CircuitOpenError, CircuitState, RedisCircuitBreaker


@pytest.mark.asyncio
async def test_opens_after_threshold_and_blocks_calls():
    breaker = CircuitBreaker("openai", failure_threshold=2)
    failing = AsyncMock(side_effect=RuntimeError("upstream down"))

    for _ in range(2):
        with pytest.raises(RuntimeError):
            await breaker.call(failing)

    assert breaker.state == CircuitState.OPEN
    with pytest.raises(CircuitOpenError):
        await breaker.call(failing)
    assert failing.await_count == 2


@pytest.mark.asyncio
async def test_half_open_closes_after_successes():
    breaker = CircuitBreaker("openai", failure_threshold=1, timeout=0, success_threshold=2)
    with pytest.raises(RuntimeError):
        await breaker.call(AsyncMock(side_effect=RuntimeError("timeout")))

    ok = AsyncMock(return_value="ok")
    assert await breaker.call(ok) == "ok"
    assert breaker.state == CircuitState.HALF_OPEN
    await breaker.call(ok)

    assert breaker.state == CircuitState.CLOSED
    assert breaker.failure_count == 0


@pytest.mark.asyncio
async def test_failure_while_half_open_reopens():
    breaker = CircuitBreaker("openai", failure_threshold=3, timeout=0)
    breaker.state = CircuitState.OPEN
    breaker.opened_at = 0.0

    with pytest.raises(RuntimeError):
        await breaker.call(AsyncMock(side_effect=RuntimeError("still down")))

    assert breaker.state == CircuitState.OPEN


@pytest.mark.asyncio
async def test_redis_breaker_without_redis_passes_through():
    breaker = RedisCircuitBreaker(None, "whatsapp")
    call = AsyncMock(return_value="sent")

    assert await breaker.call(call, "+919876543210") == "sent"
    assert await breaker.is_open() is False
    call.assert_awaited_once_with("+919876543210")
