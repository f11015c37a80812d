"""Tests for the circuit breaker guarding n8n and OpenAI calls."""

import threading
from unittest.mock import patch

import pytest

from clixen.clients.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOpen,
    CircuitState,
    breaker_states,
    get_breaker,
    run_with_timeout,
)


def _open(cb: CircuitBreaker) -> None:
    for _ in range(3):
        cb.record_failure()


class TestStates:

    def test_opens_after_three_failures(self):
        cb = CircuitBreaker("n8n")
        cb.record_failure()
        cb.record_failure()
        assert cb.state == CircuitState.CLOSED
        cb.record_failure()
        assert cb.state == CircuitState.OPEN

    def test_success_resets_count(self):
        cb = CircuitBreaker("n8n")
        cb.record_failure()
        cb.record_failure()
        cb.record_success()
        cb.record_failure()
        assert cb.state == CircuitState.CLOSED

    def test_open_blocks_with_retry_after(self):
        cb = CircuitBreaker("n8n", cooldown_seconds=60)
        _open(cb)
        with pytest.raises(CircuitBreakerOpen) as exc:
            cb.check()
        assert exc.value.endpoint == "n8n"
        assert 0 < exc.value.retry_after <= 60

    def test_half_open_after_cooldown(self):
        cb = CircuitBreaker("n8n", cooldown_seconds=60)
        with patch("clixen.clients.circuit_breaker.time.monotonic", return_value=1000.0):
            _open(cb)
        with patch("clixen.clients.circuit_breaker.time.monotonic", return_value=1061.0):
            cb.check()
        assert cb.state == CircuitState.HALF_OPEN

        cb.record_success()
        assert cb.state == CircuitState.CLOSED

    def test_failed_probe_reopens(self):
        cb = CircuitBreaker("openai", cooldown_seconds=60)
        with patch("clixen.clients.circuit_breaker.time.monotonic", return_value=1000.0):
            _open(cb)
        with patch("clixen.clients.circuit_breaker.time.monotonic", return_value=1061.0):
            cb.check()
            cb.record_failure()
        assert cb.state == CircuitState.OPEN


class TestRegistry:

    def test_one_breaker_per_label(self):
        assert get_breaker("n8n") is get_breaker("n8n")
        assert get_breaker("n8n") is not get_breaker("openai")

    def test_states_snapshot(self):
        _open(get_breaker("n8n"))
        get_breaker("openai")
        assert breaker_states() == {"n8n": "open", "openai": "closed"}


class TestRunWithTimeout:

    def test_returns_result(self):
        assert run_with_timeout(lambda: 42, timeout=5, label="openai") == 42
        assert get_breaker("openai").state == CircuitState.CLOSED

    def test_timeout_records_failure(self):
        release = threading.Event()
        try:
            with pytest.raises(TimeoutError):
                run_with_timeout(lambda: release.wait(5), timeout=0.05, label="openai")
        finally:
            release.set()
        assert get_breaker("openai")._failure_count == 1

    def test_exception_propagates(self):
        def failing():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            run_with_timeout(failing, timeout=5, label="openai")
        assert get_breaker("openai")._failure_count == 1

    def test_open_circuit_blocks_call(self):
        _open(get_breaker("openai"))
        called = []
        with pytest.raises(CircuitBreakerOpen):
            run_with_timeout(lambda: called.append(1), timeout=5, label="openai")
        assert called == []
