"""Circuit breakers for the upstream platforms.

One breaker per label (``n8n``, ``openai``). After three consecutive failed
calls the breaker opens and calls fail fast for a minute; the first call
after the cooldown is a probe whose outcome closes or reopens it.

``run_with_timeout`` wraps a blocking SDK call (LiteLLM has no reliable
overall deadline) with a wall-clock limit and the same bookkeeping.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from enum import Enum
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)

FAILURE_THRESHOLD = 3
COOLDOWN_SECONDS = 60


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """The upstream is considered down; the call was not attempted."""

    def __init__(self, endpoint: str, retry_after: float):
        self.endpoint = endpoint
        self.retry_after = retry_after
        super().__init__(f"{endpoint} is unavailable (circuit open), retry in {retry_after:.0f}s")


class CircuitBreaker:

    def __init__(
        self,
        endpoint: str,
        failure_threshold: int = FAILURE_THRESHOLD,
        cooldown_seconds: float = COOLDOWN_SECONDS,
    ) -> None:
        self.endpoint = endpoint
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = 0.0
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    def check(self) -> None:
        """Raise CircuitBreakerOpen unless a call may go through now."""
        with self._lock:
            if self._state != CircuitState.OPEN:
                return
            waited = time.monotonic() - self._opened_at
            if waited < self.cooldown_seconds:
                raise CircuitBreakerOpen(self.endpoint, self.cooldown_seconds - waited)
            self._state = CircuitState.HALF_OPEN
            logger.info("%s circuit half-open, sending probe", self.endpoint)

    def record_success(self) -> None:
        with self._lock:
            if self._state != CircuitState.CLOSED:
                logger.info("%s circuit closed", self.endpoint)
            self._state = CircuitState.CLOSED
            self._failure_count = 0

    def record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            probe_failed = self._state == CircuitState.HALF_OPEN
            tripped = self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold
            if probe_failed or tripped:
                self._state = CircuitState.OPEN
                self._opened_at = time.monotonic()
                logger.warning(
                    "%s circuit open after %d consecutive failure(s)",
                    self.endpoint, self._failure_count,
                )


_breakers: Dict[str, CircuitBreaker] = {}
_registry_lock = threading.Lock()


def get_breaker(endpoint: str) -> CircuitBreaker:
    with _registry_lock:
        breaker = _breakers.get(endpoint)
        if breaker is None:
            breaker = _breakers[endpoint] = CircuitBreaker(endpoint)
        return breaker


def breaker_states() -> Dict[str, str]:
    """``{label: state}`` for every breaker created so far."""
    with _registry_lock:
        return {label: breaker.state.value for label, breaker in _breakers.items()}


def reset_all() -> None:
    with _registry_lock:
        _breakers.clear()


def run_with_timeout(fn: Callable[[], Any], timeout: float, label: str) -> Any:
    """Call *fn* through the *label* breaker, giving up after *timeout* seconds.

    Raises CircuitBreakerOpen without calling *fn* while the circuit is open,
    TimeoutError when the deadline passes, or whatever *fn* raised.
    """
    breaker = get_breaker(label)
    breaker.check()

    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{label}-call")
    try:
        result = pool.submit(fn).result(timeout=timeout)
    except FuturesTimeoutError:
        breaker.record_failure()
        logger.error("%s call exceeded %ss", label, timeout)
        raise TimeoutError(f"{label} call timed out after {timeout}s")
    except Exception:
        breaker.record_failure()
        raise
    finally:
        # A hung call keeps its worker thread; it is not joined here.
        pool.shutdown(wait=False)
    breaker.record_success()
    return result
