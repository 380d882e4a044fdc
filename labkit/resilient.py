"""Resilience patterns: circuit breaking, debouncing, load shedding, rate limiting,
retries and timeouts.

Each decorator takes a callable with no arguments and returns a callable that runs it
under the chosen policy. A call fails by raising an exception.
"""

from __future__ import annotations

import queue
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

Closure = Callable[[], Any]


class ServiceUnavailable(Exception):
    """Raised by an open circuit breaker."""

    def __init__(self, message: str = "service unreachable") -> None:
        super().__init__(message)


class TooManyRequests(Exception):
    """Raised when a call is rejected by a load shedder or a rate limiter."""


@dataclass(frozen=True)
class Breaker:
    """Circuit breaker parameters."""

    # Number of consecutive failures after which the circuit is opened.
    failure_threshold: int = 3
    # Seconds after which an open circuit is spontaneously closed.
    close_interval: float = 1.0


DEFAULT_CIRCUIT_BREAKER = Breaker()


@dataclass(frozen=True)
class Backoff:
    """Parameters of the random exponential backoff used by :func:`with_retry`."""

    # The initial delay, in seconds.
    base: float = 0.25
    # An upper limit on the delay between retries, in seconds.
    cap: float = 5.0
    # The sleep time is the base plus a random jitter scaled by this factor.
    jitter: float = 3.0
    # The number of times the function is run.
    num_trials: int = 4


DEFAULT_BACKOFF = Backoff()


@dataclass(frozen=True)
class RateLimiter:
    """Token-bucket rate limiter: bursts of ``capacity`` and ``fill`` tokens per ``period``."""

    # Maximum number of tokens in the bucket (burst size).
    capacity: int
    # Number of tokens added every period.
    fill: int
    # Refill period in seconds.
    period: float


def with_circuit_breaker(f: Closure, breaker: Breaker = DEFAULT_CIRCUIT_BREAKER) -> Closure:
    """Open the circuit after ``failure_threshold`` consecutive failures and close it
    again once ``close_interval`` has passed since the last attempt."""
    lock = threading.Lock()
    state = {"failures": 0, "last_attempt": time.monotonic(), "open": False}

    def call() -> Any:
        with lock:
            if state["open"] and time.monotonic() - state["last_attempt"] > breaker.close_interval:
                state["open"] = False
                state["failures"] = 0
            if state["open"]:
                raise ServiceUnavailable()
            state["last_attempt"] = time.monotonic()
        try:
            result = f()
        except Exception:
            with lock:
                state["failures"] += 1
                if state["failures"] >= breaker.failure_threshold:
                    state["open"] = True
            raise
        with lock:
            state["failures"] = 0
        return result

    return call


def with_debounce_first(f: Closure, interval: float) -> Closure:
    """Run ``f`` on the first call and suppress calls that come within ``interval``
    seconds of the previous one, repeating the last outcome instead."""
    lock = threading.Lock()
    state: dict[str, Any] = {"threshold": float("-inf"), "result": None, "error": None}

    def call() -> Any:
        with lock:
            try:
                if time.monotonic() < state["threshold"]:
                    if state["error"] is not None:
                        raise state["error"]
                    return state["result"]
                try:
                    state["result"] = f()
                    state["error"] = None
                except Exception as exc:
                    state["result"] = None
                    state["error"] = exc
                    raise
                return state["result"]
            finally:
                state["threshold"] = time.monotonic() + interval

    return call


def with_load_shedding(f: Closure, threshold: int) -> Closure:
    """Reject calls with :class:`TooManyRequests` while ``threshold`` calls are active."""
    lock = threading.Lock()
    active = 0

    def call() -> Any:
        nonlocal active
        with lock:
            if active >= threshold:
                raise TooManyRequests(f"Too many requests: {active} > {threshold}")
            active += 1
        try:
            return f()
        finally:
            with lock:
                active -= 1

    return call


def with_rate_limiter(f: Closure, stop: threading.Event, limiter: RateLimiter) -> Closure:
    """Admit calls only while tokens remain in the bucket; the bucket is refilled in
    the background until ``stop`` is set."""
    lock = threading.Lock()
    tokens = limiter.capacity

    def refill() -> None:
        nonlocal tokens
        while not stop.wait(limiter.period):
            with lock:
                tokens = min(tokens + limiter.fill, limiter.capacity)

    threading.Thread(target=refill, daemon=True).start()

    def call() -> Any:
        nonlocal tokens
        with lock:
            if tokens <= 0:
                raise TooManyRequests("Too many calls")
            tokens -= 1
        return f()

    return call


def with_retry(f: Closure, wait: Backoff = DEFAULT_BACKOFF) -> Closure:
    """Retry ``f`` up to ``num_trials`` runs in total, sleeping with random
    exponential backoff between failures; the last failure is raised."""

    def call() -> Any:
        try:
            return f()
        except Exception as exc:
            last_error = exc
        backoff = wait.base
        for _ in range(wait.num_trials - 1):
            backoff = min(backoff, wait.cap)
            time.sleep(wait.base + random.random() * backoff * wait.jitter)
            try:
                return f()
            except Exception as exc:
                last_error = exc
            backoff *= 2
        raise last_error

    return call


def with_timeout(f: Closure) -> Callable[..., Any]:
    """Return a callable taking a ``timeout`` in seconds that runs ``f`` in the
    background and raises :class:`TimeoutError` if it does not finish in time."""

    def call(timeout: Optional[float] = None) -> Any:
        outcome: queue.Queue = queue.Queue(maxsize=1)

        def runner() -> None:
            try:
                outcome.put((True, f()))
            except BaseException as exc:
                outcome.put((False, exc))

        threading.Thread(target=runner, daemon=True).start()
        try:
            ok, value = outcome.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError("context deadline exceeded") from None
        if ok:
            return value
        raise value

    return call


def with_timeout_retry(f: Closure, wait: Backoff = DEFAULT_BACKOFF) -> Callable[..., Any]:
    """Retry ``f`` with backoff, bounded by the timeout given at call time."""
    return with_timeout(with_retry(f, wait))