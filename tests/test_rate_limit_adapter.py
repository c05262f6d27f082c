"""Unit tests for in-memory rate limiter adapter."""

import threading
from unittest.mock import Mock

import pytest

from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter


def test_allows_up_to_limit_in_same_window() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=60, window_seconds=60, clock=clock)

    results = [limiter.consume("ip:1.2.3.4") for _ in range(60)]

    assert all(r.allowed for r in results)
    assert results[-1].remaining == 0


def test_blocks_when_over_limit() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=60, window_seconds=60, clock=clock)
    for _ in range(60):
        limiter.consume("k")

    clock.return_value = 1015.5
    blocked = limiter.consume("k")

    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.retry_after_seconds == 45
    assert blocked.reset_at == 1060


def test_window_opens_on_first_request_of_key() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)
    assert limiter.consume("early").allowed is True

    clock.return_value = 1050.0
    assert limiter.consume("late").allowed is True

    clock.return_value = 1065.0
    # "early" has a fresh window, "late" is still inside its own.
    assert limiter.consume("early").allowed is True
    assert limiter.consume("late").allowed is False


def test_resets_on_new_window() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=10, clock=clock)

    assert limiter.consume("k").allowed is True
    assert limiter.consume("k").allowed is False

    clock.return_value = 1010.0
    assert limiter.consume("k").allowed is True


def test_retry_after_is_at_least_one_second() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=10, clock=clock)
    limiter.consume("k")

    clock.return_value = 1009.99
    assert limiter.consume("k").retry_after_seconds == 1


def test_isolated_by_key() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)

    assert limiter.consume("k1").allowed is True
    assert limiter.consume("k1").allowed is False

    assert limiter.consume("k2").allowed is True


def test_prune_evicts_only_finished_windows() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=5, window_seconds=60, clock=clock)
    limiter.consume("old")
    clock.return_value = 1030.0
    limiter.consume("new")

    assert limiter.prune(1060.0) == 1
    assert len(limiter) == 1


def test_stale_keys_are_pruned_opportunistically() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=5, window_seconds=60, clock=clock)
    for i in range(100):
        limiter.consume(f"ip:10.0.0.{i}")
    assert len(limiter) == 100

    clock.return_value = 1200.0
    limiter.consume("ip:10.0.1.1")

    assert len(limiter) == 1


def test_concurrent_consumers_never_exceed_limit() -> None:
    limiter = InMemoryFixedWindowRateLimiter(limit=50, window_seconds=60, clock=lambda: 1000.0)
    allowed: list[bool] = []
    lock = threading.Lock()
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        for _ in range(20):
            result = limiter.consume("shared")
            with lock:
                allowed.append(result.allowed)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert allowed.count(True) == 50
    assert allowed.count(False) == 110


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit": 0, "window_seconds": 60},
        {"limit": 1, "window_seconds": 0},
        {"limit": 1, "window_seconds": 60, "lock_stripes": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        InMemoryFixedWindowRateLimiter(**kwargs)


def test_invalid_consume_args() -> None:
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60)

    with pytest.raises(ValueError):
        limiter.consume("")

    with pytest.raises(ValueError):
        limiter.consume("k", cost=0)


def test_prune_while_new_keys_arrive() -> None:
    limiter = InMemoryFixedWindowRateLimiter(limit=5, window_seconds=60, clock=lambda: 1000.0)
    for i in range(500):
        limiter.consume(f"stale:{i}")
    errors: list[BaseException] = []
    barrier = threading.Barrier(5)

    def consumer(offset: int) -> None:
        barrier.wait()
        for i in range(500):
            limiter.consume(f"fresh:{offset}:{i}")

    def pruner() -> None:
        barrier.wait()
        try:
            for _ in range(50):
                limiter.prune(1060.0)
        except RuntimeError as exc:
            errors.append(exc)

    threads = [threading.Thread(target=consumer, args=(n,)) for n in range(4)]
    threads.append(threading.Thread(target=pruner))
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    # Every key shares the same window start, so at 1060 all are prunable.
    limiter.prune(1060.0)
    assert len(limiter) == 0
