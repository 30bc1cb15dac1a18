"""Tests for caller-side retry of transient storage errors."""

from __future__ import annotations

import pytest

from auragraph.core.retry import with_retry
from auragraph.errors import DuplicateEdge, InvalidArgument, TransientStorageError


class _Flaky:
    def __init__(self, failures: int, exc: Exception | None = None) -> None:
        self.failures = failures
        self.calls = 0
        self.exc = exc or TransientStorageError("database is locked")

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return "ok"


@pytest.fixture
def delays() -> list[float]:
    return []


@pytest.fixture
def sleep(delays: list[float]):
    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    return _sleep


async def test_succeeds_without_retry(sleep, delays):
    op = _Flaky(0)
    assert await with_retry(op, sleep=sleep) == "ok"
    assert op.calls == 1
    assert delays == []


async def test_retries_transient_then_succeeds(sleep, delays):
    op = _Flaky(2)
    assert await with_retry(op, attempts=3, base_delay=0.5, jitter=0, sleep=sleep) == "ok"
    assert op.calls == 3
    assert delays == [0.5, 1.0]


async def test_exhausted_retries_reraise(sleep, delays):
    op = _Flaky(5)
    with pytest.raises(TransientStorageError):
        await with_retry(op, attempts=3, base_delay=0.1, jitter=0, sleep=sleep)
    assert op.calls == 3
    assert len(delays) == 2


async def test_backoff_capped(sleep, delays):
    op = _Flaky(4)
    await with_retry(op, attempts=5, base_delay=1.0, max_delay=3.0, jitter=0, sleep=sleep)
    assert delays == [1.0, 2.0, 3.0, 3.0]


@pytest.mark.parametrize(
    "exc", [InvalidArgument("bad id"), DuplicateEdge(1, 2), RuntimeError("boom")]
)
async def test_non_transient_errors_not_retried(sleep, delays, exc):
    op = _Flaky(1, exc)
    with pytest.raises(type(exc)):
        await with_retry(op, sleep=sleep)
    assert op.calls == 1
    assert delays == []


async def test_attempts_must_be_positive():
    with pytest.raises(ValueError):
        await with_retry(_Flaky(0), attempts=0)
