import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from brewline.errors import PersistenceError
from brewline.infra.retry import with_retry, with_retry_async


def transient():
    return OperationalError("SELECT 1", {}, Exception("server closed the connection"))


def test_retries_then_succeeds():
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise transient()
        return "ok"

    assert with_retry(flaky, retries=2, base_ms=0) == "ok"
    assert len(calls) == 3


def test_exhaustion_raises_persistence_error():
    rollbacks = []

    def down():
        raise transient()

    with pytest.raises(PersistenceError):
        with_retry(down, retries=2, base_ms=0, on_retry=lambda: rollbacks.append(1))
    assert len(rollbacks) == 2


def test_constraint_violation_not_retried():
    calls = []

    def dup():
        calls.append(1)
        raise IntegrityError("INSERT", {}, Exception("unique"))

    with pytest.raises(IntegrityError):
        with_retry(dup, retries=5, base_ms=0)
    assert len(calls) == 1


def test_other_errors_propagate():
    def bad():
        raise ValueError("nope")

    with pytest.raises(ValueError):
        with_retry(bad, retries=2, base_ms=0)


@pytest.mark.asyncio
async def test_async_retry():
    calls = []

    async def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise transient()
        return 42

    assert await with_retry_async(flaky, retries=1, base_ms=0) == 42


@pytest.mark.asyncio
async def test_async_exhaustion():
    async def down():
        raise transient()

    with pytest.raises(PersistenceError):
        await with_retry_async(down, retries=1, base_ms=0)
