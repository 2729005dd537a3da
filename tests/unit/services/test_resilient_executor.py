import asyncio
import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from portal.app.services.audit_service import AuditService
from portal.app.services.resilient_executor import (
    Classification,
    ResilientExecutor,
    RetryPolicy,
    classify_storage_error,
)
from portal.domain.entities import AuditSeverity
from portal.domain.errors import StorageError, StorageErrorCode


def flaky(failures, result="ok"):
    """Operation that raises the given errors in order, then returns result"""
    errors = list(failures)
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if errors:
            raise errors.pop(0)
        return result

    return operation, calls


@pytest.mark.asyncio
async def test_retries_unavailable_then_succeeds(sleep):
    """Two unavailable failures then success: two waits of at least 300ms and 600ms"""
    audit = MagicMock()
    audit.record = AsyncMock()
    executor = ResilientExecutor(audit=audit, sleep=sleep, rng=random.Random(1))
    operation, calls = flaky(
        [StorageError(StorageErrorCode.unavailable), StorageError(StorageErrorCode.unavailable)]
    )

    result = await executor.execute(operation, name="profile.create")

    assert result == "ok"
    assert calls["count"] == 3

    delays = [call.args[0] for call in sleep.call_args_list]
    assert len(delays) == 2
    assert 0.3 <= delays[0] <= 0.4
    assert 0.6 <= delays[1] <= 0.7
    assert sum(delays) >= 0.3 * (2**0 + 2**1)

    # Exactly one warning per retry
    assert audit.record.await_count == 2
    first = audit.record.call_args_list[0].kwargs
    assert first["action"] == "storage.retry"
    assert first["severity"] == AuditSeverity.warning
    assert first["metadata"]["operation"] == "profile.create"
    assert first["metadata"]["code"] == "unavailable"
    assert first["metadata"]["attempt"] == 1
    assert audit.record.call_args_list[1].kwargs["metadata"]["attempt"] == 2


@pytest.mark.asyncio
async def test_terminal_error_returns_on_first_attempt(sleep):
    audit = MagicMock()
    audit.record = AsyncMock()
    executor = ResilientExecutor(audit=audit, sleep=sleep)
    operation, calls = flaky([StorageError(StorageErrorCode.permission_denied)])

    with pytest.raises(StorageError) as exc_info:
        await executor.execute(operation, name="invitation.get")

    assert exc_info.value.code == StorageErrorCode.permission_denied
    assert calls["count"] == 1
    sleep.assert_not_awaited()
    audit.record.assert_not_awaited()


@pytest.mark.asyncio
async def test_exhausted_budget_raises_last_error(sleep):
    executor = ResilientExecutor(sleep=sleep, rng=random.Random(3))
    errors = [
        StorageError(StorageErrorCode.unavailable, "first"),
        StorageError(StorageErrorCode.aborted, "second"),
        StorageError(StorageErrorCode.deadline_exceeded, "third"),
    ]
    operation, calls = flaky(errors)

    with pytest.raises(StorageError) as exc_info:
        await executor.execute(operation, name="identity.create")

    assert exc_info.value is errors[2]
    assert calls["count"] == 3
    # No wait after the final attempt
    assert sleep.await_count == 2


@pytest.mark.asyncio
async def test_unknown_exceptions_are_terminal(sleep):
    executor = ResilientExecutor(sleep=sleep)
    operation, calls = flaky([ValueError("bad input")])

    with pytest.raises(ValueError):
        await executor.execute(operation, name="profile.create")

    assert calls["count"] == 1
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_per_call_overrides(sleep):
    executor = ResilientExecutor(
        policy=RetryPolicy(max_attempts=3, base_delay=0.3, jitter=0.0), sleep=sleep
    )
    operation, calls = flaky([StorageError(StorageErrorCode.resource_exhausted)] * 5)

    with pytest.raises(StorageError):
        await executor.execute(operation, name="op", max_attempts=5, base_delay=0.01)

    assert calls["count"] == 5
    assert [call.args[0] for call in sleep.call_args_list] == pytest.approx(
        [0.01, 0.02, 0.04, 0.08]
    )


@pytest.mark.asyncio
async def test_custom_classifier():
    def classify(error):
        return Classification(retryable=isinstance(error, KeyError), code=StorageErrorCode.aborted)

    executor = ResilientExecutor(classify=classify, sleep=AsyncMock())
    operation, calls = flaky([KeyError("x")])

    assert await executor.execute(operation, name="op") == "ok"
    assert calls["count"] == 2


@pytest.mark.asyncio
async def test_concurrent_calls_have_independent_attempt_counters():
    """Each execute() call keeps its own attempt counter"""
    gate = asyncio.Event()

    async def sleep(delay):
        await gate.wait()

    executor = ResilientExecutor(sleep=sleep, rng=random.Random(0))
    op_a, calls_a = flaky([StorageError(StorageErrorCode.unavailable)] * 2, result="a")
    op_b, calls_b = flaky([StorageError(StorageErrorCode.unavailable)] * 2, result="b")

    task_a = asyncio.create_task(executor.execute(op_a, name="same.operation"))
    task_b = asyncio.create_task(executor.execute(op_b, name="same.operation"))
    await asyncio.sleep(0)
    gate.set()

    assert await asyncio.gather(task_a, task_b) == ["a", "b"]
    assert calls_a["count"] == 3
    assert calls_b["count"] == 3


@pytest.mark.asyncio
async def test_audit_sink_failure_does_not_change_outcome(mock_uow, sleep):
    """A failing audit write is swallowed by the sink and retries continue"""
    mock_uow.audit_events.create.side_effect = StorageError(StorageErrorCode.unavailable)
    executor = ResilientExecutor(audit=AuditService(mock_uow), sleep=sleep)
    operation, calls = flaky([StorageError(StorageErrorCode.aborted)])

    assert await executor.execute(operation, name="op") == "ok"
    assert calls["count"] == 2


def test_classify_storage_error():
    assert classify_storage_error(StorageError(StorageErrorCode.unavailable)) == Classification(
        True, StorageErrorCode.unavailable
    )
    assert classify_storage_error(StorageError(StorageErrorCode.not_found)) == Classification(
        False, StorageErrorCode.not_found
    )
    assert classify_storage_error(RuntimeError()) == Classification(
        False, StorageErrorCode.unknown
    )
