"""
Resilient operation executor.

Wraps a storage operation with error classification and bounded exponential
backoff:

    delay = base_delay * 2 ** attempt + uniform(0, jitter)

The attempt counter starts at 0 and lives in the execute() call, so
concurrent callers never share retry state. Sleep and randomness are
injected for deterministic tests.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TYPE_CHECKING, TypeVar

from portal.domain.entities import AuditSeverity
from portal.domain.errors import StorageError, StorageErrorCode

if TYPE_CHECKING:
    from portal.app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Classification:
    retryable: bool
    code: StorageErrorCode


Classifier = Callable[[BaseException], Classification]


def classify_storage_error(error: BaseException) -> Classification:
    """Default classifier: only StorageError carries a retryable code"""
    if isinstance(error, StorageError):
        return Classification(retryable=error.retryable, code=error.code)
    return Classification(retryable=False, code=StorageErrorCode.unknown)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Delay before the first retry, in seconds
        jitter: Upper bound of the uniform random addition, in seconds
    """

    max_attempts: int = 3
    base_delay: float = 0.3
    jitter: float = 0.1

    def delay_for(self, attempt: int, rng: random.Random) -> float:
        return self.base_delay * (2**attempt) + rng.uniform(0, self.jitter)


class ResilientExecutor:
    def __init__(
        self,
        classify: Classifier = classify_storage_error,
        policy: Optional[RetryPolicy] = None,
        audit: Optional["AuditService"] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.classify = classify
        self.policy = policy or RetryPolicy()
        self.audit = audit
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        name: str,
        classify: Optional[Classifier] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
    ) -> T:
        """
        Run `operation` until it succeeds, fails terminally, or the attempt
        budget is spent.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            name: Operation name used in retry warnings
            classify: Overrides the executor's classifier for this call
            max_attempts: Overrides the policy's attempt budget
            base_delay: Overrides the policy's base delay (seconds)

        Returns:
            The operation's result

        Raises:
            The last error raised by the operation
        """
        classify = classify or self.classify
        policy = self.policy
        if max_attempts is not None or base_delay is not None:
            policy = RetryPolicy(
                max_attempts=max_attempts if max_attempts is not None else policy.max_attempts,
                base_delay=base_delay if base_delay is not None else policy.base_delay,
                jitter=policy.jitter,
            )

        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as exc:
                classification = classify(exc)
                if not classification.retryable or attempt + 1 >= policy.max_attempts:
                    raise

                delay = policy.delay_for(attempt, self._rng)
                await self._warn_retry(name, classification.code, attempt, delay)
                await self._sleep(delay)
                attempt += 1

    async def _warn_retry(
        self, name: str, code: StorageErrorCode, attempt: int, delay: float
    ) -> None:
        logger.warning(
            f"Retrying {name} after {code.value} "
            f"(attempt {attempt + 1}, delay {delay * 1000:.0f}ms)"
        )
        if self.audit is None:
            return
        await self.audit.record(
            action="storage.retry",
            entity_type="operation",
            entity_id=name,
            severity=AuditSeverity.warning,
            metadata={
                "operation": name,
                "code": code.value,
                "attempt": attempt + 1,
                "delay_ms": round(delay * 1000),
            },
        )
