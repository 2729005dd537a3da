"""
Storage and identity errors raised by infrastructure.

StorageErrorCode is the closed set of failure codes the resilient executor
classifies. Provider-specific codes are translated into it at the adapter
boundary; nothing above the adapters inspects provider exception shapes.
"""

from enum import Enum
from typing import Optional


class StorageErrorCode(str, Enum):
    unavailable = "unavailable"
    aborted = "aborted"
    deadline_exceeded = "deadline-exceeded"
    resource_exhausted = "resource-exhausted"
    permission_denied = "permission-denied"
    not_found = "not-found"
    already_exists = "already-exists"
    failed_precondition = "failed-precondition"
    invalid_argument = "invalid-argument"
    internal = "internal"
    unknown = "unknown"


RETRYABLE_CODES = frozenset(
    {
        StorageErrorCode.unavailable,
        StorageErrorCode.aborted,
        StorageErrorCode.deadline_exceeded,
        StorageErrorCode.resource_exhausted,
    }
)


class StorageError(Exception):
    """Infrastructure failure carrying a classified code"""

    def __init__(
        self,
        code: StorageErrorCode,
        message: str = "",
        cause: Optional[BaseException] = None,
    ):
        self.code = code
        self.message = message or code.value
        self.cause = cause
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return self.code in RETRYABLE_CODES


class IdentityAlreadyExistsError(StorageError):
    """Identity service refused a duplicate email"""

    def __init__(self, email: str):
        super().__init__(
            StorageErrorCode.already_exists, f"Identity already exists for {email}"
        )
        self.email = email
