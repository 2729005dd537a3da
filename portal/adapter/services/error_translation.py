"""
Translation of provider errors into StorageErrorCode.

This is the only place that knows provider exception shapes. Everything
above the adapters sees StorageError with a closed code.
"""

import asyncio
from typing import Optional, Union

from sqlalchemy import exc as sa_exc

from portal.app.services.resilient_executor import Classification
from portal.domain.errors import StorageError, StorageErrorCode

# Canonical RPC-style codes, by name and by number
PROVIDER_CODES = {
    "unavailable": StorageErrorCode.unavailable,
    "aborted": StorageErrorCode.aborted,
    "deadline-exceeded": StorageErrorCode.deadline_exceeded,
    "resource-exhausted": StorageErrorCode.resource_exhausted,
    "permission-denied": StorageErrorCode.permission_denied,
    "unauthenticated": StorageErrorCode.permission_denied,
    "not-found": StorageErrorCode.not_found,
    "already-exists": StorageErrorCode.already_exists,
    "failed-precondition": StorageErrorCode.failed_precondition,
    "invalid-argument": StorageErrorCode.invalid_argument,
    "internal": StorageErrorCode.internal,
    "unknown": StorageErrorCode.unknown,
    3: StorageErrorCode.invalid_argument,
    4: StorageErrorCode.deadline_exceeded,
    5: StorageErrorCode.not_found,
    6: StorageErrorCode.already_exists,
    7: StorageErrorCode.permission_denied,
    8: StorageErrorCode.resource_exhausted,
    9: StorageErrorCode.failed_precondition,
    10: StorageErrorCode.aborted,
    13: StorageErrorCode.internal,
    14: StorageErrorCode.unavailable,
    16: StorageErrorCode.permission_denied,
}

# SQLSTATE classes reported by PostgreSQL drivers
SQLSTATE_CODES = {
    "40001": StorageErrorCode.aborted,  # serialization_failure
    "40P01": StorageErrorCode.aborted,  # deadlock_detected
    "53300": StorageErrorCode.resource_exhausted,  # too_many_connections
    "53200": StorageErrorCode.resource_exhausted,  # out_of_memory
    "57014": StorageErrorCode.deadline_exceeded,  # query_canceled
    "57P01": StorageErrorCode.unavailable,  # admin_shutdown
    "08000": StorageErrorCode.unavailable,
    "08001": StorageErrorCode.unavailable,
    "08003": StorageErrorCode.unavailable,
    "08006": StorageErrorCode.unavailable,
    "23505": StorageErrorCode.already_exists,  # unique_violation
    "42501": StorageErrorCode.permission_denied,
}

# SQLite OperationalError messages
SQLITE_MESSAGES = (
    ("database is locked", StorageErrorCode.aborted),
    ("database table is locked", StorageErrorCode.aborted),
    ("disk i/o error", StorageErrorCode.unavailable),
    ("unable to open database", StorageErrorCode.unavailable),
    ("database or disk is full", StorageErrorCode.resource_exhausted),
    ("interrupted", StorageErrorCode.deadline_exceeded),
)


def code_from_provider(code: Union[str, int, None]) -> StorageErrorCode:
    """Map a provider code ("unavailable", "firestore/aborted", 14) onto the enum"""
    if code is None:
        return StorageErrorCode.unknown
    if isinstance(code, str):
        code = code.rsplit("/", 1)[-1].strip().lower().replace("_", "-")
    return PROVIDER_CODES.get(code, StorageErrorCode.unknown)


def _sqlstate(error: sa_exc.DBAPIError) -> Optional[str]:
    orig = error.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def _code_for_dbapi_error(error: sa_exc.DBAPIError) -> StorageErrorCode:
    sqlstate = _sqlstate(error)
    if sqlstate in SQLSTATE_CODES:
        return SQLSTATE_CODES[sqlstate]

    if isinstance(error, sa_exc.IntegrityError):
        return StorageErrorCode.already_exists
    if isinstance(error, sa_exc.DataError):
        return StorageErrorCode.invalid_argument
    if isinstance(error, sa_exc.OperationalError):
        message = str(error.orig).lower()
        for fragment, code in SQLITE_MESSAGES:
            if fragment in message:
                return code
        return StorageErrorCode.unavailable
    if isinstance(error, sa_exc.InterfaceError):
        return StorageErrorCode.unavailable
    return StorageErrorCode.internal


def translate_error(error: BaseException) -> StorageError:
    """Wrap a provider exception in a classified StorageError"""
    if isinstance(error, StorageError):
        return error

    if isinstance(error, sa_exc.DBAPIError):
        code = _code_for_dbapi_error(error)
    elif isinstance(error, sa_exc.TimeoutError):
        # Connection pool checkout timed out
        code = StorageErrorCode.resource_exhausted
    elif isinstance(error, sa_exc.DisconnectionError):
        code = StorageErrorCode.unavailable
    elif isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        code = StorageErrorCode.deadline_exceeded
    elif isinstance(error, ConnectionError):
        code = StorageErrorCode.unavailable
    elif isinstance(error, sa_exc.SQLAlchemyError):
        code = StorageErrorCode.internal
    else:
        code = StorageErrorCode.unknown

    return StorageError(code, str(error), cause=error)


def classify_error(error: BaseException) -> Classification:
    """Executor classifier for errors that may not have been translated yet"""
    translated = translate_error(error)
    return Classification(retryable=translated.retryable, code=translated.code)
