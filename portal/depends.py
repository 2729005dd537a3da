from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from portal.adapter.services.error_translation import classify_error
from portal.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from portal.api.utils.jwt import verify_jwt
from portal.app.services.audit_service import AuditService
from portal.app.services.clock import Clock
from portal.app.services.resilient_executor import ResilientExecutor, RetryPolicy
from portal.app.services.unit_of_work import UnitOfWork
from portal.domain.actor import Actor
from portal.domain.entities import UserRole

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)

security = HTTPBearer()


async def get_unit_of_work():
    async with AsyncSessionLocal() as session:
        yield SqlAlchemyUnitOfWork(session)


def get_clock() -> Clock:
    return Clock()


def get_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=ApplicationConfig.RETRY_MAX_ATTEMPTS,
        base_delay=ApplicationConfig.RETRY_BASE_DELAY_MS / 1000,
        jitter=ApplicationConfig.RETRY_JITTER_MS / 1000,
    )


def get_executor(
    uow: UnitOfWork = Depends(get_unit_of_work),
    policy: RetryPolicy = Depends(get_retry_policy),
) -> ResilientExecutor:
    return ResilientExecutor(classify=classify_error, policy=policy, audit=AuditService(uow))


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    """
    Dependency to extract and verify JWT token from Authorization header.

    Args:
        credentials: Bearer token from Authorization header

    Returns:
        Actor built from the user_id, role and impersonator_id claims

    Raises:
        HTTPException: 401 if token is invalid or expired
    """
    token = credentials.credentials
    payload = verify_jwt(token)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    try:
        role = UserRole(payload.get("role"))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token role",
        )

    return Actor(
        uid=payload["user_id"],
        role=role,
        impersonator_id=payload.get("impersonator_id"),
    )
