"""
Admin API Routes - Signup Reconciliation Endpoints

These endpoints are for the reconciliation job and support tooling.
Authentication is via Admin API Key, not user JWTs.
"""

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from config import ApplicationConfig
from portal.api.error import ClientError, ServerError
from portal.api.utils.admin_auth import verify_admin_api_key
from portal.app.services.clock import Clock
from portal.app.services.resilient_executor import ResilientExecutor
from portal.app.services.unit_of_work import UnitOfWork
from portal.app.use_cases.admin import (
    RepairMembershipLinkResponse,
    RepairMembershipLinkUseCase,
    SweepOrphanedSignupsResponse,
    SweepOrphanedSignupsUseCase,
)
from portal.depends import get_clock, get_executor, get_unit_of_work

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post(
    "/signups/sweep",
    status_code=status.HTTP_200_OK,
    response_model=SweepOrphanedSignupsResponse,
    dependencies=[Depends(verify_admin_api_key)],
)
async def sweep_orphaned_signups(
    older_than_minutes: Optional[int] = Query(None, ge=0),
    uow: UnitOfWork = Depends(get_unit_of_work),
    executor: ResilientExecutor = Depends(get_executor),
    clock: Clock = Depends(get_clock),
):
    """
    Sweep Orphaned Signups

    Cleans up signup runs that stopped between stages: reverts their invite
    redemption and deletes their identity when no profile was written, or
    retries the membership link when it was.

    Requires: X-Admin-API-Key header

    Raises:
        - 401 Unauthorized: Missing or invalid admin API key
        - 503 Service Unavailable: STORAGE_UNAVAILABLE
    """
    if older_than_minutes is None:
        older_than_minutes = ApplicationConfig.SIGNUP_ORPHAN_AFTER_MINUTES

    use_case = SweepOrphanedSignupsUseCase(uow, executor=executor, clock=clock)
    result = await use_case.execute(timedelta(minutes=older_than_minutes))

    if result.is_err():
        error = result.error
        if error.code == "STORAGE_UNAVAILABLE":
            raise ServerError(error, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
        raise ServerError(error)

    return result.value


@router.post(
    "/users/{uid}/membership/repair",
    status_code=status.HTTP_200_OK,
    response_model=RepairMembershipLinkResponse,
    dependencies=[Depends(verify_admin_api_key)],
)
async def repair_membership_link(
    uid: str,
    uow: UnitOfWork = Depends(get_unit_of_work),
    executor: ResilientExecutor = Depends(get_executor),
):
    """
    Repair Membership Link

    Re-links a profile into its property after a signup that returned
    MEMBERSHIP_LINK_DEGRADED.

    Requires: X-Admin-API-Key header

    Raises:
        - 401 Unauthorized: Missing or invalid admin API key
        - 404 Not Found: PROFILE_NOT_FOUND, PROPERTY_NOT_FOUND
        - 409 Conflict: NO_LINKED_PROPERTY
        - 503 Service Unavailable: STORAGE_UNAVAILABLE
    """
    use_case = RepairMembershipLinkUseCase(uow, executor=executor)
    result = await use_case.execute(uid)

    if result.is_err():
        error = result.error
        if error.code in ("PROFILE_NOT_FOUND", "PROPERTY_NOT_FOUND"):
            raise ClientError(error, status_code=status.HTTP_404_NOT_FOUND)
        elif error.code == "NO_LINKED_PROPERTY":
            raise ClientError(error, status_code=status.HTTP_409_CONFLICT)
        elif error.code == "STORAGE_UNAVAILABLE":
            raise ServerError(error, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
        raise ServerError(error)

    return result.value
