from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr, Field

from config import ApplicationConfig
from portal.api.error import ClientError, ServerError
from portal.app.services.clock import Clock
from portal.app.services.resilient_executor import ResilientExecutor
from portal.app.services.unit_of_work import UnitOfWork
from portal.app.use_cases.invitations import (
    GenerateInvitationUseCase,
    InvitationCreatedResponse,
    InvitationPreviewResponse,
    ValidateInvitationUseCase,
)
from portal.depends import get_clock, get_current_actor, get_executor, get_unit_of_work
from portal.domain.actor import Actor

router = APIRouter(prefix="/invitations", tags=["Invitations"])


class GenerateInvitationRequest(BaseModel):
    """
    Generate invitation HTTP request payload
    """

    role: str = Field(..., description="Role granted by the invitation (tenant or pmc)")
    property_id: str = Field(..., min_length=1, description="Target property")
    unit_id: Optional[str] = Field(None, description="Target unit (tenant invites)")
    target_email: Optional[EmailStr] = Field(
        None, description="Restrict redemption to this email"
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=InvitationCreatedResponse,
)
async def generate_invitation(
    request: GenerateInvitationRequest,
    actor: Actor = Depends(get_current_actor),
    uow: UnitOfWork = Depends(get_unit_of_work),
    executor: ResilientExecutor = Depends(get_executor),
    clock: Clock = Depends(get_clock),
):
    """
    Generate Invitation

    Returns a single-use signup link valid for 7 days. The raw token only
    appears in this response.

    Raises:
        - 400 Bad Request: INVALID_ROLE
        - 401 Unauthorized: Invalid or expired JWT
        - 403 Forbidden: PERMISSION_DENIED
        - 404 Not Found: PROPERTY_NOT_FOUND, UNIT_NOT_FOUND
        - 503 Service Unavailable: STORAGE_UNAVAILABLE
    """
    use_case = GenerateInvitationUseCase(
        uow,
        executor=executor,
        clock=clock,
        ttl_days=ApplicationConfig.INVITE_TTL_DAYS,
        link_base_url=ApplicationConfig.INVITE_LINK_BASE_URL,
    )
    result = await use_case.execute(
        actor,
        request.role,
        request.property_id,
        unit_id=request.unit_id,
        target_email=request.target_email,
    )

    # Handle errors
    if result.is_err():
        error = result.error
        if error.code == "INVALID_ROLE":
            raise ClientError(error, status_code=status.HTTP_400_BAD_REQUEST)
        elif error.code == "PERMISSION_DENIED":
            raise ClientError(error, status_code=status.HTTP_403_FORBIDDEN)
        elif error.code in ("PROPERTY_NOT_FOUND", "UNIT_NOT_FOUND"):
            raise ClientError(error, status_code=status.HTTP_404_NOT_FOUND)
        elif error.code == "STORAGE_UNAVAILABLE":
            raise ServerError(error, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
        raise ServerError(error)

    return result.value


@router.get(
    "/validate",
    status_code=status.HTTP_200_OK,
    response_model=InvitationPreviewResponse,
)
async def validate_invitation(
    token: str = Query(..., min_length=1, description="Raw invitation token"),
    uow: UnitOfWork = Depends(get_unit_of_work),
    executor: ResilientExecutor = Depends(get_executor),
    clock: Clock = Depends(get_clock),
):
    """
    Validate Invitation

    Checks a token without redeeming it, so the signup screen can show the
    invited role and property.

    Raises:
        - 404 Not Found: INVITE_NOT_FOUND
        - 409 Conflict: INVITE_ALREADY_USED
        - 410 Gone: INVITE_EXPIRED
        - 503 Service Unavailable: STORAGE_UNAVAILABLE
    """
    use_case = ValidateInvitationUseCase(uow, executor=executor, clock=clock)
    result = await use_case.execute(token)

    if result.is_err():
        error = result.error
        if error.code == "INVITE_NOT_FOUND":
            raise ClientError(error, status_code=status.HTTP_404_NOT_FOUND)
        elif error.code == "INVITE_ALREADY_USED":
            raise ClientError(error, status_code=status.HTTP_409_CONFLICT)
        elif error.code == "INVITE_EXPIRED":
            raise ClientError(error, status_code=status.HTTP_410_GONE)
        elif error.code == "STORAGE_UNAVAILABLE":
            raise ServerError(error, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
        raise ServerError(error)

    return result.value
