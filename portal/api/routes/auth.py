from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field, field_validator

from config import ApplicationConfig
from portal.api.error import ClientError, ServerError
from portal.app.services.clock import Clock
from portal.app.services.identity_service import MAX_PASSWORD_BYTES
from portal.app.services.resilient_executor import ResilientExecutor
from portal.app.services.unit_of_work import UnitOfWork
from portal.app.use_cases.auth import SignupCommand, SignupResponse, SignupUseCase
from portal.depends import get_clock, get_executor, get_unit_of_work
from portal.domain.entities import UserRole

router = APIRouter(prefix="/auth", tags=["Authentication"])

SIGNUP_CLIENT_ERRORS = {
    "INVALID_PASSWORD": status.HTTP_400_BAD_REQUEST,
    "PERMISSION_DENIED": status.HTTP_403_FORBIDDEN,
    "INVITE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVITE_EXPIRED": status.HTTP_410_GONE,
    "INVITE_ALREADY_USED": status.HTTP_409_CONFLICT,
    "EMAIL_ALREADY_EXISTS": status.HTTP_409_CONFLICT,
}

SIGNUP_SERVER_ERRORS = {
    "IDENTITY_CREATE_FAILED": status.HTTP_502_BAD_GATEWAY,
    "PROFILE_CREATE_FAILED": status.HTTP_502_BAD_GATEWAY,
    "STORAGE_UNAVAILABLE": status.HTTP_503_SERVICE_UNAVAILABLE,
}


class SignupRequest(BaseModel):
    """
    Signup HTTP request payload

    Validates incoming HTTP request before converting to SignupCommand.
    API layer responsibility: HTTP validation and serialization.
    """

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=6, description="User password (min 6 chars)")
    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    role: UserRole = Field(UserRole.owner, description="Requested role")
    invite_token: Optional[str] = Field(
        None, description="Raw invitation token from the signup link"
    )

    @field_validator("password")
    @classmethod
    def password_fits_hash(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value


@router.post(
    "/signup", status_code=status.HTTP_201_CREATED, response_model=SignupResponse
)
async def signup(
    request: SignupRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    executor: ResilientExecutor = Depends(get_executor),
    clock: Clock = Depends(get_clock),
):
    """
    User Signup - invitation-gated account provisioning

    Creates the identity, redeems the invitation (if any), writes the
    profile and links the user into the invited property.

    Raises:
        - 400 Bad Request: INVALID_PASSWORD
        - 403 Forbidden: PERMISSION_DENIED (tenant without invite, admin, email mismatch)
        - 404 Not Found: INVITE_NOT_FOUND
        - 409 Conflict: INVITE_ALREADY_USED, EMAIL_ALREADY_EXISTS
        - 410 Gone: INVITE_EXPIRED
        - 422 Unprocessable Entity: Invalid input (handled by FastAPI)
        - 502 Bad Gateway: IDENTITY_CREATE_FAILED, PROFILE_CREATE_FAILED
        - 503 Service Unavailable: STORAGE_UNAVAILABLE
    """
    # Map HTTP request to Command (validated business intent)
    command = SignupCommand(
        email=request.email,
        password=request.password,
        name=request.name,
        role=request.role,
        invite_token=request.invite_token,
    )

    use_case = SignupUseCase(
        uow,
        executor=executor,
        clock=clock,
        invite_link_base_url=ApplicationConfig.INVITE_LINK_BASE_URL,
    )
    result = await use_case.execute(command)

    # Handle errors
    if result.is_err():
        error = result.error
        if error.code in SIGNUP_CLIENT_ERRORS:
            raise ClientError(error, status_code=SIGNUP_CLIENT_ERRORS[error.code])
        raise ServerError(
            error,
            status_code=SIGNUP_SERVER_ERRORS.get(
                error.code, status.HTTP_500_INTERNAL_SERVER_ERROR
            ),
        )

    # Return Pydantic model directly (FastAPI auto-serializes)
    return result.value
