"""
Signup Use Case DTOs (Data Transfer Objects)

Command/Response pattern for clean architecture separation:
- SignupCommand: Input to use case (validated business intent)
- SignupResponse: Output from use case (structured result)
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from portal.domain.entities import UserRole


class SignupCommand(BaseModel):
    """
    Signup command - represents validated signup intent

    Created by API layer after request validation passes.
    `role` is only a request; an invitation's role always wins.
    """

    email: str
    password: str
    name: str
    role: UserRole
    invite_token: Optional[str] = None


class UserInfo(BaseModel):
    """Identity information in signup response"""

    uid: str
    email: str


class ProfileInfo(BaseModel):
    """Profile information in signup response"""

    id: str
    name: str
    email: str
    role: str
    linked_property_id: Optional[str] = None
    linked_unit_id: Optional[str] = None
    invite_id: Optional[str] = None


class SignupResponse(BaseModel):
    """
    Signup response - structured output from use case

    `warnings` carries soft failures (MEMBERSHIP_LINK_DEGRADED) of an
    otherwise successful signup.
    """

    user: UserInfo
    profile: ProfileInfo
    access_token: str
    warnings: List[str] = Field(default_factory=list)
