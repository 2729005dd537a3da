"""
Invitation Use Case DTOs (Data Transfer Objects)
"""

from typing import Optional

from pydantic import BaseModel


class InvitationCreatedResponse(BaseModel):
    """Response for generate invitation use case

    `link` embeds the raw token; it is returned once and never stored.
    """

    invite_id: str
    link: str
    role: str
    property_id: str
    unit_id: Optional[str] = None
    status: str
    expires_at: str


class InvitationPreviewResponse(BaseModel):
    """Response for validate invitation use case"""

    invite_id: str
    role: str
    property_id: str
    unit_id: Optional[str] = None
    target_email: Optional[str] = None
    expires_at: str
