"""
Identity Entity

Authentication principal owned by the identity service.
"""

from datetime import datetime

from sqlmodel import Column, DateTime, Field, SQLModel

from ..base import generate_uuid, utcnow


class Identity(SQLModel, table=True):
    """
    Identity entity - email/password principal.

    Business Rules:
    - Email must be unique across all identities
    - Password stored as bcrypt hash (cost factor 12)
    - Deleted only as a compensation of a failed signup
    """

    __tablename__ = "identities"

    uid: str = Field(default_factory=generate_uuid, primary_key=True, max_length=64)
    email: str = Field(unique=True, index=True, max_length=255)
    password_hash: str = Field(max_length=60)  # Bcrypt output is 60 chars
    display_name: str = Field(default="", max_length=255)

    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime))
