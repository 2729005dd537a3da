"""
Property Entity

Property document with membership arrays and its ordered unit list.
"""

from datetime import datetime
from typing import List

from sqlmodel import Column, DateTime, Field, JSON, SQLModel

from ..base import generate_uuid, utcnow


class Property(SQLModel, table=True):
    """
    Property entity - membership is stored denormalised on the document.

    Business Rules:
    - owner_ids/manager_ids/tenant_ids behave as sets (add-if-absent)
    - units keep their order; each unit is {id, name, status, tenant_id, tenant}
    - version increments on every membership write (optimistic concurrency)
    """

    __tablename__ = "properties"

    id: str = Field(default_factory=generate_uuid, primary_key=True, max_length=64)
    name: str = Field(max_length=255)

    owner_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    manager_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    tenant_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    units: List[dict] = Field(default_factory=list, sa_column=Column(JSON))

    version: int = Field(default=0)

    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime))
