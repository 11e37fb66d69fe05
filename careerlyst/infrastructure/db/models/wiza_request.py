"""
Wiza Request Database Model

Each row is a reservation for one prospect-list creation. The row is
inserted as ``pending`` *before* calling Wiza; a partial unique index over
the active statuses turns a concurrent duplicate insert into a unique
violation, which the service treats as "someone else is already doing this".
"""

from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy import Column, Index, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field

from careerlyst.infrastructure.db.models.base import TrackedRecord


class WizaRequestStatus(str, Enum):
    """Reservation lifecycle."""
    PENDING = "pending"  # reserved, Wiza not called yet (or the call failed)
    PROCESSING = "processing"  # list created, contacts not imported yet
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_WIZA_STATUSES = (WizaRequestStatus.PENDING, WizaRequestStatus.PROCESSING)

# NULL application ids are stored as this key so the unique index applies
NO_APPLICATION_KEY = ""


class WizaRequestModel(TrackedRecord, table=True):
    """Prospect-list reservation and its Wiza result."""

    __tablename__ = "wiza_requests"
    __table_args__ = (
        Index(
            "uq_wiza_requests_active_key",
            "user_id",
            "company_id",
            "application_key",
            unique=True,
            postgresql_where=text("status IN ('pending', 'processing')"),
        ),
    )

    user_id: UUID = Field(..., index=True)
    company_id: UUID = Field(..., index=True)
    application_id: Optional[UUID] = Field(default=None)
    application_key: str = Field(default=NO_APPLICATION_KEY, max_length=64)

    wiza_list_id: Optional[str] = Field(default=None, max_length=100)
    search_name: str = Field(..., max_length=500)
    search_type: str = Field(..., max_length=20)
    max_profiles: int = Field(default=10)
    job_titles: Optional[list] = Field(default=None, sa_column=Column(JSONB))

    status: str = Field(default=WizaRequestStatus.PENDING.value, max_length=20)
    wiza_status: Optional[str] = Field(default=None, max_length=50)
    wiza_response: Optional[dict] = Field(default=None, sa_column=Column(JSONB))
