"""
Company Database Model

Companies tracked by a user in the job-application tracker. Read-only here:
the prospect-list flow looks up the name and LinkedIn URL.
"""

from typing import Optional
from uuid import UUID

from sqlmodel import Field

from careerlyst.infrastructure.db.models.base import TrackedRecord


class CompanyModel(TrackedRecord, table=True):
    """Tracked company."""

    __tablename__ = "companies"

    user_id: Optional[UUID] = Field(default=None, index=True)
    name: str = Field(..., max_length=255)
    linkedin_url: Optional[str] = Field(default=None, max_length=500)
