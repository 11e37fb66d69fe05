"""
Bubble User Database Model

Users exported from the legacy Bubble app, keyed by email. A row is
"matched" once a Careerlyst account has claimed it, whether or not a
Stripe subscription was found to migrate.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlmodel import Field, SQLModel


class LegacyUserModel(SQLModel, table=True):
    """Legacy (Bubble) user mapping row."""

    __tablename__ = "bubble_users"

    id: UUID = Field(default_factory=uuid4, sa_column=Column(PGUUID(as_uuid=True), primary_key=True))
    email: str = Field(unique=True, index=True, description="Lowercased email from the Bubble export")

    stripe_customer_id: Optional[str] = Field(default=None, index=True)
    current_plan: Optional[str] = Field(default=None, description="Free-text plan label, e.g. 'Accelerate Annual'")
    subscription_frequency: Optional[str] = Field(default=None, description="Free-text frequency, e.g. 'Quarterly'")

    matched_user_id: Optional[UUID] = Field(default=None, sa_column=Column(PGUUID(as_uuid=True), index=True))
    matched_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), sa_type=DateTime(timezone=True))
