"""
Portfolio Database Model

Only the columns the entitlement rules touch. The table itself is owned
by the portfolio feature.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlmodel import Field, SQLModel


class PortfolioModel(SQLModel, table=True):
    """User's public product portfolio."""

    __tablename__ = "portfolios"

    id: UUID = Field(default_factory=uuid4, sa_column=Column(PGUUID(as_uuid=True), primary_key=True))
    user_id: UUID = Field(sa_column=Column(PGUUID(as_uuid=True), index=True, nullable=False))
    slug: Optional[str] = Field(default=None, index=True)
    is_published: bool = Field(default=False)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), sa_type=DateTime(timezone=True))
