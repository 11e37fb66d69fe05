"""
Subscription Database Model

SQLModel table for reconciled Stripe subscriptions.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlmodel import Field
from sqlalchemy import Column, DateTime
from sqlalchemy.dialects.postgresql import UUID as PGUUID

from careerlyst.infrastructure.db.models.base import TrackedRecord


class SubscriptionModel(TrackedRecord, table=True):
    """
    Subscription table, one row per Stripe subscription.

    Maps to the 'subscriptions' table in PostgreSQL. A user may own several
    rows over time; ``stripe_subscription_id`` is the upsert conflict target.
    """

    __tablename__ = "subscriptions"

    user_id: UUID = Field(sa_column=Column(PGUUID(as_uuid=True), index=True, nullable=False))

    # Stripe IDs
    stripe_customer_id: str = Field(index=True)
    stripe_subscription_id: str = Field(unique=True, index=True)
    stripe_price_id: str = Field(default="")

    # Subscription details
    plan: str = Field(default="learn")
    billing_cadence: str = Field(default="monthly")
    status: str = Field(default="incomplete")

    # Billing period dates
    current_period_start: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    current_period_end: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    cancel_at_period_end: bool = Field(default=False)
    canceled_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    trial_start: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    trial_end: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))

    # Bubble migration provenance
    transferred_from_bubble: bool = Field(default=False)
    transferred_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
