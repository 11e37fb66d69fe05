"""
Subscription Domain Models

Domain models for subscription management following Clean Architecture.
Enums, DTOs, and domain entities for the billing bounded context.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class Plan(str, Enum):
    """Subscription tier."""
    LEARN = "learn"
    ACCELERATE = "accelerate"


class BillingCadence(str, Enum):
    """Renewal frequency."""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status (mirrors Stripe's status values)."""
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    UNPAID = "unpaid"
    PAUSED = "paused"


# Statuses that count as "the user's current subscription"
ACTIVE_STATUSES = (
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.TRIALING,
    SubscriptionStatus.PAST_DUE,
)


# =============================================================================
# Domain Entities
# =============================================================================

class SubscriptionSnapshot(BaseModel):
    """
    Reconciled subscription state, written as one row per
    ``stripe_subscription_id``.
    """
    user_id: str
    stripe_customer_id: str
    stripe_subscription_id: str
    plan: Plan
    billing_cadence: BillingCadence
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    stripe_price_id: str = ""
    transferred_from_bubble: bool = False
    transferred_at: Optional[datetime] = None

    def summary(self) -> "SubscriptionSummary":
        return SubscriptionSummary(
            plan=self.plan,
            billingCadence=self.billing_cadence,
            status=self.status,
        )


class Subscription(SubscriptionSnapshot):
    """Stored subscription row."""
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LegacyUser(BaseModel):
    """Pre-imported Bubble user awaiting migration."""
    id: str
    email: str
    stripe_customer_id: Optional[str] = None
    current_plan: Optional[str] = None
    subscription_frequency: Optional[str] = None
    matched_user_id: Optional[str] = None
    matched_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Request/Response DTOs
# =============================================================================

class SubscriptionSummary(BaseModel):
    """Plan/status/cadence summary returned to the client."""
    plan: Plan
    billingCadence: BillingCadence
    status: SubscriptionStatus


class SyncSubscriptionResponse(BaseModel):
    """Response DTO for a subscription re-sync."""
    success: bool = True
    subscription: SubscriptionSummary
    cancel_at_period_end: bool = False
    current_period_end: Optional[datetime] = None


class TransferRequest(BaseModel):
    """Request DTO for a manual subscription transfer."""
    email: str = Field(..., min_length=3, description="Email on the Stripe customer")
    stripe_customer_id: Optional[str] = Field(
        default=None,
        alias="stripeCustomerId",
        description="Stripe customer ID, used instead of an email lookup",
    )

    model_config = ConfigDict(populate_by_name=True)


class TransferResponse(BaseModel):
    """Response DTO for Bubble and manual transfers."""
    transferred: bool
    message: str
    subscription: Optional[SubscriptionSummary] = None
    matched_at: Optional[datetime] = None


class CancelSubscriptionRequest(BaseModel):
    """Request DTO for scheduling or undoing a cancellation."""
    cancel: bool = Field(..., description="True to cancel at period end, False to reactivate")


class CancelSubscriptionResponse(BaseModel):
    """Response DTO for cancellation changes."""
    success: bool = True
    cancel_at_period_end: bool


class UpdateSubscriptionRequest(BaseModel):
    """Request DTO for switching plan or billing cadence."""
    plan: Plan
    billing_cadence: BillingCadence = Field(..., alias="billingCadence")

    model_config = ConfigDict(populate_by_name=True)


class UpdateSubscriptionResponse(BaseModel):
    """Response DTO for a plan or cadence switch."""
    success: bool = True
    message: str = "Subscription updated successfully"
    subscription: SubscriptionSummary


class SubscriptionStatusResponse(BaseModel):
    """Response DTO for the current subscription."""
    plan: Plan
    billing_cadence: BillingCadence
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool = False
    trial_end: Optional[datetime] = None
    portfolio_entitled: bool = Field(description="Whether the public portfolio may stay published")
