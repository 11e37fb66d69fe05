"""
Subscription API Routes

REST API endpoints for re-syncing, reading, switching and cancelling the
current user's subscription. Domain errors are mapped to JSON responses by the
exception handlers in main.py.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from careerlyst.domain.entitlements import is_portfolio_entitled
from careerlyst.domain.subscription import (
    CancelSubscriptionRequest,
    CancelSubscriptionResponse,
    SubscriptionStatusResponse,
    SyncSubscriptionResponse,
    UpdateSubscriptionRequest,
    UpdateSubscriptionResponse,
)
from careerlyst.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
    get_subscription_repository,
)
from careerlyst.api.dependencies import (
    CurrentUserDep,
    ReconcilerDep,
    get_current_user_id,
)


logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Sync Endpoint
# =============================================================================

@router.post("/stripe/sync-subscription", response_model=SyncSubscriptionResponse)
async def sync_subscription(user: CurrentUserDep, reconciler: ReconcilerDep):
    """
    Re-sync the caller's subscription from Stripe.

    Used after checkout returns and whenever the client suspects its
    billing state is stale.
    """
    snapshot = await reconciler.sync_for_user(user.id, user.email)

    return SyncSubscriptionResponse(
        subscription=snapshot.summary(),
        cancel_at_period_end=snapshot.cancel_at_period_end,
        current_period_end=snapshot.current_period_end,
    )


# =============================================================================
# Billing Endpoints
# =============================================================================

@router.get("/billing/subscription", response_model=SubscriptionStatusResponse)
async def get_subscription(
    user_id: str = Depends(get_current_user_id),
    repo: SubscriptionRepository = Depends(get_subscription_repository),
):
    """Get the current user's active subscription."""
    subscription = await repo.get_active_for_user(user_id)

    if subscription is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active subscription found",
        )

    return SubscriptionStatusResponse(
        plan=subscription.plan,
        billing_cadence=subscription.billing_cadence,
        status=subscription.status,
        current_period_start=subscription.current_period_start,
        current_period_end=subscription.current_period_end,
        cancel_at_period_end=subscription.cancel_at_period_end,
        trial_end=subscription.trial_end,
        portfolio_entitled=is_portfolio_entitled(subscription.plan, subscription.status),
    )


@router.post("/billing/cancel-subscription", response_model=CancelSubscriptionResponse)
async def cancel_subscription(
    request: CancelSubscriptionRequest,
    reconciler: ReconcilerDep,
    user_id: str = Depends(get_current_user_id),
):
    """
    Cancel at period end (``cancel: true``) or reactivate (``cancel: false``).

    Access continues until the end of the current billing period.
    """
    snapshot = await reconciler.set_cancel_at_period_end(user_id, request.cancel)

    logger.info(
        f"User {user_id} set cancel_at_period_end={snapshot.cancel_at_period_end} "
        f"on {snapshot.stripe_subscription_id}"
    )
    return CancelSubscriptionResponse(cancel_at_period_end=snapshot.cancel_at_period_end)


@router.post("/billing/update-subscription", response_model=UpdateSubscriptionResponse)
async def update_subscription(
    request: UpdateSubscriptionRequest,
    reconciler: ReconcilerDep,
    user_id: str = Depends(get_current_user_id),
):
    """
    Switch plan and/or billing cadence.

    The difference is prorated and charged immediately; a pending
    cancellation is lifted.
    """
    snapshot = await reconciler.change_plan(user_id, request.plan, request.billing_cadence)

    return UpdateSubscriptionResponse(subscription=snapshot.summary())
