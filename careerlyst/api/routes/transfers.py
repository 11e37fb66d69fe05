"""
Subscription Transfer Routes

Moves subscriptions bought on the legacy Bubble app onto Careerlyst
accounts: automatically on signup (matched by email), or manually by
email or Stripe customer ID.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from careerlyst.domain.subscription import TransferRequest, TransferResponse
from careerlyst.api.dependencies import CurrentUserDep, ReconcilerDep


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/auth/transfer-bubble", response_model=TransferResponse)
async def transfer_bubble_subscription(user: CurrentUserDep, reconciler: ReconcilerDep):
    """
    Auto-transfer a Bubble subscription after signup or email confirmation.

    Safe to call repeatedly: once matched, later calls report
    "Already transferred".
    """
    if not user.email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    return await reconciler.transfer_legacy_user(user.id, user.email)


@router.post("/billing/transfer", response_model=TransferResponse)
async def transfer_subscription(
    request: TransferRequest,
    user: CurrentUserDep,
    reconciler: ReconcilerDep,
):
    """
    Manually attach an existing Stripe subscription to the caller.

    ``stripeCustomerId`` takes precedence over the email lookup.
    """
    logger.info(f"Manual subscription transfer requested by user {user.id}")
    return await reconciler.transfer_by_customer(
        user.id,
        request.email.strip().lower(),
        request.stripe_customer_id,
    )
