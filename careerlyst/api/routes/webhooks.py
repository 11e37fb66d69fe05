"""
Stripe Webhook Handler

Handles Stripe webhook events for subscription lifecycle management.
Implements idempotent event processing backed by the database (survives restarts).

Critical Events:
- checkout.session.completed: Reconcile the new subscription
- customer.subscription.created/updated: Reconcile changes
- customer.subscription.deleted: Mark canceled
- invoice.payment_succeeded: Reconcile the renewed period
- invoice.payment_failed: Mark past_due

A processing failure returns 500 so Stripe retries the event; the event
is only recorded as processed after its handler succeeded.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Request, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from careerlyst.domain.billing import stripe_field
from careerlyst.domain.reconciliation import (
    SubscriptionReconciler,
    get_subscription_reconciler,
)
from careerlyst.infrastructure.payments.stripe_service import (
    StripeService,
    get_stripe_service,
)
from careerlyst.infrastructure.exceptions import StripeServiceError
from careerlyst.infrastructure.db.database import get_session_context


logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Idempotency: DB-backed processed event tracking
# =============================================================================

async def is_event_processed(event_id: str) -> bool:
    """Check if a webhook event has already been processed (DB query)."""
    async with get_session_context() as session:
        result = await session.execute(
            text("SELECT 1 FROM processed_webhook_events WHERE event_id = :eid"),
            {"eid": event_id},
        )
        return result.scalar_one_or_none() is not None


async def mark_event_processed(event_id: str, event_type: str) -> None:
    """Record a processed webhook event in the database."""
    async with get_session_context() as session:
        await session.execute(
            text(
                "INSERT INTO processed_webhook_events (event_id, event_type) "
                "VALUES (:eid, :etype) ON CONFLICT (event_id) DO NOTHING"
            ),
            {"eid": event_id, "etype": event_type},
        )


# =============================================================================
# Webhook Endpoint
# =============================================================================

@router.post("/webhooks/stripe")
async def stripe_webhook(request: Request):
    """
    Handle Stripe webhook events.

    Verifies signature and processes subscription lifecycle events.
    Returns 200 OK to acknowledge receipt (Stripe will retry on failure).
    """
    stripe_service = get_stripe_service()
    reconciler = get_subscription_reconciler()

    # Get raw payload and signature
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    if not signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing Stripe signature"
        )

    # Verify signature
    try:
        event = stripe_service.verify_webhook_signature(payload, signature)
    except StripeServiceError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature"
        )

    event_id = event.get("id")
    event_type = event.get("type")

    # Idempotency check
    if await is_event_processed(event_id):
        logger.info(f"Event {event_id} already processed, skipping")
        return {"received": True, "status": "already_processed"}

    logger.info(f"Processing webhook event: {event_type} ({event_id})")

    data_object = event["data"]["object"]

    try:
        # Route to appropriate handler
        if event_type == "checkout.session.completed":
            await handle_checkout_completed(data_object, stripe_service, reconciler)

        elif event_type in ("customer.subscription.created", "customer.subscription.updated"):
            await reconciler.reconcile_webhook_subscription(data_object)

        elif event_type == "customer.subscription.deleted":
            await reconciler.mark_subscription_canceled(data_object)

        elif event_type == "invoice.payment_succeeded":
            await handle_invoice_payment_succeeded(data_object, stripe_service, reconciler)

        elif event_type == "invoice.payment_failed":
            await handle_invoice_payment_failed(data_object, reconciler)

        else:
            logger.debug(f"Unhandled event type: {event_type}")

    except Exception as e:
        logger.error(f"Error processing webhook {event_type} ({event_id}): {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Webhook handler failed"},
        )

    # Mark as processed (DB-backed)
    await mark_event_processed(event_id, event_type)

    return {"received": True, "status": "success"}


# =============================================================================
# Event Handlers
# =============================================================================

def invoice_subscription_id(invoice: Any) -> Optional[str]:
    """Subscription ID of an invoice, from either the classic or the ``parent`` shape."""
    subscription_id = stripe_field(invoice, "subscription")
    if subscription_id is None:
        parent = stripe_field(invoice, "parent")
        details = stripe_field(parent, "subscription_details")
        subscription_id = stripe_field(details, "subscription")

    if subscription_id is not None and not isinstance(subscription_id, str):
        subscription_id = stripe_field(subscription_id, "id")
    return subscription_id


async def handle_checkout_completed(
    session: Any,
    stripe_service: StripeService,
    reconciler: SubscriptionReconciler,
) -> None:
    """Reconcile the subscription a completed checkout created."""
    subscription_id = stripe_field(session, "subscription")

    if not subscription_id:
        logger.error("Checkout completed without a subscription ID")
        return

    subscription = await stripe_service.retrieve_subscription(subscription_id)
    await reconciler.reconcile_webhook_subscription(
        subscription,
        customer_id=stripe_field(session, "customer"),
    )


async def handle_invoice_payment_succeeded(
    invoice: Any,
    stripe_service: StripeService,
    reconciler: SubscriptionReconciler,
) -> None:
    """Reconcile the subscription after a successful renewal payment."""
    subscription_id = invoice_subscription_id(invoice)

    if not subscription_id:
        return

    subscription = await stripe_service.retrieve_subscription(subscription_id)
    await reconciler.reconcile_webhook_subscription(subscription)


async def handle_invoice_payment_failed(
    invoice: Any,
    reconciler: SubscriptionReconciler,
) -> None:
    """Set the invoiced subscription to past_due."""
    subscription_id = invoice_subscription_id(invoice)

    if not subscription_id:
        return

    await reconciler.mark_subscription_past_due(subscription_id)
    logger.warning(f"Payment failed for subscription {subscription_id}, set to past_due")
