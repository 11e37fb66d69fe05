"""
Stripe Billing Service

Clean Architecture infrastructure service wrapping the Stripe SDK for
subscription reconciliation: customer lookup, subscription listing,
cancellation and price changes, and webhook verification.

Every Stripe failure is logged with the original error and re-raised as
StripeServiceError; nothing is retried within a request.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
import stripe
from stripe import StripeError

from careerlyst.config.settings import get_settings
from careerlyst.infrastructure.exceptions import StripeServiceError


logger = logging.getLogger(__name__)


class StripeService:
    """
    Stripe billing provider client.

    All methods are stateless; the API key is configured once at
    construction.
    """

    def __init__(self):
        """Initialize Stripe with API key from settings."""
        settings = get_settings()
        self._api_key = settings.stripe_secret_key
        self._webhook_secret = settings.stripe_webhook_secret
        self._list_limit = settings.stripe_subscription_list_limit

        if self._api_key:
            stripe.api_key = self._api_key

    # =========================================================================
    # Customers
    # =========================================================================

    async def find_customer_id_by_email(self, email: str) -> Optional[str]:
        """
        Look up a Stripe customer by email.

        Args:
            email: Customer email

        Returns:
            The first matching customer ID, or None
        """
        try:
            customers = stripe.Customer.list(email=email, limit=1)
        except StripeError as e:
            logger.error(f"Failed to list Stripe customers for {email}: {e}")
            raise StripeServiceError(
                f"Failed to look up customer: {e.user_message or e}",
                operation="customers.list",
                original_error=e,
            )

        if not customers.data:
            return None
        return customers.data[0].id

    async def retrieve_customer(self, customer_id: str) -> stripe.Customer:
        """
        Retrieve a customer, failing if it does not exist or was deleted.

        Raises:
            StripeServiceError: invalid, missing or deleted customer
        """
        try:
            customer = stripe.Customer.retrieve(customer_id)
        except StripeError as e:
            logger.warning(f"Stripe customer {customer_id} could not be retrieved: {e}")
            raise StripeServiceError(
                "Invalid Stripe customer ID",
                operation="customers.retrieve",
                original_error=e,
            )

        if customer.get("deleted"):
            raise StripeServiceError(
                "Invalid Stripe customer ID",
                operation="customers.retrieve",
            )
        return customer

    async def tag_customer_transfer(self, customer_id: str, user_id: str) -> None:
        """Point the customer's metadata at the new user after a transfer."""
        try:
            stripe.Customer.modify(
                customer_id,
                metadata={
                    "user_id": user_id,
                    "transferred_from_bubble": "true",
                    "transfer_date": datetime.now(timezone.utc).isoformat(),
                },
            )
        except StripeError as e:
            logger.error(f"Failed to tag Stripe customer {customer_id}: {e}")
            raise StripeServiceError(
                f"Failed to update customer: {e.user_message or e}",
                operation="customers.update",
                original_error=e,
            )

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def list_subscriptions(self, customer_id: str) -> list:
        """
        All of a customer's subscriptions, any status.

        Args:
            customer_id: Stripe customer ID

        Returns:
            List of stripe.Subscription, newest first
        """
        try:
            subscriptions = stripe.Subscription.list(
                customer=customer_id,
                status="all",
                limit=self._list_limit,
            )
        except StripeError as e:
            logger.error(f"Failed to list subscriptions for customer {customer_id}: {e}")
            raise StripeServiceError(
                f"Failed to list subscriptions: {e.user_message or e}",
                operation="subscriptions.list",
                original_error=e,
            )
        return list(subscriptions.data)

    async def retrieve_subscription(self, subscription_id: str) -> stripe.Subscription:
        """Retrieve a subscription by ID."""
        try:
            return stripe.Subscription.retrieve(subscription_id)
        except StripeError as e:
            logger.error(f"Failed to retrieve subscription {subscription_id}: {e}")
            raise StripeServiceError(
                f"Failed to retrieve subscription: {e.user_message or e}",
                operation="subscriptions.retrieve",
                original_error=e,
            )

    async def set_cancel_at_period_end(
        self,
        subscription_id: str,
        cancel: bool,
        metadata: Optional[dict] = None,
    ) -> stripe.Subscription:
        """
        Schedule (or undo) cancellation at the end of the current period.

        Args:
            subscription_id: Stripe subscription ID
            cancel: True to cancel at period end, False to reactivate
            metadata: Metadata to write alongside the change

        Returns:
            Updated stripe.Subscription
        """
        params = {"cancel_at_period_end": cancel}
        if metadata:
            params["metadata"] = metadata

        try:
            subscription = stripe.Subscription.modify(subscription_id, **params)
        except StripeError as e:
            logger.error(f"Failed to update cancellation on {subscription_id}: {e}")
            raise StripeServiceError(
                f"Failed to update subscription: {e.user_message or e}",
                operation="subscriptions.update",
                original_error=e,
            )

        logger.info(f"Set cancel_at_period_end={cancel} on subscription {subscription_id}")
        return subscription

    async def change_subscription_price(
        self,
        subscription_id: str,
        price_id: str,
        metadata: dict,
        clear_cancellation: bool = False,
    ) -> stripe.Subscription:
        """
        Move a subscription's first line item to ``price_id``.

        The difference is prorated and invoiced immediately. With
        ``clear_cancellation`` a scheduled cancellation is undone in the
        same update.

        Returns:
            Updated stripe.Subscription
        """
        current = await self.retrieve_subscription(subscription_id)
        items = current["items"]["data"]
        if not items:
            raise StripeServiceError(
                f"Subscription {subscription_id} has no items",
                operation="subscriptions.update",
            )

        params = {
            "items": [{"id": items[0]["id"], "price": price_id}],
            "metadata": metadata,
            "proration_behavior": "always_invoice",
        }
        if clear_cancellation:
            params["cancel_at_period_end"] = False

        try:
            subscription = stripe.Subscription.modify(subscription_id, **params)
        except StripeError as e:
            logger.error(f"Failed to change price on {subscription_id}: {e}")
            raise StripeServiceError(
                f"Failed to update subscription: {e.user_message or e}",
                operation="subscriptions.update",
                original_error=e,
            )

        logger.info(f"Moved subscription {subscription_id} to price {price_id}")
        return subscription

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str,
    ) -> stripe.Event:
        """
        Verify webhook signature and construct event.

        Raises:
            StripeServiceError if the secret is missing or the signature invalid
        """
        if not self._webhook_secret:
            raise StripeServiceError("Webhook secret not configured", operation="webhooks.construct_event")

        try:
            return stripe.Webhook.construct_event(
                payload,
                signature,
                self._webhook_secret,
            )
        except ValueError as e:
            raise StripeServiceError(f"Invalid payload: {e}", operation="webhooks.construct_event")
        except stripe.error.SignatureVerificationError as e:
            raise StripeServiceError(f"Invalid signature: {e}", operation="webhooks.construct_event")


# =============================================================================
# Singleton Instance (Dependency Injection Ready)
# =============================================================================

_stripe_service_instance: Optional[StripeService] = None


def get_stripe_service() -> StripeService:
    """Get or create Stripe service singleton."""
    global _stripe_service_instance

    if _stripe_service_instance is None:
        _stripe_service_instance = StripeService()

    return _stripe_service_instance
