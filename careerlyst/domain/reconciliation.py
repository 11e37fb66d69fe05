"""
Subscription Reconciliation Service

Brings the ``subscriptions`` table in line with Stripe. Every entry point
(user-initiated sync, Bubble transfer, manual transfer, cancellation change,
plan change, webhook) ends in the same step: build a snapshot, upsert it,
then run the entitlement side-effects.

Flow:
1. Resolve the Stripe customer
2. Pick the most relevant subscription
3. Resolve plan/cadence and billing period (pure, in billing.py)
4. Upsert keyed by stripe_subscription_id
5. Unpublish gated resources the new state no longer allows
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from careerlyst.config.settings import get_settings
from careerlyst.domain.billing import (
    LegacyHint,
    PlanResolution,
    build_subscription_snapshot,
    resolve_plan_and_cadence,
    select_most_relevant_subscription,
    stripe_field,
)
from careerlyst.domain.entitlements import PortfolioEntitlementEnforcer
from careerlyst.domain.subscription import (
    BillingCadence,
    Plan,
    SubscriptionSnapshot,
    SubscriptionStatus,
    TransferResponse,
)
from careerlyst.infrastructure.db.repositories.legacy_user_repository import (
    LegacyUserRepository,
    get_legacy_user_repository,
)
from careerlyst.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
    get_subscription_repository,
)
from careerlyst.infrastructure.exceptions import (
    ConfigurationError,
    NotFoundError,
    StripeServiceError,
    ValidationError,
)
from careerlyst.infrastructure.payments.stripe_service import (
    StripeService,
    get_stripe_service,
)


logger = logging.getLogger(__name__)


def _customer_id(subscription: Any) -> Optional[str]:
    customer = stripe_field(subscription, "customer")
    if customer is None or isinstance(customer, str):
        return customer
    return stripe_field(customer, "id")


class SubscriptionReconciler:
    """
    Reconciles Stripe subscription state into the database.

    Collaborators are injectable for tests; by default the process-wide
    singletons are used.
    """

    def __init__(
        self,
        stripe_service: Optional[StripeService] = None,
        subscriptions: Optional[SubscriptionRepository] = None,
        legacy_users: Optional[LegacyUserRepository] = None,
        entitlements: Optional[PortfolioEntitlementEnforcer] = None,
    ):
        self._stripe = stripe_service or get_stripe_service()
        self._subscriptions = subscriptions or get_subscription_repository()
        self._legacy_users = legacy_users or get_legacy_user_repository()
        self._entitlements = entitlements or PortfolioEntitlementEnforcer()

    # =========================================================================
    # Write Step
    # =========================================================================

    async def _reconcile(
        self,
        subscription: Any,
        user_id: str,
        customer_id: str,
        legacy_hint: Optional[LegacyHint] = None,
        resolution: Optional[PlanResolution] = None,
        price_id: Optional[str] = None,
        transferred_at: Optional[datetime] = None,
    ) -> SubscriptionSnapshot:
        # Raises MissingPeriodError before anything is written
        snapshot = build_subscription_snapshot(
            subscription,
            user_id=user_id,
            customer_id=customer_id,
            legacy_hint=legacy_hint,
            resolution=resolution,
            price_id=price_id,
            transferred_at=transferred_at,
        )

        await self._subscriptions.upsert(snapshot)
        await self._entitlements.enforce(user_id, snapshot.plan, snapshot.status)
        return snapshot

    async def _list_most_relevant(self, customer_id: str) -> Optional[Any]:
        subscriptions = await self._stripe.list_subscriptions(customer_id)
        return select_most_relevant_subscription(subscriptions)

    # =========================================================================
    # Sync Path
    # =========================================================================

    async def sync_for_user(self, user_id: str, email: Optional[str]) -> SubscriptionSnapshot:
        """
        Re-sync the user's subscription from Stripe.

        The customer comes from the user's stored subscription, or from a
        Stripe lookup by email when nothing is stored yet.

        Raises:
            NotFoundError: no Stripe customer or no subscriptions
            MissingPeriodError: period dates could not be derived
        """
        customer_id = await self._subscriptions.get_customer_id_for_user(user_id)

        if not customer_id:
            if not email:
                raise NotFoundError("No Stripe customer found", resource="customer", identifier=user_id)
            customer_id = await self._stripe.find_customer_id_by_email(email)
            if not customer_id:
                raise NotFoundError("No Stripe customer found", resource="customer", identifier=email)

        subscription = await self._list_most_relevant(customer_id)
        if subscription is None:
            raise NotFoundError("No subscriptions found", resource="subscription", identifier=customer_id)

        return await self._reconcile(subscription, user_id, customer_id)

    # =========================================================================
    # Transfer Paths
    # =========================================================================

    async def transfer_legacy_user(self, user_id: str, email: str) -> TransferResponse:
        """
        Migrate the Bubble subscription registered under ``email``.

        Idempotent: once a legacy row has a matched user, later calls report
        "Already transferred" and write nothing. The row is also marked
        matched when there is nothing to migrate, so the user is not probed
        again on every login.
        """
        legacy = await self._legacy_users.get_by_email(email)

        if legacy is None:
            return TransferResponse(transferred=False, message="No matching Bubble user found")

        if legacy.matched_user_id:
            return TransferResponse(
                transferred=True,
                message="Already transferred",
                matched_at=legacy.matched_at,
            )

        customer_id = (legacy.stripe_customer_id or "").strip()
        if not customer_id:
            await self._legacy_users.mark_matched(legacy.id, user_id)
            return TransferResponse(
                transferred=False,
                message="Bubble user found but no active subscription",
            )

        subscription = await self._list_most_relevant(customer_id)
        if subscription is None:
            await self._legacy_users.mark_matched(legacy.id, user_id)
            return TransferResponse(
                transferred=False,
                message="Bubble user found but no Stripe subscription found",
            )

        snapshot = await self._reconcile(
            subscription,
            user_id,
            customer_id,
            legacy_hint=LegacyHint(
                plan_label=legacy.current_plan,
                frequency_label=legacy.subscription_frequency,
            ),
            transferred_at=datetime.now(timezone.utc),
        )
        matched_at = await self._legacy_users.mark_matched(legacy.id, user_id)
        if matched_at is None:
            # Another request claimed the row between the lookup and the update
            return TransferResponse(
                transferred=True,
                message="Already transferred",
                subscription=snapshot.summary(),
            )

        logger.info(
            f"Transferred Bubble subscription {snapshot.stripe_subscription_id} "
            f"to user {user_id}"
        )
        return TransferResponse(
            transferred=True,
            message="Subscription transferred successfully",
            subscription=snapshot.summary(),
            matched_at=matched_at,
        )

    async def transfer_by_customer(
        self,
        user_id: str,
        email: str,
        stripe_customer_id: Optional[str] = None,
    ) -> TransferResponse:
        """
        Attach an existing Stripe customer's subscription to ``user_id``.

        Raises:
            ValidationError: the given customer ID is invalid or deleted
            NotFoundError: no customer for the email, or no subscriptions
        """
        if stripe_customer_id:
            try:
                await self._stripe.retrieve_customer(stripe_customer_id)
            except StripeServiceError as e:
                raise ValidationError("Invalid Stripe customer ID", original_error=e)
            customer_id = stripe_customer_id
        else:
            customer_id = await self._stripe.find_customer_id_by_email(email)
            if not customer_id:
                raise NotFoundError(
                    "No Stripe customer found for this email",
                    resource="customer",
                    identifier=email,
                )

        subscription = await self._list_most_relevant(customer_id)
        if subscription is None:
            raise NotFoundError(
                "No subscriptions found for this customer",
                resource="subscription",
                identifier=customer_id,
            )

        await self._stripe.tag_customer_transfer(customer_id, user_id)
        snapshot = await self._reconcile(
            subscription,
            user_id,
            customer_id,
            transferred_at=datetime.now(timezone.utc),
        )

        return TransferResponse(
            transferred=True,
            message="Subscription transferred successfully",
            subscription=snapshot.summary(),
        )

    # =========================================================================
    # Cancellation
    # =========================================================================

    async def set_cancel_at_period_end(self, user_id: str, cancel: bool) -> SubscriptionSnapshot:
        """
        Schedule or undo cancellation of the user's active subscription.

        The stored plan, cadence and price are kept; only the Stripe-side
        state (status, period, cancellation) is refreshed.

        Raises:
            NotFoundError: the user has no active subscription
        """
        current = await self._subscriptions.get_active_for_user(user_id)
        if current is None:
            raise NotFoundError("No active subscription found", resource="subscription", identifier=user_id)

        updated = await self._stripe.set_cancel_at_period_end(
            current.stripe_subscription_id,
            cancel,
            metadata={
                "user_id": user_id,
                "plan": current.plan.value,
                "billing_cadence": current.billing_cadence.value,
            },
        )

        return await self._reconcile(
            updated,
            user_id,
            current.stripe_customer_id,
            resolution=PlanResolution(plan=current.plan, billing_cadence=current.billing_cadence),
            price_id=current.stripe_price_id or None,
        )

    # =========================================================================
    # Plan Changes
    # =========================================================================

    async def change_plan(
        self,
        user_id: str,
        plan: Plan,
        billing_cadence: BillingCadence,
    ) -> SubscriptionSnapshot:
        """
        Switch the user's active subscription to another plan or cadence.

        The change is prorated and invoiced immediately, and a scheduled
        cancellation is lifted. The requested plan and cadence are stored
        as given.

        Raises:
            NotFoundError: the user has no active subscription
            ValidationError: the user is already on this plan and cadence
            ConfigurationError: no Stripe price is configured for the pair
        """
        current = await self._subscriptions.get_active_for_user(user_id)
        if current is None:
            raise NotFoundError("No active subscription found", resource="subscription", identifier=user_id)

        if current.plan == plan and current.billing_cadence == billing_cadence:
            raise ValidationError("You are already on this plan and billing cycle")

        price_id = get_settings().stripe_price_id(plan.value, billing_cadence.value)
        if not price_id:
            key = f"STRIPE_PRICE_{plan.value}_{billing_cadence.value}".upper()
            raise ConfigurationError(
                f"No Stripe price configured for {plan.value}/{billing_cadence.value}",
                missing_keys=[key],
            )

        updated = await self._stripe.change_subscription_price(
            current.stripe_subscription_id,
            price_id,
            metadata={
                "user_id": user_id,
                "plan": plan.value,
                "billing_cadence": billing_cadence.value,
            },
            clear_cancellation=current.cancel_at_period_end,
        )

        snapshot = await self._reconcile(
            updated,
            user_id,
            current.stripe_customer_id,
            resolution=PlanResolution(plan=plan, billing_cadence=billing_cadence),
            price_id=price_id,
        )
        logger.info(
            f"User {user_id} moved {current.stripe_subscription_id} from "
            f"{current.plan.value}/{current.billing_cadence.value} to {plan.value}/{billing_cadence.value}"
        )
        return snapshot

    # =========================================================================
    # Webhook Path
    # =========================================================================

    async def reconcile_webhook_subscription(
        self,
        subscription: Any,
        customer_id: Optional[str] = None,
    ) -> Optional[SubscriptionSnapshot]:
        """
        Reconcile a subscription delivered by (or fetched for) a webhook.

        The owning user is read from ``metadata.user_id``; subscriptions
        without it are skipped.
        """
        metadata = stripe_field(subscription, "metadata") or {}
        user_id = stripe_field(metadata, "user_id")
        subscription_id = stripe_field(subscription, "id")

        if not user_id:
            logger.error(f"No user_id in metadata for subscription {subscription_id}; skipping")
            return None

        customer_id = customer_id or _customer_id(subscription)
        return await self._reconcile(subscription, user_id, customer_id)

    async def mark_subscription_canceled(self, subscription: Any) -> int:
        """Mark a deleted subscription canceled and revoke its entitlements."""
        subscription_id = stripe_field(subscription, "id")
        updated = await self._subscriptions.mark_status(
            subscription_id,
            SubscriptionStatus.CANCELED,
            canceled_at=datetime.now(timezone.utc),
        )
        if not updated:
            logger.warning(f"Canceled subscription {subscription_id} not found in database")

        user_id = stripe_field(stripe_field(subscription, "metadata") or {}, "user_id")
        if user_id:
            plan = resolve_plan_and_cadence(subscription).plan
            await self._entitlements.enforce(user_id, plan, SubscriptionStatus.CANCELED)

        logger.info(f"Subscription {subscription_id} canceled")
        return updated

    async def mark_subscription_past_due(self, subscription_id: str) -> int:
        """Mark a subscription past due after a failed invoice payment."""
        updated = await self._subscriptions.mark_status(subscription_id, SubscriptionStatus.PAST_DUE)
        if not updated:
            logger.warning(f"Past-due subscription {subscription_id} not found in database")

        logger.info(f"Subscription {subscription_id} marked past_due")
        return updated


# =============================================================================
# Singleton Instance
# =============================================================================

_reconciler_instance: Optional[SubscriptionReconciler] = None


def get_subscription_reconciler() -> SubscriptionReconciler:
    """Get or create subscription reconciler singleton."""
    global _reconciler_instance

    if _reconciler_instance is None:
        _reconciler_instance = SubscriptionReconciler()

    return _reconciler_instance
