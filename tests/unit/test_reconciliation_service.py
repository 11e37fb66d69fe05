"""
Unit tests for SubscriptionReconciler.

Stripe and the repositories are mocked; the pure resolution/extraction
logic runs for real.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from careerlyst.domain.entitlements import PortfolioEntitlementEnforcer
from careerlyst.domain.reconciliation import SubscriptionReconciler
from careerlyst.domain.subscription import (
    BillingCadence,
    LegacyUser,
    Plan,
    Subscription,
    SubscriptionStatus,
)
from careerlyst.infrastructure.exceptions import (
    ConfigurationError,
    MissingPeriodError,
    NotFoundError,
    PersistenceError,
    StripeServiceError,
    ValidationError,
)
from tests.factories import PERIOD_END, PERIOD_START, USER_EMAIL, USER_ID, make_subscription


MATCHED_AT = datetime(2026, 2, 1, tzinfo=timezone.utc)


@pytest.fixture
def reconciler(mock_stripe_service, mock_subscription_repo, mock_legacy_repo, mock_portfolio_repo):
    return SubscriptionReconciler(
        stripe_service=mock_stripe_service,
        subscriptions=mock_subscription_repo,
        legacy_users=mock_legacy_repo,
        entitlements=PortfolioEntitlementEnforcer(portfolios=mock_portfolio_repo),
    )


def legacy_user(**overrides) -> LegacyUser:
    data = {
        "id": "11111111-1111-1111-1111-111111111111",
        "email": USER_EMAIL,
        "stripe_customer_id": "cus_bubble",
        "current_plan": "Accelerate Annual",
        "subscription_frequency": "Yearly",
    }
    data.update(overrides)
    return LegacyUser(**data)


def stored_subscription(**overrides) -> Subscription:
    data = {
        "id": "22222222-2222-2222-2222-222222222222",
        "user_id": USER_ID,
        "stripe_customer_id": "cus_123",
        "stripe_subscription_id": "sub_123",
        "plan": Plan.ACCELERATE,
        "billing_cadence": BillingCadence.QUARTERLY,
        "status": SubscriptionStatus.ACTIVE,
        "current_period_start": datetime.fromtimestamp(PERIOD_START, tz=timezone.utc),
        "current_period_end": datetime.fromtimestamp(PERIOD_END, tz=timezone.utc),
        "stripe_price_id": "price_quarterly",
    }
    data.update(overrides)
    return Subscription(**data)


# =============================================================================
# Sync Path
# =============================================================================

class TestSyncForUser:

    @pytest.mark.asyncio
    async def test_uses_stored_customer_id(self, reconciler, mock_stripe_service, mock_subscription_repo):
        mock_subscription_repo.get_customer_id_for_user.return_value = "cus_stored"
        mock_stripe_service.list_subscriptions.return_value = [make_subscription()]

        await reconciler.sync_for_user(USER_ID, USER_EMAIL)

        mock_stripe_service.find_customer_id_by_email.assert_not_called()
        mock_stripe_service.list_subscriptions.assert_awaited_once_with("cus_stored")

    @pytest.mark.asyncio
    async def test_looks_up_customer_by_email(self, reconciler, mock_stripe_service, mock_subscription_repo):
        mock_stripe_service.find_customer_id_by_email.return_value = "cus_email"
        mock_stripe_service.list_subscriptions.return_value = [make_subscription()]

        snapshot = await reconciler.sync_for_user(USER_ID, USER_EMAIL)

        mock_stripe_service.find_customer_id_by_email.assert_awaited_once_with(USER_EMAIL)
        assert snapshot.stripe_customer_id == "cus_email"
        mock_subscription_repo.upsert.assert_awaited_once_with(snapshot)

    @pytest.mark.asyncio
    async def test_no_customer_is_not_found(self, reconciler, mock_subscription_repo):
        with pytest.raises(NotFoundError):
            await reconciler.sync_for_user(USER_ID, USER_EMAIL)
        mock_subscription_repo.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_email_and_no_stored_customer_is_not_found(self, reconciler, mock_stripe_service):
        with pytest.raises(NotFoundError):
            await reconciler.sync_for_user(USER_ID, None)
        mock_stripe_service.find_customer_id_by_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_subscriptions_is_not_found(self, reconciler, mock_stripe_service, mock_subscription_repo):
        mock_stripe_service.find_customer_id_by_email.return_value = "cus_123"
        mock_stripe_service.list_subscriptions.return_value = []

        with pytest.raises(NotFoundError):
            await reconciler.sync_for_user(USER_ID, USER_EMAIL)
        mock_subscription_repo.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_selects_most_relevant_subscription(
        self, reconciler, mock_stripe_service, sample_subscriptions
    ):
        mock_stripe_service.find_customer_id_by_email.return_value = "cus_123"
        mock_stripe_service.list_subscriptions.return_value = sample_subscriptions

        snapshot = await reconciler.sync_for_user(USER_ID, USER_EMAIL)

        assert snapshot.stripe_subscription_id == "sub_active"
        assert snapshot.plan == Plan.ACCELERATE

    @pytest.mark.asyncio
    async def test_missing_period_never_upserts(self, reconciler, mock_stripe_service, mock_subscription_repo):
        mock_stripe_service.find_customer_id_by_email.return_value = "cus_123"
        mock_stripe_service.list_subscriptions.return_value = [make_subscription(period=None)]

        with pytest.raises(MissingPeriodError):
            await reconciler.sync_for_user(USER_ID, USER_EMAIL)
        mock_subscription_repo.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_persistence_failure_propagates(self, reconciler, mock_stripe_service, mock_subscription_repo):
        mock_stripe_service.find_customer_id_by_email.return_value = "cus_123"
        mock_stripe_service.list_subscriptions.return_value = [make_subscription()]
        mock_subscription_repo.upsert.side_effect = PersistenceError("Failed to sync subscription to database")

        with pytest.raises(PersistenceError):
            await reconciler.sync_for_user(USER_ID, USER_EMAIL)

    @pytest.mark.asyncio
    async def test_learn_plan_unpublishes_portfolio(
        self, reconciler, mock_stripe_service, mock_portfolio_repo
    ):
        mock_stripe_service.find_customer_id_by_email.return_value = "cus_123"
        mock_stripe_service.list_subscriptions.return_value = [make_subscription(metadata={"plan": "learn"})]

        await reconciler.sync_for_user(USER_ID, USER_EMAIL)

        mock_portfolio_repo.unpublish_for_user.assert_awaited_once_with(USER_ID)

    @pytest.mark.asyncio
    async def test_entitlement_failure_does_not_fail_sync(
        self, reconciler, mock_stripe_service, mock_portfolio_repo, mock_subscription_repo
    ):
        mock_stripe_service.find_customer_id_by_email.return_value = "cus_123"
        mock_stripe_service.list_subscriptions.return_value = [make_subscription()]
        mock_portfolio_repo.unpublish_for_user.side_effect = RuntimeError("boom")

        snapshot = await reconciler.sync_for_user(USER_ID, USER_EMAIL)

        assert snapshot.status == SubscriptionStatus.ACTIVE
        mock_subscription_repo.upsert.assert_awaited_once()


# =============================================================================
# Bubble Transfer Path
# =============================================================================

class TestTransferLegacyUser:

    @pytest.mark.asyncio
    async def test_no_legacy_record(self, reconciler, mock_legacy_repo):
        result = await reconciler.transfer_legacy_user(USER_ID, USER_EMAIL)

        assert result.transferred is False
        assert result.message == "No matching Bubble user found"
        mock_legacy_repo.mark_matched.assert_not_called()

    @pytest.mark.asyncio
    async def test_already_transferred_is_idempotent(
        self, reconciler, mock_legacy_repo, mock_stripe_service, mock_subscription_repo
    ):
        mock_legacy_repo.get_by_email.return_value = legacy_user(
            matched_user_id=USER_ID,
            matched_at=MATCHED_AT,
        )

        first = await reconciler.transfer_legacy_user(USER_ID, USER_EMAIL)
        second = await reconciler.transfer_legacy_user(USER_ID, USER_EMAIL)

        for result in (first, second):
            assert result.transferred is True
            assert result.message == "Already transferred"
            assert result.matched_at == MATCHED_AT
        mock_stripe_service.list_subscriptions.assert_not_called()
        mock_subscription_repo.upsert.assert_not_called()
        mock_legacy_repo.mark_matched.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_customer_id_marks_matched(self, reconciler, mock_legacy_repo, mock_stripe_service):
        mock_legacy_repo.get_by_email.return_value = legacy_user(stripe_customer_id="  ")

        result = await reconciler.transfer_legacy_user(USER_ID, USER_EMAIL)

        assert result.transferred is False
        assert result.message == "Bubble user found but no active subscription"
        mock_legacy_repo.mark_matched.assert_awaited_once_with(
            "11111111-1111-1111-1111-111111111111", USER_ID
        )
        mock_stripe_service.list_subscriptions.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_stripe_subscriptions_marks_matched(
        self, reconciler, mock_legacy_repo, mock_subscription_repo
    ):
        mock_legacy_repo.get_by_email.return_value = legacy_user()

        result = await reconciler.transfer_legacy_user(USER_ID, USER_EMAIL)

        assert result.transferred is False
        assert result.message == "Bubble user found but no Stripe subscription found"
        mock_legacy_repo.mark_matched.assert_awaited_once()
        mock_subscription_repo.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_transfers_with_legacy_hint_and_provenance(
        self, reconciler, mock_legacy_repo, mock_stripe_service, mock_subscription_repo
    ):
        mock_legacy_repo.get_by_email.return_value = legacy_user()
        mock_legacy_repo.mark_matched.return_value = MATCHED_AT
        mock_stripe_service.list_subscriptions.return_value = [
            make_subscription(cancel_at_period_end=True, price_id="p1", interval="month")
        ]

        result = await reconciler.transfer_legacy_user(USER_ID, USER_EMAIL)

        assert result.transferred is True
        assert result.message == "Subscription transferred successfully"
        assert result.subscription.plan == Plan.ACCELERATE
        assert result.subscription.billingCadence == BillingCadence.MONTHLY
        assert result.subscription.status == SubscriptionStatus.ACTIVE
        assert result.matched_at == MATCHED_AT

        snapshot = mock_subscription_repo.upsert.call_args.args[0]
        assert snapshot.transferred_from_bubble is True
        assert snapshot.transferred_at is not None
        assert snapshot.stripe_customer_id == "cus_bubble"
        assert snapshot.cancel_at_period_end is True
        mock_stripe_service.list_subscriptions.assert_awaited_once_with("cus_bubble")

    @pytest.mark.asyncio
    async def test_concurrent_claim_reports_already_transferred(
        self, reconciler, mock_legacy_repo, mock_stripe_service
    ):
        mock_legacy_repo.get_by_email.return_value = legacy_user()
        mock_legacy_repo.mark_matched.return_value = None
        mock_stripe_service.list_subscriptions.return_value = [make_subscription()]

        result = await reconciler.transfer_legacy_user(USER_ID, USER_EMAIL)

        assert result.transferred is True
        assert result.message == "Already transferred"
        assert result.matched_at is None

    @pytest.mark.asyncio
    async def test_validation_failure_leaves_record_unmatched(
        self, reconciler, mock_legacy_repo, mock_stripe_service
    ):
        mock_legacy_repo.get_by_email.return_value = legacy_user()
        mock_stripe_service.list_subscriptions.return_value = [make_subscription(period=None)]

        with pytest.raises(MissingPeriodError):
            await reconciler.transfer_legacy_user(USER_ID, USER_EMAIL)
        mock_legacy_repo.mark_matched.assert_not_called()


# =============================================================================
# Manual Transfer Path
# =============================================================================

class TestTransferByCustomer:

    @pytest.mark.asyncio
    async def test_transfer_by_customer_id(self, reconciler, mock_stripe_service, mock_subscription_repo):
        mock_stripe_service.list_subscriptions.return_value = [make_subscription(customer="cus_given")]

        result = await reconciler.transfer_by_customer(USER_ID, USER_EMAIL, "cus_given")

        assert result.transferred is True
        mock_stripe_service.retrieve_customer.assert_awaited_once_with("cus_given")
        mock_stripe_service.find_customer_id_by_email.assert_not_called()
        mock_stripe_service.tag_customer_transfer.assert_awaited_once_with("cus_given", USER_ID)
        snapshot = mock_subscription_repo.upsert.call_args.args[0]
        assert snapshot.transferred_from_bubble is True

    @pytest.mark.asyncio
    async def test_invalid_customer_id_is_validation_error(self, reconciler, mock_stripe_service):
        mock_stripe_service.retrieve_customer.side_effect = StripeServiceError("Invalid Stripe customer ID")

        with pytest.raises(ValidationError) as exc_info:
            await reconciler.transfer_by_customer(USER_ID, USER_EMAIL, "cus_missing")
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_transfer_by_email_not_found(self, reconciler, mock_stripe_service):
        with pytest.raises(NotFoundError):
            await reconciler.transfer_by_customer(USER_ID, USER_EMAIL)
        mock_stripe_service.tag_customer_transfer.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_subscriptions_does_not_tag_customer(self, reconciler, mock_stripe_service):
        mock_stripe_service.find_customer_id_by_email.return_value = "cus_123"

        with pytest.raises(NotFoundError):
            await reconciler.transfer_by_customer(USER_ID, USER_EMAIL)
        mock_stripe_service.tag_customer_transfer.assert_not_called()


# =============================================================================
# Cancellation
# =============================================================================

class TestSetCancelAtPeriodEnd:

    @pytest.mark.asyncio
    async def test_requires_active_subscription(self, reconciler, mock_stripe_service):
        with pytest.raises(NotFoundError) as exc_info:
            await reconciler.set_cancel_at_period_end(USER_ID, True)
        assert exc_info.value.message == "No active subscription found"
        mock_stripe_service.set_cancel_at_period_end.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_keeps_stored_plan_and_price(
        self, reconciler, mock_stripe_service, mock_subscription_repo
    ):
        mock_subscription_repo.get_active_for_user.return_value = stored_subscription()
        mock_stripe_service.set_cancel_at_period_end.return_value = make_subscription(
            cancel_at_period_end=True,
            price_id="price_other",
            interval="month",
        )

        snapshot = await reconciler.set_cancel_at_period_end(USER_ID, True)

        mock_stripe_service.set_cancel_at_period_end.assert_awaited_once_with(
            "sub_123",
            True,
            metadata={"user_id": USER_ID, "plan": "accelerate", "billing_cadence": "quarterly"},
        )
        assert snapshot.cancel_at_period_end is True
        assert snapshot.plan == Plan.ACCELERATE
        assert snapshot.billing_cadence == BillingCadence.QUARTERLY
        assert snapshot.stripe_price_id == "price_quarterly"
        mock_subscription_repo.upsert.assert_awaited_once_with(snapshot)


# =============================================================================
# Plan Changes
# =============================================================================

class TestChangePlan:

    @pytest.fixture
    def prices(self):
        settings = MagicMock()
        settings.stripe_price_id.side_effect = lambda plan, cadence: f"price_{plan}_{cadence}"
        with patch("careerlyst.domain.reconciliation.get_settings", return_value=settings):
            yield settings

    @pytest.mark.asyncio
    async def test_requires_active_subscription(self, reconciler, mock_stripe_service, prices):
        with pytest.raises(NotFoundError) as exc_info:
            await reconciler.change_plan(USER_ID, Plan.LEARN, BillingCadence.YEARLY)

        assert exc_info.value.message == "No active subscription found"
        mock_stripe_service.change_subscription_price.assert_not_called()

    @pytest.mark.asyncio
    async def test_same_plan_and_cadence_is_rejected(
        self, reconciler, mock_stripe_service, mock_subscription_repo, prices
    ):
        mock_subscription_repo.get_active_for_user.return_value = stored_subscription()

        with pytest.raises(ValidationError) as exc_info:
            await reconciler.change_plan(USER_ID, Plan.ACCELERATE, BillingCadence.QUARTERLY)

        assert exc_info.value.message == "You are already on this plan and billing cycle"
        mock_stripe_service.change_subscription_price.assert_not_called()

    @pytest.mark.asyncio
    async def test_unconfigured_price_is_configuration_error(
        self, reconciler, mock_stripe_service, mock_subscription_repo, prices
    ):
        mock_subscription_repo.get_active_for_user.return_value = stored_subscription()
        prices.stripe_price_id.side_effect = None
        prices.stripe_price_id.return_value = None

        with pytest.raises(ConfigurationError) as exc_info:
            await reconciler.change_plan(USER_ID, Plan.LEARN, BillingCadence.MONTHLY)

        assert exc_info.value.details["missing_keys"] == ["STRIPE_PRICE_LEARN_MONTHLY"]
        mock_stripe_service.change_subscription_price.assert_not_called()

    @pytest.mark.asyncio
    async def test_switch_stores_requested_plan_and_price(
        self, reconciler, mock_stripe_service, mock_subscription_repo, mock_portfolio_repo, prices
    ):
        mock_subscription_repo.get_active_for_user.return_value = stored_subscription(
            cancel_at_period_end=True
        )
        # Flexible billing: the period only exists on the line item
        mock_stripe_service.change_subscription_price.return_value = make_subscription(
            price_id="price_learn_yearly",
            interval="year",
            period=None,
            item_period=(PERIOD_START, PERIOD_END),
        )

        snapshot = await reconciler.change_plan(USER_ID, Plan.LEARN, BillingCadence.YEARLY)

        mock_stripe_service.change_subscription_price.assert_awaited_once_with(
            "sub_123",
            "price_learn_yearly",
            metadata={"user_id": USER_ID, "plan": "learn", "billing_cadence": "yearly"},
            clear_cancellation=True,
        )
        assert snapshot.plan == Plan.LEARN
        assert snapshot.billing_cadence == BillingCadence.YEARLY
        assert snapshot.stripe_price_id == "price_learn_yearly"
        assert snapshot.stripe_customer_id == "cus_123"
        assert snapshot.cancel_at_period_end is False
        assert snapshot.current_period_end == datetime.fromtimestamp(PERIOD_END, tz=timezone.utc)
        mock_subscription_repo.upsert.assert_awaited_once_with(snapshot)
        mock_portfolio_repo.unpublish_for_user.assert_awaited_once_with(USER_ID)

    @pytest.mark.asyncio
    async def test_missing_period_never_upserts(
        self, reconciler, mock_stripe_service, mock_subscription_repo, prices
    ):
        mock_subscription_repo.get_active_for_user.return_value = stored_subscription()
        mock_stripe_service.change_subscription_price.return_value = make_subscription(period=None)

        with pytest.raises(MissingPeriodError):
            await reconciler.change_plan(USER_ID, Plan.ACCELERATE, BillingCadence.MONTHLY)
        mock_subscription_repo.upsert.assert_not_called()


# =============================================================================
# Webhook Path
# =============================================================================

class TestWebhookReconciliation:

    @pytest.mark.asyncio
    async def test_skips_subscription_without_user_id(self, reconciler, mock_subscription_repo):
        result = await reconciler.reconcile_webhook_subscription(make_subscription())

        assert result is None
        mock_subscription_repo.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_reconciles_with_metadata_user(self, reconciler, mock_subscription_repo):
        subscription = make_subscription(metadata={"user_id": USER_ID, "plan": "accelerate"})

        snapshot = await reconciler.reconcile_webhook_subscription(subscription)

        assert snapshot.user_id == USER_ID
        assert snapshot.stripe_customer_id == "cus_123"
        mock_subscription_repo.upsert.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_explicit_customer_id_wins(self, reconciler):
        subscription = make_subscription(metadata={"user_id": USER_ID})

        snapshot = await reconciler.reconcile_webhook_subscription(subscription, customer_id="cus_session")

        assert snapshot.stripe_customer_id == "cus_session"

    @pytest.mark.asyncio
    async def test_mark_canceled_revokes_entitlement(
        self, reconciler, mock_subscription_repo, mock_portfolio_repo
    ):
        subscription = make_subscription(status="canceled", metadata={"user_id": USER_ID, "plan": "accelerate"})

        await reconciler.mark_subscription_canceled(subscription)

        args, kwargs = mock_subscription_repo.mark_status.call_args
        assert args == ("sub_123", SubscriptionStatus.CANCELED)
        assert kwargs["canceled_at"] is not None
        mock_portfolio_repo.unpublish_for_user.assert_awaited_once_with(USER_ID)

    @pytest.mark.asyncio
    async def test_mark_past_due(self, reconciler, mock_subscription_repo):
        mock_subscription_repo.mark_status.return_value = 0

        updated = await reconciler.mark_subscription_past_due("sub_unknown")

        assert updated == 0
        mock_subscription_repo.mark_status.assert_awaited_once_with("sub_unknown", SubscriptionStatus.PAST_DUE)
