"""
Subscription Repository

Data access layer for reconciled subscriptions.
Follows Repository pattern for Clean Architecture.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4, UUID

from sqlmodel import select
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.dialects.postgresql import insert as pg_insert

from careerlyst.infrastructure.db.database import get_session_context
from careerlyst.infrastructure.db.models.subscription import SubscriptionModel
from careerlyst.infrastructure.exceptions import PersistenceError
from careerlyst.domain.subscription import (
    Subscription,
    SubscriptionSnapshot,
    SubscriptionStatus,
    ACTIVE_STATUSES,
)


logger = logging.getLogger(__name__)

# Only a Bubble transfer may write these; a plain sync leaves them untouched
PROVENANCE_COLUMNS = ("transferred_from_bubble", "transferred_at")


def _as_uuid(value) -> UUID:
    return UUID(value) if isinstance(value, str) else value


class SubscriptionRepository:
    """
    Repository for subscription data access.

    Every write is a single statement so a failed request never leaves a
    half-written row behind.
    """

    # =========================================================================
    # Query Methods
    # =========================================================================

    async def get_customer_id_for_user(self, user_id: str) -> Optional[str]:
        """
        Stripe customer ID from the user's most recent subscription row.

        Args:
            user_id: Internal user ID

        Returns:
            Stripe customer ID or None if the user has no rows yet
        """
        async with get_session_context() as session:
            statement = (
                select(SubscriptionModel.stripe_customer_id)
                .where(SubscriptionModel.user_id == _as_uuid(user_id))
                .order_by(SubscriptionModel.created_at.desc())
                .limit(1)
            )
            result = await session.execute(statement)
            return result.scalar_one_or_none()

    async def get_active_for_user(self, user_id: str) -> Optional[Subscription]:
        """
        The user's current subscription.

        A user may have several historical rows; the most recently created
        one in an active/trialing/past_due state wins.
        """
        async with get_session_context() as session:
            statement = (
                select(SubscriptionModel)
                .where(
                    SubscriptionModel.user_id == _as_uuid(user_id),
                    SubscriptionModel.status.in_([s.value for s in ACTIVE_STATUSES]),
                )
                .order_by(SubscriptionModel.created_at.desc())
                .limit(1)
            )
            result = await session.execute(statement)
            model = result.scalars().first()

            if model:
                return self._to_domain(model)

            return None

    # =========================================================================
    # Command Methods
    # =========================================================================

    async def upsert(self, snapshot: SubscriptionSnapshot) -> None:
        """
        Insert or fully overwrite the row for ``snapshot.stripe_subscription_id``.

        Provenance columns are only overwritten when the snapshot itself is a
        Bubble transfer.

        Raises:
            PersistenceError: on any database error (payload is logged)
        """
        now = datetime.now(timezone.utc)
        values = self._to_values(snapshot)

        stmt = pg_insert(SubscriptionModel).values(
            id=uuid4(),
            created_at=now,
            updated_at=now,
            **values,
        )

        overwrite = [
            column for column in values
            if column != "stripe_subscription_id"
            and (snapshot.transferred_from_bubble or column not in PROVENANCE_COLUMNS)
        ]
        set_ = {column: getattr(stmt.excluded, column) for column in overwrite}
        set_["updated_at"] = now

        stmt = stmt.on_conflict_do_update(
            index_elements=["stripe_subscription_id"],
            set_=set_,
        )

        try:
            async with get_session_context() as session:
                await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                f"Error syncing subscription {snapshot.stripe_subscription_id} to database: {e}; "
                f"payload={snapshot.model_dump_json()}"
            )
            raise PersistenceError(
                "Failed to sync subscription to database",
                operation="upsert",
                table=SubscriptionModel.__tablename__,
                original_error=e,
            )

        logger.info(
            f"Upserted subscription {snapshot.stripe_subscription_id} for user {snapshot.user_id} "
            f"({snapshot.plan.value}/{snapshot.billing_cadence.value}, {snapshot.status.value})"
        )

    async def mark_status(
        self,
        stripe_subscription_id: str,
        status: SubscriptionStatus,
        canceled_at: Optional[datetime] = None,
    ) -> int:
        """
        Set the status of an existing row (webhook delete / payment failure).

        Returns:
            Number of rows updated
        """
        values = {"status": status.value, "updated_at": datetime.now(timezone.utc)}
        if canceled_at is not None:
            values["canceled_at"] = canceled_at

        statement = (
            update(SubscriptionModel)
            .where(SubscriptionModel.stripe_subscription_id == stripe_subscription_id)
            .values(**values)
        )

        try:
            async with get_session_context() as session:
                result = await session.execute(statement)
        except SQLAlchemyError as e:
            logger.error(f"Error setting subscription {stripe_subscription_id} to {status.value}: {e}")
            raise PersistenceError(
                f"Failed to update subscription status to {status.value}",
                operation="update",
                table=SubscriptionModel.__tablename__,
                original_error=e,
            )

        return result.rowcount

    # =========================================================================
    # Mapping Methods
    # =========================================================================

    def _to_values(self, snapshot: SubscriptionSnapshot) -> dict:
        """Column values for an insert."""
        values = snapshot.model_dump(mode="python")
        values["user_id"] = _as_uuid(snapshot.user_id)
        values["plan"] = snapshot.plan.value
        values["billing_cadence"] = snapshot.billing_cadence.value
        values["status"] = snapshot.status.value
        return values

    def _to_domain(self, model: SubscriptionModel) -> Subscription:
        """Convert database model to domain entity."""
        return Subscription(
            id=str(model.id),
            user_id=str(model.user_id),
            stripe_customer_id=model.stripe_customer_id,
            stripe_subscription_id=model.stripe_subscription_id,
            plan=model.plan,
            billing_cadence=model.billing_cadence,
            status=model.status,
            current_period_start=model.current_period_start,
            current_period_end=model.current_period_end,
            cancel_at_period_end=model.cancel_at_period_end or False,
            canceled_at=model.canceled_at,
            trial_start=model.trial_start,
            trial_end=model.trial_end,
            stripe_price_id=model.stripe_price_id or "",
            transferred_from_bubble=model.transferred_from_bubble or False,
            transferred_at=model.transferred_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


# =============================================================================
# Singleton Instance
# =============================================================================

_subscription_repo_instance: Optional[SubscriptionRepository] = None


def get_subscription_repository() -> SubscriptionRepository:
    """Get or create subscription repository singleton."""
    global _subscription_repo_instance

    if _subscription_repo_instance is None:
        _subscription_repo_instance = SubscriptionRepository()

    return _subscription_repo_instance
