"""
Legacy User Repository

Lookups and match-marking for the Bubble export table.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlmodel import select
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from careerlyst.infrastructure.db.database import get_session_context
from careerlyst.infrastructure.db.models.legacy_user import LegacyUserModel
from careerlyst.infrastructure.exceptions import PersistenceError
from careerlyst.domain.subscription import LegacyUser


logger = logging.getLogger(__name__)


class LegacyUserRepository:
    """Repository for ``bubble_users`` rows."""

    async def get_by_email(self, email: str) -> Optional[LegacyUser]:
        """
        Find the legacy row for an email (compared lowercased and trimmed).

        Raises:
            PersistenceError: if the lookup fails
        """
        normalized = email.strip().lower()
        try:
            async with get_session_context() as session:
                statement = select(LegacyUserModel).where(LegacyUserModel.email == normalized)
                result = await session.execute(statement)
                model = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error checking bubble_users for {normalized}: {e}")
            raise PersistenceError(
                "Failed to check migration data",
                operation="select",
                table=LegacyUserModel.__tablename__,
                original_error=e,
            )

        if model is None:
            return None

        return LegacyUser(
            id=str(model.id),
            email=model.email,
            stripe_customer_id=model.stripe_customer_id,
            current_plan=model.current_plan,
            subscription_frequency=model.subscription_frequency,
            matched_user_id=str(model.matched_user_id) if model.matched_user_id else None,
            matched_at=model.matched_at,
        )

    async def mark_matched(self, legacy_user_id: str, user_id: str) -> Optional[datetime]:
        """
        Record that ``user_id`` claimed this legacy row.

        Only unmatched rows are updated, so a second caller cannot
        overwrite the first match.

        Returns:
            The match timestamp, or None if the row was already matched
        """
        matched_at = datetime.now(timezone.utc)
        statement = (
            update(LegacyUserModel)
            .where(
                LegacyUserModel.id == UUID(legacy_user_id),
                LegacyUserModel.matched_user_id.is_(None),
            )
            .values(matched_user_id=UUID(user_id), matched_at=matched_at)
        )

        try:
            async with get_session_context() as session:
                result = await session.execute(statement)
        except SQLAlchemyError as e:
            logger.error(f"Error marking bubble user {legacy_user_id} as matched: {e}")
            raise PersistenceError(
                "Failed to mark legacy user as matched",
                operation="update",
                table=LegacyUserModel.__tablename__,
                original_error=e,
            )

        if result.rowcount == 0:
            logger.warning(f"Bubble user {legacy_user_id} was already matched; not claiming for {user_id}")
            return None

        logger.info(f"Matched bubble user {legacy_user_id} to user {user_id}")
        return matched_at


_legacy_user_repo_instance: Optional[LegacyUserRepository] = None


def get_legacy_user_repository() -> LegacyUserRepository:
    """Get or create legacy user repository singleton."""
    global _legacy_user_repo_instance

    if _legacy_user_repo_instance is None:
        _legacy_user_repo_instance = LegacyUserRepository()

    return _legacy_user_repo_instance
