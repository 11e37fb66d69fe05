"""
Portfolio Repository

Visibility changes driven by subscription entitlements.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import update

from careerlyst.infrastructure.db.database import get_session_context
from careerlyst.infrastructure.db.models.portfolio import PortfolioModel


logger = logging.getLogger(__name__)


class PortfolioRepository:
    """Repository for ``portfolios`` visibility."""

    async def unpublish_for_user(self, user_id: str) -> int:
        """
        Flip the user's published portfolios to unpublished.

        Already-unpublished rows are left alone.

        Returns:
            Number of portfolios unpublished
        """
        statement = (
            update(PortfolioModel)
            .where(
                PortfolioModel.user_id == UUID(user_id),
                PortfolioModel.is_published.is_(True),
            )
            .values(is_published=False, updated_at=datetime.now(timezone.utc))
        )

        async with get_session_context() as session:
            result = await session.execute(statement)

        return result.rowcount


_portfolio_repo_instance: Optional[PortfolioRepository] = None


def get_portfolio_repository() -> PortfolioRepository:
    """Get or create portfolio repository singleton."""
    global _portfolio_repo_instance

    if _portfolio_repo_instance is None:
        _portfolio_repo_instance = PortfolioRepository()

    return _portfolio_repo_instance
