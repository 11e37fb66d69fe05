"""
Entitlement Side-Effects

Plan/status gates on features. Today the only gated feature is the public
portfolio: it may stay published only on an active or trialing
Accelerate subscription.
"""

import logging
from typing import Optional

from careerlyst.domain.subscription import Plan, SubscriptionStatus
from careerlyst.infrastructure.db.repositories.portfolio_repository import (
    PortfolioRepository,
    get_portfolio_repository,
)


logger = logging.getLogger(__name__)


PORTFOLIO_ENTITLED_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING)


def is_portfolio_entitled(plan: Plan, status: SubscriptionStatus) -> bool:
    """Whether ``plan``/``status`` allows a published portfolio."""
    return plan == Plan.ACCELERATE and status in PORTFOLIO_ENTITLED_STATUSES


class PortfolioEntitlementEnforcer:
    """
    Unpublishes a user's portfolio once they lose the entitlement.

    Runs after a subscription has been stored. Failures are logged and
    never raised to the caller.
    """

    def __init__(self, portfolios: Optional[PortfolioRepository] = None):
        self._portfolios = portfolios or get_portfolio_repository()

    async def enforce(self, user_id: str, plan: Plan, status: SubscriptionStatus) -> bool:
        """
        Returns:
            True if a published portfolio was unpublished
        """
        if is_portfolio_entitled(plan, status):
            return False

        try:
            unpublished = await self._portfolios.unpublish_for_user(user_id)
        except Exception as e:
            logger.error(f"Failed to unpublish portfolio for user {user_id}: {e}")
            return False

        if unpublished:
            logger.info(
                f"Unpublished portfolio for user {user_id} "
                f"(plan={plan.value}, status={status.value})"
            )
        return unpublished > 0
